"""
Supabase Integration

Implements Integration for a Supabase project through its PostgREST
endpoint (/rest/v1) with httpx.

Filters are a mapping of column -> condition, applied in order:
    {"status": "open"}                             status=eq.open
    {"deleted_at": None}                           deleted_at=is.null
    {"score": {"operator": "gte", "value": 10}}    score=gte.10
    {"id": {"operator": "in", "value": [1, 2]}}    id=in.(1,2)
"""

from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union
import logging

import httpx

from ...config import HTTP_TIMEOUT, SUPABASE_REST_PATH
from ..interface import Integration, IntegrationError, ToolDescriptor, object_schema

logger = logging.getLogger(__name__)

# Characters that force a value inside in.(...) to be double-quoted
_RESERVED = set(',()":. ')


class FilterOperator(str, Enum):
    EQ = "eq"
    NEQ = "neq"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    LIKE = "like"
    ILIKE = "ilike"
    IN = "in"


def _format_value(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _format_list_item(value: Any) -> str:
    text = _format_value(value)
    if isinstance(value, str) and (not text or any(c in _RESERVED for c in text)):
        escaped = text.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    return text


def build_filter_params(filters: Optional[Mapping[str, Any]]) -> List[Tuple[str, str]]:
    """
    Translate a filter mapping into PostgREST query parameters.

    A None value becomes an ``is.null`` test. Operator-tagged values use
    their operator; an unknown operator skips that column and the remaining
    columns are still filtered.
    """
    params: List[Tuple[str, str]] = []
    for column, condition in (filters or {}).items():
        if condition is None:
            params.append((column, "is.null"))
            continue

        if not (isinstance(condition, Mapping) and condition.get("operator")):
            params.append((column, f"eq.{_format_value(condition)}"))
            continue

        try:
            operator = FilterOperator(condition["operator"])
        except ValueError:
            logger.warning(f"Ignoring filter on {column}: unknown operator {condition['operator']!r}")
            continue

        value = condition.get("value")
        if operator is FilterOperator.IN:
            items = value if isinstance(value, (list, tuple, set)) else [value]
            params.append((column, f"in.({','.join(_format_list_item(v) for v in items)})"))
        elif value is None and operator in (FilterOperator.EQ, FilterOperator.NEQ):
            params.append((column, "is.null" if operator is FilterOperator.EQ else "not.is.null"))
        else:
            params.append((column, f"{operator.value}.{_format_value(value)}"))
    return params


def build_order_param(order_by: Optional[Mapping[str, Any]]) -> Optional[str]:
    if not order_by or not order_by.get("column"):
        return None
    ascending = order_by.get("ascending")
    direction = "desc" if ascending is False else "asc"
    return f"{order_by['column']}.{direction}"


class SupabaseIntegration(Integration):
    """Supabase database integration."""

    integration_type = "supabase"

    def __init__(self, secrets, transport: Optional[httpx.AsyncBaseTransport] = None):
        super().__init__(secrets)
        self._transport = transport

    async def initialize(self) -> bool:
        config = self.secrets.get_database_config()
        if config is None or not config.endpoint_url or not config.public_key:
            logger.info("⚪ Supabase credentials not available")
            return False

        if self._client is not None:
            await self._client.aclose()

        self._client = httpx.AsyncClient(
            base_url=f"{config.endpoint_url.rstrip('/')}{SUPABASE_REST_PATH}",
            headers={
                "apikey": config.public_key,
                "Authorization": f"Bearer {config.public_key}",
                "Content-Type": "application/json",
            },
            timeout=HTTP_TIMEOUT,
            transport=self._transport,
        )
        logger.info(f"✅ Connected to Supabase: {config.endpoint_url}")
        return True

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
        await super().close()

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        *,
        params: Optional[List[Tuple[str, str]]] = None,
        json: Any = None,
        returning: bool = False,
    ) -> Any:
        client = self._require_client(operation)
        headers = {"Prefer": "return=representation"} if returning else None
        try:
            response = await client.request(method, path, params=params, json=json, headers=headers)
        except httpx.HTTPError as e:
            raise IntegrationError(operation, str(e)) from e

        if response.is_error:
            raise IntegrationError(operation, _error_message(response))
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise IntegrationError(operation, f"Invalid JSON response (HTTP {response.status_code}): {e}") from e

    async def query(
        self,
        table: str,
        select: str = "*",
        filter: Optional[Dict[str, Any]] = None,
        order_by: Optional[Dict[str, Any]] = None,
        limit: Optional[int] = None,
    ) -> Any:
        """Query rows from a table."""
        params = [("select", select or "*")]
        params.extend(build_filter_params(filter))
        order = build_order_param(order_by)
        if order:
            params.append(("order", order))
        if limit:
            params.append(("limit", str(limit)))
        return await self._request("supabase_query", "GET", f"/{table}", params=params)

    async def insert(self, table: str, data: Union[Dict[str, Any], List[Dict[str, Any]]]) -> Any:
        """Insert one row or a list of rows; returns the inserted rows."""
        return await self._request(
            "supabase_insert", "POST", f"/{table}", json=data, returning=True
        )

    async def update(self, table: str, data: Dict[str, Any], filter: Dict[str, Any]) -> Any:
        """Update rows matching the filter; returns the updated rows."""
        return await self._request(
            "supabase_update",
            "PATCH",
            f"/{table}",
            params=build_filter_params(filter),
            json=data,
            returning=True,
        )

    async def delete(self, table: str, filter: Dict[str, Any]) -> Any:
        """Delete rows matching the filter; returns the deleted rows."""
        return await self._request(
            "supabase_delete",
            "DELETE",
            f"/{table}",
            params=build_filter_params(filter),
            returning=True,
        )

    async def rpc(self, function_name: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """Call a Postgres function exposed over RPC."""
        return await self._request(
            "supabase_rpc", "POST", f"/rpc/{function_name}", json=params or {}
        )

    def get_handlers(self):
        return {
            "supabase_query": self.query,
            "supabase_insert": self.insert,
            "supabase_update": self.update,
            "supabase_delete": self.delete,
            "supabase_rpc": self.rpc,
        }

    def get_tools(self) -> List[ToolDescriptor]:
        table = {"type": "string", "description": "Table name"}
        filter_schema = {
            "type": "object",
            "description": (
                "Filter conditions as column -> value. Use "
                '{"operator": "gte", "value": 10} for eq, neq, gt, gte, lt, lte, '
                "like, ilike or in; null matches IS NULL"
            ),
        }
        return [
            ToolDescriptor(
                name="supabase_query",
                description="Query data from Supabase database",
                input_schema=object_schema(
                    {
                        "table": {"type": "string", "description": "Table name to query"},
                        "select": {"type": "string", "description": "Columns to select (default: *)"},
                        "filter": filter_schema,
                        "limit": {"type": "integer", "description": "Limit number of results"},
                        "order_by": {
                            "type": "object",
                            "properties": {
                                "column": {"type": "string"},
                                "ascending": {"type": "boolean"},
                            },
                            "description": "Order results by column",
                        },
                    },
                    required=["table"],
                ),
            ),
            ToolDescriptor(
                name="supabase_insert",
                description="Insert data into Supabase database",
                input_schema=object_schema(
                    {
                        "table": table,
                        "data": {
                            "type": ["object", "array"],
                            "description": "Data to insert (single object or array of objects)",
                        },
                    },
                    required=["table", "data"],
                ),
            ),
            ToolDescriptor(
                name="supabase_update",
                description="Update data in Supabase database",
                input_schema=object_schema(
                    {
                        "table": table,
                        "data": {"type": "object", "description": "Data to update"},
                        "filter": filter_schema,
                    },
                    required=["table", "data", "filter"],
                ),
            ),
            ToolDescriptor(
                name="supabase_delete",
                description="Delete data from Supabase database",
                input_schema=object_schema(
                    {"table": table, "filter": filter_schema},
                    required=["table", "filter"],
                ),
            ),
            ToolDescriptor(
                name="supabase_rpc",
                description="Call a Supabase RPC function",
                input_schema=object_schema(
                    {
                        "function_name": {"type": "string", "description": "RPC function name"},
                        "params": {"type": "object", "description": "Parameters to pass to the function"},
                    },
                    required=["function_name"],
                ),
            ),
        ]


def _error_message(response: httpx.Response) -> str:
    """PostgREST puts the reason in a JSON "message" field."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return response.text or f"HTTP {response.status_code}"
