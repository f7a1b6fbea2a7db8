"""
Integration Interface

Core abstraction for the external services exposed as MCP tools. Adapters
implement this interface for Supabase, GitHub and Google Cloud.

Lifecycle:
    integration = GitHubIntegration(resolver)   # cheap, stores the resolver
    if await integration.initialize():          # builds the client or returns False
        await integration.list_issues(owner="o", repo="r")
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..core.secrets import SecretsResolver


class IntegrationError(Exception):
    """An operation failed; carries the operation name and the cause."""

    def __init__(self, operation: str, message: str):
        super().__init__(f"{operation} failed: {message}")
        self.operation = operation
        self.message = message


class NotInitializedError(IntegrationError):
    """An operation was called before initialize() succeeded."""

    def __init__(self, operation: str, integration: str):
        super().__init__(operation, f"{integration} client not initialized")
        self.integration = integration


@dataclass(frozen=True)
class ToolDescriptor:
    """Declarative description of one tool for discovery by the host."""
    name: str
    description: str
    input_schema: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }


def object_schema(properties: Dict[str, Any], required: Optional[List[str]] = None) -> Dict[str, Any]:
    """JSON Schema for a tool's keyword arguments."""
    schema = {"type": "object", "properties": properties}
    if required:
        schema["required"] = list(required)
    return schema


class Integration(ABC):
    """Base class for service integrations."""

    integration_type: str = "base"

    def __init__(self, secrets: SecretsResolver):
        self.secrets = secrets
        self._client = None

    @abstractmethod
    async def initialize(self) -> bool:
        """
        Build the client from resolved credentials.

        Returns:
            True if the client was created, False if credentials are missing.
            Calling it again rebuilds the client.
        """
        pass

    def is_available(self) -> bool:
        return self._client is not None

    async def close(self) -> None:
        """Drop the client handle."""
        self._client = None

    def _require_client(self, operation: str):
        if self._client is None:
            raise NotInitializedError(operation, self.integration_type)
        return self._client

    @abstractmethod
    def get_tools(self) -> List[ToolDescriptor]:
        """Static tool catalogue. Names are a public contract."""
        pass

    @abstractmethod
    def get_handlers(self) -> Dict[str, Callable[..., Awaitable[Any]]]:
        """Tool name -> coroutine implementing it."""
        pass
