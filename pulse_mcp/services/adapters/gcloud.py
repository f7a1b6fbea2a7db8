"""
Google Cloud Integration

Cloud Storage objects, Secret Manager lookups and a gcloud passthrough,
all scoped to the resolved project.
"""

import shlex
from typing import Any, Callable, Dict, List, Optional
import logging

import requests
from google.api_core.exceptions import GoogleAPIError
from google.auth.exceptions import GoogleAuthError

from ...config import GCLOUD_BINARY
from ...core.secrets import GCloudSecretStore, SecretsBackend
from ...shell import run_cli
from ..interface import Integration, IntegrationError, NotInitializedError, ToolDescriptor, object_schema

logger = logging.getLogger(__name__)

GOOGLE_ERRORS = (GoogleAPIError, GoogleAuthError)

# Storage also surfaces raw transport errors and undecodable object bodies
STORAGE_ERRORS = GOOGLE_ERRORS + (requests.RequestException, ValueError)


def _default_storage_client(project_id: str):
    from google.cloud import storage
    return storage.Client(project=project_id)


class GCloudIntegration(Integration):
    """Google Cloud integration (Cloud Storage + Secret Manager)."""

    integration_type = "gcloud"

    def __init__(
        self,
        secrets,
        storage_factory: Optional[Callable[[str], Any]] = None,
        store_factory: Optional[Callable[[str], SecretsBackend]] = None,
        cli_timeout: int = 60,
    ):
        super().__init__(secrets)
        self._storage_factory = storage_factory or _default_storage_client
        self._store_factory = store_factory or GCloudSecretStore
        self._secret_store: Optional[SecretsBackend] = None
        self.project_id: Optional[str] = None
        self.cli_timeout = cli_timeout

    async def initialize(self) -> bool:
        context = self.secrets.get_cloud_context()
        if context is None or not context.project_id:
            logger.info("⚪ Google Cloud project not available")
            return False

        self.project_id = context.project_id
        try:
            self._client = self._storage_factory(self.project_id)
            self._secret_store = self._store_factory(self.project_id)
        except Exception as e:
            logger.error(f"❌ Failed to initialize Google Cloud clients: {e}")
            self._client = None
            self._secret_store = None
            return False

        logger.info(f"✅ Connected to Google Cloud project: {self.project_id}")
        return True

    def is_available(self) -> bool:
        return bool(self._client is not None and self._secret_store is not None and self.project_id)

    async def close(self) -> None:
        self._secret_store = None
        await super().close()

    # =========================================================================
    # STORAGE
    # =========================================================================

    async def list_bucket_contents(
        self,
        bucket: str,
        prefix: Optional[str] = None,
        delimiter: Optional[str] = None,
        max_results: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """List objects in a bucket."""
        operation = "gcloud_storage_list"
        client = self._require_client(operation)
        try:
            blobs = client.list_blobs(bucket, prefix=prefix, delimiter=delimiter, max_results=max_results)
            return [
                {
                    "name": blob.name,
                    "size": blob.size,
                    "content_type": blob.content_type,
                    "created": blob.time_created.isoformat() if blob.time_created else None,
                    "updated": blob.updated.isoformat() if blob.updated else None,
                }
                for blob in blobs
            ]
        except STORAGE_ERRORS as e:
            raise IntegrationError(operation, str(e)) from e

    async def read_file(self, bucket: str, file: str) -> str:
        """Download an object as UTF-8 text."""
        operation = "gcloud_storage_read"
        client = self._require_client(operation)
        try:
            return client.bucket(bucket).blob(file).download_as_text(encoding="utf-8")
        except STORAGE_ERRORS as e:
            raise IntegrationError(operation, str(e)) from e

    async def write_file(
        self,
        bucket: str,
        file: str,
        content: str,
        content_type: str = "text/plain",
    ) -> str:
        """Upload text content to an object, replacing it if it exists."""
        operation = "gcloud_storage_write"
        client = self._require_client(operation)
        try:
            client.bucket(bucket).blob(file).upload_from_string(
                content, content_type=content_type or "text/plain"
            )
        except STORAGE_ERRORS as e:
            raise IntegrationError(operation, str(e)) from e
        return f"✅ Written: gs://{bucket}/{file} ({len(content)} bytes)"

    # =========================================================================
    # SECRETS
    # =========================================================================

    async def get_secret(self, secret_id: str, version: str = "latest") -> str:
        """Read a secret from Secret Manager."""
        operation = "gcloud_secret_get"
        if self._secret_store is None or not self.project_id:
            raise NotInitializedError(operation, self.integration_type)
        try:
            value = await self._secret_store.access(secret_id, version or "latest")
        except GOOGLE_ERRORS as e:
            raise IntegrationError(operation, str(e)) from e
        if not value:
            raise IntegrationError(operation, f"Secret {secret_id} not found or empty")
        return value

    # =========================================================================
    # CLI
    # =========================================================================

    async def execute_gcloud_command(self, command: str, args: Optional[List[str]] = None) -> str:
        """
        Run a gcloud command.

        Args:
            command: gcloud command (e.g. "compute instances list")
            args: Extra arguments appended as-is

        Returns:
            Trimmed stdout

        Raises:
            IntegrationError: If gcloud is missing, times out or exits non-zero
        """
        operation = "gcloud_command"
        self._require_client(operation)
        argv = [GCLOUD_BINARY, *shlex.split(command), *(args or [])]
        ok, output = run_cli(argv, timeout=self.cli_timeout)
        if not ok:
            raise IntegrationError(operation, output)
        return output

    def get_handlers(self):
        return {
            "gcloud_storage_list": self.list_bucket_contents,
            "gcloud_storage_read": self.read_file,
            "gcloud_storage_write": self.write_file,
            "gcloud_secret_get": self.get_secret,
            "gcloud_command": self.execute_gcloud_command,
        }

    def get_tools(self) -> List[ToolDescriptor]:
        bucket = {"type": "string", "description": "Bucket name"}
        file = {"type": "string", "description": "File path within the bucket"}
        return [
            ToolDescriptor(
                name="gcloud_storage_list",
                description="List files in a Google Cloud Storage bucket",
                input_schema=object_schema(
                    {
                        "bucket": bucket,
                        "prefix": {
                            "type": "string",
                            "description": "Filter results to objects whose names begin with this prefix",
                        },
                        "delimiter": {"type": "string", "description": "Delimiter to use for grouping results"},
                        "max_results": {"type": "integer", "description": "Maximum number of results to return"},
                    },
                    required=["bucket"],
                ),
            ),
            ToolDescriptor(
                name="gcloud_storage_read",
                description="Read a file from Google Cloud Storage",
                input_schema=object_schema({"bucket": bucket, "file": file}, required=["bucket", "file"]),
            ),
            ToolDescriptor(
                name="gcloud_storage_write",
                description="Write a file to Google Cloud Storage",
                input_schema=object_schema(
                    {
                        "bucket": bucket,
                        "file": file,
                        "content": {"type": "string", "description": "Content to write"},
                        "content_type": {"type": "string", "description": "MIME type of the content"},
                    },
                    required=["bucket", "file", "content"],
                ),
            ),
            ToolDescriptor(
                name="gcloud_secret_get",
                description="Retrieve a secret from Google Cloud Secret Manager",
                input_schema=object_schema(
                    {
                        "secret_id": {"type": "string", "description": "Secret ID"},
                        "version": {"type": "string", "description": "Secret version (default: latest)"},
                    },
                    required=["secret_id"],
                ),
            ),
            ToolDescriptor(
                name="gcloud_command",
                description="Execute a gcloud CLI command",
                input_schema=object_schema(
                    {
                        "command": {
                            "type": "string",
                            "description": 'gcloud command to execute (e.g., "compute instances list")',
                        },
                        "args": {
                            "type": "array",
                            "items": {"type": "string"},
                            "description": "Additional arguments for the command",
                        },
                    },
                    required=["command"],
                ),
            ),
        ]
