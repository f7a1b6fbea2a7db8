"""
Google Cloud Secret Manager Backend

Implements SecretsBackend using google-cloud-secret-manager.
"""

from typing import Any, Optional
import logging

from ..interface import SecretsBackend

logger = logging.getLogger(__name__)


class GCloudSecretStore(SecretsBackend):
    """
    Secret Manager backend bound to one project.

    The client is created eagerly so that missing application-default
    credentials surface at construction time, not on the first lookup.
    """

    backend_type = "gcloud"

    def __init__(self, project_id: str, client: Optional[Any] = None):
        super().__init__(project_id)
        if client is None:
            from google.cloud import secretmanager
            client = secretmanager.SecretManagerServiceClient()
        self._client = client

    def version_name(self, secret_id: str, version: str = "latest") -> str:
        """Fully-qualified secret version resource name."""
        return f"projects/{self.project_id}/secrets/{secret_id}/versions/{version}"

    async def access(self, secret_id: str, version: str = "latest") -> str:
        name = self.version_name(secret_id, version)
        response = self._client.access_secret_version(request={"name": name})
        return response.payload.data.decode("UTF-8")
