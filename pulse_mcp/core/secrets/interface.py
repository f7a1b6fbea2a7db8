"""
Infrastructure Secrets Interface

Credential records shared by the resolver and the integrations, the
per-source Lookup result, and the abstract secrets backend.
This is INTERNAL infrastructure, not exposed as MCP tools.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional
import logging

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Lookup:
    """Outcome of reading one credential source: a value, or absent."""
    value: Optional[str] = None
    error: Optional[str] = None

    @property
    def found(self) -> bool:
        return bool(self.value)

    @classmethod
    def absent(cls, error: Optional[str] = None) -> "Lookup":
        return cls(value=None, error=error)


@dataclass(frozen=True)
class DatabaseConfig:
    """Supabase project endpoint and keys."""
    endpoint_url: str
    public_key: str
    privileged_key: Optional[str] = None

    @property
    def usable(self) -> bool:
        return bool(self.endpoint_url and self.public_key)


@dataclass(frozen=True)
class SourceHostingConfig:
    """GitHub bearer token."""
    token: str

    @property
    def usable(self) -> bool:
        return bool(self.token)


@dataclass(frozen=True)
class CloudContext:
    """Google Cloud project and application-default credentials path."""
    project_id: Optional[str] = None
    application_credentials_path: Optional[str] = None

    @property
    def usable(self) -> bool:
        return bool(self.project_id)


@dataclass(frozen=True)
class CredentialSnapshot:
    """Everything resolved so far. Each sub-record is None until a source provides it."""
    database: Optional[DatabaseConfig] = None
    source_hosting: Optional[SourceHostingConfig] = None
    cloud_context: Optional[CloudContext] = None


class SecretsBackend(ABC):
    """
    Abstract base class for managed secret stores.

    Implementations read named, versioned secrets for a single project.
    """

    backend_type: str = "base"

    def __init__(self, project_id: str):
        self.project_id = project_id

    @abstractmethod
    async def access(self, secret_id: str, version: str = "latest") -> str:
        """
        Read a secret's payload as text.

        Args:
            secret_id: Secret name (e.g. "database-url")
            version: Version number or "latest"

        Returns:
            The decoded payload (may be empty)

        Raises:
            Exception: Whatever the underlying client raises (not found,
                       permission denied, transport errors)
        """
        pass

    async def fetch(self, secret_id: str, version: str = "latest") -> Lookup:
        """Read a secret without raising; failures come back as absent."""
        try:
            value = await self.access(secret_id, version)
        except Exception as e:
            logger.error(f"❌ Failed to get secret {secret_id}: {e}")
            return Lookup.absent(str(e))
        if not value:
            return Lookup.absent(f"secret {secret_id} is empty")
        return Lookup(value=value)
