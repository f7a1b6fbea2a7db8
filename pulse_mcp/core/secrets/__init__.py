"""
Infrastructure Secrets Module

Resolves credentials for the integrations.
NOT exposed as MCP tools - this is plumbing.

Usage:
    from pulse_mcp.core.secrets import SecretsResolver

    resolver = SecretsResolver()
    await resolver.load()
    token = resolver.get_source_hosting_token()

Sources (highest precedence first):
    Google Secret Manager   database-url, database-anon-key,
                            database-service-role-key, source-hosting-token
    gcloud CLI              project, ADC path, application-default token
    Environment             DATABASE_URL, DATABASE_ANON_KEY,
                            DATABASE_SERVICE_ROLE_KEY, SOURCE_HOSTING_TOKEN,
                            CLOUD_PROJECT
"""

from .interface import (
    CloudContext,
    CredentialSnapshot,
    DatabaseConfig,
    Lookup,
    SecretsBackend,
    SourceHostingConfig,
)
from .backends import GCloudSecretStore
from .manager import SecretsResolver, fill_gaps
from .probe import GCloudProbe

__all__ = [
    "SecretsResolver",
    "fill_gaps",
    "GCloudProbe",
    "GCloudSecretStore",
    "SecretsBackend",
    "Lookup",
    "CredentialSnapshot",
    "DatabaseConfig",
    "SourceHostingConfig",
    "CloudContext",
]
