"""
Pulse MCP Services

Integrations with external services, each exposed as a set of MCP tools:
- Supabase: database query, insert, update, delete, RPC
- GitHub: repositories, issues, pull requests, files, search
- Google Cloud: Cloud Storage objects, Secret Manager, gcloud CLI

Each integration follows the same pattern:
- interface.py: Integration ABC, errors and tool descriptors
- adapters/: Service-specific implementations
"""

from .interface import (
    Integration,
    IntegrationError,
    NotInitializedError,
    ToolDescriptor,
)
from .adapters import GCloudIntegration, GitHubIntegration, SupabaseIntegration

__all__ = [
    "Integration",
    "IntegrationError",
    "NotInitializedError",
    "ToolDescriptor",
    "GCloudIntegration",
    "GitHubIntegration",
    "SupabaseIntegration",
]
