"""Service adapters."""

from .gcloud import GCloudIntegration
from .github import GitHubIntegration
from .supabase import SupabaseIntegration

__all__ = ["GCloudIntegration", "GitHubIntegration", "SupabaseIntegration"]
