"""
Infrastructure Secrets Backends

Available managed secret stores.
"""

from .gcloud import GCloudSecretStore

__all__ = ["GCloudSecretStore"]
