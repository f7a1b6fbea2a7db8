"""
Pulse MCP Core

Infrastructure:
- secrets: Layered credential resolution (not exposed as tools)
"""

from .secrets import SecretsResolver, CredentialSnapshot

__all__ = [
    "SecretsResolver",
    "CredentialSnapshot",
]
