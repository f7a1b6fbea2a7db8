"""
Pytest configuration and fixtures for Pulse MCP tests.
"""

from typing import Dict, Iterable, Optional

import pytest

from pulse_mcp.core.secrets import CloudContext, Lookup, SecretsBackend, SecretsResolver


class FakeProbe:
    """Stands in for the gcloud CLI."""

    def __init__(
        self,
        context: Optional[CloudContext] = None,
        token: Optional[str] = None,
        fail: bool = False,
    ):
        self.context = context
        self.token = token
        self.fail = fail
        self.token_calls = 0

    def probe(self) -> Optional[CloudContext]:
        if self.fail:
            raise RuntimeError("gcloud exploded")
        return self.context

    def access_token(self) -> Lookup:
        self.token_calls += 1
        if self.token:
            return Lookup(value=self.token)
        return Lookup.absent("gcloud not found")


class FakeSecretStore(SecretsBackend):
    """In-memory Secret Manager."""

    backend_type = "fake"

    def __init__(self, project_id: str, values: Dict[str, str], failing: Iterable[str] = ()):
        super().__init__(project_id)
        self.values = values
        self.failing = set(failing)
        self.requested = []

    async def access(self, secret_id: str, version: str = "latest") -> str:
        self.requested.append((secret_id, version))
        if secret_id in self.failing:
            raise PermissionError(f"permission denied on {secret_id}")
        if secret_id not in self.values:
            raise KeyError(f"secret {secret_id} not found")
        return self.values[secret_id]


def make_resolver(
    environ: Optional[Dict[str, str]] = None,
    context: Optional[CloudContext] = None,
    secrets: Optional[Dict[str, str]] = None,
    failing: Iterable[str] = (),
    cli_token: Optional[str] = None,
):
    """Build a resolver wired to fakes. Returns (resolver, probe, store)."""
    probe = FakeProbe(context=context, token=cli_token)
    stores = []

    def store_factory(project_id: str) -> FakeSecretStore:
        store = FakeSecretStore(project_id, dict(secrets or {}), failing)
        stores.append(store)
        return store

    resolver = SecretsResolver(probe=probe, store_factory=store_factory, environ=environ or {})
    return resolver, probe, (stores[0] if stores else None)


@pytest.fixture
def resolver_factory():
    return make_resolver


@pytest.fixture
def fake_probe():
    return FakeProbe
