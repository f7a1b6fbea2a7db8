"""
Tests for layered credential resolution.
"""

from unittest.mock import MagicMock, patch

import pytest

from pulse_mcp.core.secrets import (
    CloudContext,
    CredentialSnapshot,
    DatabaseConfig,
    GCloudProbe,
    GCloudSecretStore,
    SecretsResolver,
    SourceHostingConfig,
    fill_gaps,
)
from pulse_mcp.core.secrets.manager import snapshot_from_environment, snapshot_from_secrets
from pulse_mcp.core.secrets.interface import Lookup

FULL_ENV = {
    "DATABASE_URL": "https://env.supabase.co",
    "DATABASE_ANON_KEY": "env-anon",
    "DATABASE_SERVICE_ROLE_KEY": "env-service",
    "SOURCE_HOSTING_TOKEN": "env-token",
    "CLOUD_PROJECT": "env-project",
}

STORE_SECRETS = {
    "database-url": "https://store.supabase.co",
    "database-anon-key": "store-anon",
    "database-service-role-key": "store-service",
    "source-hosting-token": "store-token",
}


# =============================================================================
# Pure merge
# =============================================================================


class TestFillGaps:
    """Tests for the precedence merge."""

    def test_keeps_existing_fields(self):
        current = CredentialSnapshot(
            database=DatabaseConfig("https://a", "key-a"),
            source_hosting=SourceHostingConfig("tok-a"),
            cloud_context=CloudContext("proj-a"),
        )
        incoming = CredentialSnapshot(
            database=DatabaseConfig("https://b", "key-b"),
            source_hosting=SourceHostingConfig("tok-b"),
            cloud_context=CloudContext("proj-b"),
        )
        assert fill_gaps(current, incoming) == current

    def test_fills_missing_fields(self):
        incoming = CredentialSnapshot(
            database=DatabaseConfig("https://b", "key-b"),
            source_hosting=SourceHostingConfig("tok-b"),
        )
        merged = fill_gaps(CredentialSnapshot(), incoming)
        assert merged.database.endpoint_url == "https://b"
        assert merged.source_hosting.token == "tok-b"
        assert merged.cloud_context is None

    def test_cloud_context_merges_instead_of_replacing(self):
        current = CredentialSnapshot(
            cloud_context=CloudContext(project_id=None, application_credentials_path="/adc.json")
        )
        incoming = CredentialSnapshot(cloud_context=CloudContext(project_id="demo"))
        merged = fill_gaps(current, incoming)
        assert merged.cloud_context == CloudContext("demo", "/adc.json")


class TestCandidateSnapshots:
    """Tests for snapshot builders."""

    def test_secrets_require_url_and_anon_key(self):
        snapshot = snapshot_from_secrets({
            "database-url": Lookup(value="https://x"),
            "database-anon-key": Lookup.absent("denied"),
        })
        assert snapshot.database is None

    def test_secrets_service_key_is_optional(self):
        snapshot = snapshot_from_secrets({
            "database-url": Lookup(value="https://x"),
            "database-anon-key": Lookup(value="anon"),
        })
        assert snapshot.database == DatabaseConfig("https://x", "anon", None)

    def test_environment_missing_anon_key_becomes_empty_string(self):
        snapshot = snapshot_from_environment({"DATABASE_URL": "https://x"})
        assert snapshot.database.endpoint_url == "https://x"
        assert snapshot.database.public_key == ""
        assert not snapshot.database.usable

    def test_environment_ignores_empty_values(self):
        snapshot = snapshot_from_environment({"SOURCE_HOSTING_TOKEN": "", "CLOUD_PROJECT": ""})
        assert snapshot == CredentialSnapshot()


# =============================================================================
# Resolver
# =============================================================================


class TestSecretsResolver:
    """Tests for SecretsResolver stages and queries."""

    @pytest.mark.asyncio
    async def test_environment_only(self, resolver_factory):
        resolver, _, store = resolver_factory(environ=FULL_ENV)
        await resolver.load()

        assert store is None
        assert resolver.has_database()
        assert resolver.has_source_hosting()
        assert resolver.has_cloud_context()
        assert resolver.get_database_config() == DatabaseConfig(
            "https://env.supabase.co", "env-anon", "env-service"
        )
        assert resolver.get_source_hosting_token() == "env-token"
        assert resolver.get_cloud_context().project_id == "env-project"

    @pytest.mark.asyncio
    async def test_secret_manager_wins_over_environment(self, resolver_factory):
        resolver, _, store = resolver_factory(
            environ=FULL_ENV,
            context=CloudContext("store-project"),
            secrets=STORE_SECRETS,
        )
        await resolver.load()

        config = resolver.get_database_config()
        assert config.endpoint_url == "https://store.supabase.co"
        assert config.public_key == "store-anon"
        assert config.privileged_key == "store-service"
        assert resolver.get_source_hosting_token() == "store-token"
        assert resolver.get_cloud_context().project_id == "store-project"
        assert resolver.describe() == {
            "database": "secret-manager",
            "source_hosting": "secret-manager",
            "cloud_context": "gcloud-cli",
        }

    @pytest.mark.asyncio
    async def test_one_failing_secret_does_not_block_siblings(self, resolver_factory):
        resolver, _, store = resolver_factory(
            context=CloudContext("proj"),
            secrets=STORE_SECRETS,
            failing=["database-service-role-key"],
        )
        await resolver.load()

        assert [name for name, _ in store.requested] == [
            "database-url",
            "database-anon-key",
            "database-service-role-key",
            "source-hosting-token",
        ]
        assert resolver.has_database()
        assert resolver.get_database_config().privileged_key is None
        assert resolver.get_source_hosting_token() == "store-token"

    @pytest.mark.asyncio
    async def test_failed_url_falls_back_to_environment(self, resolver_factory):
        resolver, _, _ = resolver_factory(
            environ=FULL_ENV,
            context=CloudContext("proj"),
            secrets=STORE_SECRETS,
            failing=["database-url"],
        )
        await resolver.load()

        assert resolver.get_database_config().endpoint_url == "https://env.supabase.co"
        assert resolver.describe()["database"] == "environment"

    @pytest.mark.asyncio
    async def test_has_database_requires_both_fields(self, resolver_factory):
        resolver, _, _ = resolver_factory(environ={"DATABASE_URL": "https://x"})
        await resolver.load()

        assert resolver.get_database_config() is not None
        assert not resolver.has_database()
        assert resolver.describe()["database"] is None

    @pytest.mark.asyncio
    async def test_anon_key_without_url_is_not_a_database(self, resolver_factory):
        resolver, _, _ = resolver_factory(environ={"DATABASE_ANON_KEY": "anon"})
        await resolver.load()

        assert resolver.get_database_config() is None
        assert not resolver.has_database()

    @pytest.mark.asyncio
    async def test_cli_token_used_when_store_has_none(self, resolver_factory):
        resolver, probe, _ = resolver_factory(
            environ={"SOURCE_HOSTING_TOKEN": "env-token"},
            cli_token="ya29.cli",
        )
        await resolver.load()

        assert probe.token_calls == 1
        assert resolver.get_source_hosting_token() == "ya29.cli"

    @pytest.mark.asyncio
    async def test_cli_stage_skipped_when_token_resolved(self, resolver_factory):
        resolver, probe, _ = resolver_factory(
            context=CloudContext("proj"),
            secrets=STORE_SECRETS,
            cli_token="ya29.cli",
        )
        await resolver.load()

        assert probe.token_calls == 0
        assert resolver.get_source_hosting_token() == "store-token"

    @pytest.mark.asyncio
    async def test_probed_credentials_path_survives_env_project(self, resolver_factory):
        resolver, _, store = resolver_factory(
            environ={"CLOUD_PROJECT": "demo"},
            context=CloudContext(project_id=None, application_credentials_path="/adc.json"),
        )
        await resolver.load()

        assert store is None
        assert resolver.get_cloud_context() == CloudContext("demo", "/adc.json")

    @pytest.mark.asyncio
    async def test_probe_failure_is_absorbed(self, fake_probe):
        resolver = SecretsResolver(probe=fake_probe(fail=True), environ={"CLOUD_PROJECT": "p"})
        await resolver.load()

        assert resolver.get_cloud_context().project_id == "p"

    @pytest.mark.asyncio
    async def test_store_construction_failure_skips_managed_stage(self, fake_probe):
        def broken_factory(project_id):
            raise RuntimeError("no application default credentials")

        resolver = SecretsResolver(
            probe=fake_probe(context=CloudContext("proj")),
            store_factory=broken_factory,
            environ={"SOURCE_HOSTING_TOKEN": "abc"},
        )
        await resolver.load()

        assert resolver.has_cloud_context()
        assert resolver.get_source_hosting_token() == "abc"

    @pytest.mark.asyncio
    async def test_end_to_end_without_cli(self):
        """CLOUD_PROJECT=demo, no gcloud binary, SOURCE_HOSTING_TOKEN=abc123."""
        with patch("pulse_mcp.core.secrets.probe.run_cli", return_value=(False, "gcloud not found")):
            resolver = SecretsResolver(
                probe=GCloudProbe(),
                environ={"CLOUD_PROJECT": "demo", "SOURCE_HOSTING_TOKEN": "abc123"},
            )
            await resolver.load()

        assert resolver.has_cloud_context()
        assert resolver.get_cloud_context().project_id == "demo"
        assert resolver.has_source_hosting()
        assert resolver.get_source_hosting_token() == "abc123"
        assert not resolver.has_database()


# =============================================================================
# Probe and store
# =============================================================================


class TestGCloudProbe:
    """Tests for the gcloud CLI probe."""

    def test_unset_project_is_absent(self):
        with patch("pulse_mcp.core.secrets.probe.run_cli", return_value=(True, "(unset)")):
            assert GCloudProbe().probe() is None

    def test_probe_reads_project_and_existing_adc(self, tmp_path):
        adc = tmp_path / "application_default_credentials.json"
        adc.write_text("{}")
        outputs = {"config": (True, "my-project"), "info": (True, str(adc))}

        def fake_run(args, timeout):
            return outputs[args[1]]

        with patch("pulse_mcp.core.secrets.probe.run_cli", side_effect=fake_run):
            context = GCloudProbe().probe()

        assert context == CloudContext("my-project", str(adc))

    def test_missing_adc_file_is_dropped(self, tmp_path):
        outputs = {"config": (True, "my-project"), "info": (True, str(tmp_path / "missing.json"))}

        with patch("pulse_mcp.core.secrets.probe.run_cli", side_effect=lambda args, timeout: outputs[args[1]]):
            context = GCloudProbe().probe()

        assert context == CloudContext("my-project", None)

    def test_credentials_path_without_project(self, tmp_path):
        adc = tmp_path / "application_default_credentials.json"
        adc.write_text("{}")
        outputs = {"config": (True, "(unset)"), "info": (True, str(adc))}

        with patch("pulse_mcp.core.secrets.probe.run_cli", side_effect=lambda args, timeout: outputs[args[1]]):
            context = GCloudProbe().probe()

        assert context == CloudContext(None, str(adc))

    @pytest.mark.asyncio
    async def test_credentials_path_completed_by_env_project(self, tmp_path):
        adc = tmp_path / "application_default_credentials.json"
        adc.write_text("{}")
        outputs = {
            "config": (False, "gcloud config: no project"),
            "info": (True, str(adc)),
            "auth": (False, "not logged in"),
        }
        store_factory = MagicMock()

        with patch("pulse_mcp.core.secrets.probe.run_cli", side_effect=lambda args, timeout: outputs[args[1]]):
            resolver = SecretsResolver(
                probe=GCloudProbe(),
                store_factory=store_factory,
                environ={"CLOUD_PROJECT": "demo"},
            )
            await resolver.load()

        store_factory.assert_not_called()
        assert resolver.get_cloud_context() == CloudContext("demo", str(adc))

    def test_access_token_failure(self):
        with patch("pulse_mcp.core.secrets.probe.run_cli", return_value=(False, "not logged in")):
            lookup = GCloudProbe().access_token()
        assert not lookup.found
        assert lookup.error == "not logged in"


class TestGCloudSecretStore:
    """Tests for the Secret Manager backend."""

    def test_version_name(self):
        store = GCloudSecretStore("demo", client=object())
        assert store.version_name("database-url") == "projects/demo/secrets/database-url/versions/latest"

    @pytest.mark.asyncio
    async def test_access_decodes_payload(self):
        client = MagicMock()
        client.access_secret_version.return_value.payload.data = b"s3cret"
        store = GCloudSecretStore("demo", client=client)

        assert await store.access("token", "3") == "s3cret"
        client.access_secret_version.assert_called_once_with(
            request={"name": "projects/demo/secrets/token/versions/3"}
        )

    @pytest.mark.asyncio
    async def test_fetch_absorbs_errors(self):
        client = MagicMock()
        client.access_secret_version.side_effect = RuntimeError("404 secret not found")
        store = GCloudSecretStore("demo", client=client)

        lookup = await store.fetch("missing")
        assert not lookup.found
        assert "404" in lookup.error
