"""
Infrastructure Secrets Resolver

Builds one CredentialSnapshot for the process from three sources, in
order of trust:

    1. Google Secret Manager (needs a gcloud project)
    2. the local gcloud CLI (access token fallback)
    3. environment variables

Later sources only fill gaps left by earlier ones. Nothing here raises:
a broken source is logged and treated as absent, and the integrations
decide what a missing credential means.

Usage:
    from pulse_mcp.core.secrets import SecretsResolver

    resolver = SecretsResolver()
    await resolver.load()
    if resolver.has_database():
        config = resolver.get_database_config()
"""

import logging
import os
from dataclasses import replace
from typing import Callable, Dict, Mapping, Optional

from ... import config as cfg
from .backends import GCloudSecretStore
from .interface import (
    CloudContext,
    CredentialSnapshot,
    DatabaseConfig,
    Lookup,
    SecretsBackend,
    SourceHostingConfig,
)
from .probe import GCloudProbe

logger = logging.getLogger(__name__)

SOURCE_SECRET_MANAGER = "secret-manager"
SOURCE_GCLOUD_CLI = "gcloud-cli"
SOURCE_ENVIRONMENT = "environment"


# =============================================================================
# PURE MERGE / CANDIDATE BUILDERS
# =============================================================================

def fill_gaps(current: CredentialSnapshot, incoming: CredentialSnapshot) -> CredentialSnapshot:
    """
    Merge a lower-precedence snapshot into a higher-precedence one.

    Fields already set in ``current`` are kept. The cloud context is merged
    field by field so a probed credentials path survives a project id that
    arrives later.
    """
    database = current.database
    if (database is None or not database.endpoint_url) and incoming.database is not None:
        database = incoming.database

    source_hosting = current.source_hosting
    if (source_hosting is None or not source_hosting.token) and incoming.source_hosting is not None:
        source_hosting = incoming.source_hosting

    cloud = current.cloud_context
    if incoming.cloud_context is not None:
        if cloud is None:
            cloud = incoming.cloud_context
        elif not cloud.project_id and incoming.cloud_context.project_id:
            cloud = replace(
                cloud,
                project_id=incoming.cloud_context.project_id,
                application_credentials_path=(
                    cloud.application_credentials_path
                    or incoming.cloud_context.application_credentials_path
                ),
            )

    return CredentialSnapshot(
        database=database,
        source_hosting=source_hosting,
        cloud_context=cloud,
    )


def snapshot_from_secrets(lookups: Mapping[str, Lookup]) -> CredentialSnapshot:
    """Candidate snapshot from Secret Manager lookups keyed by secret name."""
    absent = Lookup.absent()
    url = lookups.get(cfg.SECRET_DATABASE_URL, absent)
    anon_key = lookups.get(cfg.SECRET_DATABASE_ANON_KEY, absent)
    service_key = lookups.get(cfg.SECRET_DATABASE_SERVICE_ROLE_KEY, absent)
    token = lookups.get(cfg.SECRET_SOURCE_HOSTING_TOKEN, absent)

    database = None
    if url.found and anon_key.found:
        database = DatabaseConfig(
            endpoint_url=url.value,
            public_key=anon_key.value,
            privileged_key=service_key.value,
        )

    source_hosting = SourceHostingConfig(token=token.value) if token.found else None
    return CredentialSnapshot(database=database, source_hosting=source_hosting)


def snapshot_from_environment(environ: Mapping[str, str]) -> CredentialSnapshot:
    """
    Candidate snapshot from environment variables.

    DATABASE_URL alone is enough to create the database record; a missing
    anon key becomes "" and the record stays unusable.
    """
    database = None
    url = environ.get(cfg.ENV_DATABASE_URL)
    if url:
        database = DatabaseConfig(
            endpoint_url=url,
            public_key=environ.get(cfg.ENV_DATABASE_ANON_KEY) or "",
            privileged_key=environ.get(cfg.ENV_DATABASE_SERVICE_ROLE_KEY) or None,
        )

    token = environ.get(cfg.ENV_SOURCE_HOSTING_TOKEN)
    source_hosting = SourceHostingConfig(token=token) if token else None

    project = environ.get(cfg.ENV_CLOUD_PROJECT)
    cloud = CloudContext(project_id=project) if project else None

    return CredentialSnapshot(
        database=database,
        source_hosting=source_hosting,
        cloud_context=cloud,
    )


# =============================================================================
# RESOLVER
# =============================================================================

class SecretsResolver:
    """
    Layered credential resolution for the integrations.

    This is internal plumbing - not exposed as MCP tools. Construction
    probes the gcloud CLI; load() runs the three stages.
    """

    def __init__(
        self,
        probe: Optional[GCloudProbe] = None,
        store_factory: Optional[Callable[[str], SecretsBackend]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        self._probe = probe or GCloudProbe()
        self._store_factory = store_factory or GCloudSecretStore
        self._environ = environ if environ is not None else os.environ
        self._store: Optional[SecretsBackend] = None
        self.snapshot = CredentialSnapshot()
        self.sources: Dict[str, str] = {}

        self._initialize_gcloud()

    def _initialize_gcloud(self) -> None:
        try:
            context = self._probe.probe()
        except Exception as e:
            logger.error(f"❌ Failed to initialize gcloud: {e}")
            return

        if context is None:
            return

        self._merge(CredentialSnapshot(cloud_context=context), SOURCE_GCLOUD_CLI)
        if not context.project_id:
            return

        try:
            self._store = self._store_factory(context.project_id)
        except Exception as e:
            logger.error(f"❌ Failed to create Secret Manager client: {e}")
            self._store = None

    def _merge(self, candidate: CredentialSnapshot, source: str) -> None:
        before = self.snapshot
        self.snapshot = fill_gaps(before, candidate)
        for domain in ("database", "source_hosting", "cloud_context"):
            if getattr(self.snapshot, domain) is not getattr(before, domain):
                self.sources[domain] = source

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    async def load(self) -> CredentialSnapshot:
        """
        Run the Secret Manager, gcloud CLI and environment stages in order.

        Returns:
            The resolved snapshot. Never raises.
        """
        if self._store is not None and self.has_cloud_context():
            try:
                self._merge(await self._load_from_secret_manager(), SOURCE_SECRET_MANAGER)
            except Exception as e:
                logger.error(f"❌ Failed to load from Secret Manager: {e}")

        if not self.has_source_hosting():
            self._merge(self._load_from_gcloud_config(), SOURCE_GCLOUD_CLI)

        self._merge(self._load_from_environment(), SOURCE_ENVIRONMENT)

        logger.info(
            "Credentials resolved: "
            f"database={'✅' if self.has_database() else '⚪'} "
            f"source_hosting={'✅' if self.has_source_hosting() else '⚪'} "
            f"cloud={'✅' if self.has_cloud_context() else '⚪'}"
        )
        return self.snapshot

    async def _load_from_secret_manager(self) -> CredentialSnapshot:
        lookups = {}
        for secret_id in cfg.MANAGED_SECRETS:
            lookups[secret_id] = await self._store.fetch(secret_id)
        return snapshot_from_secrets(lookups)

    def _load_from_gcloud_config(self) -> CredentialSnapshot:
        # Optional stage: failures stay at debug level
        try:
            token = self._probe.access_token()
        except Exception as e:
            logger.debug(f"gcloud access token unavailable: {e}")
            return CredentialSnapshot()
        if not token.found:
            logger.debug(f"gcloud access token unavailable: {token.error}")
            return CredentialSnapshot()
        return CredentialSnapshot(source_hosting=SourceHostingConfig(token=token.value))

    def _load_from_environment(self) -> CredentialSnapshot:
        candidate = snapshot_from_environment(self._environ)
        if candidate.database is not None and not candidate.database.public_key:
            logger.warning(
                f"{cfg.ENV_DATABASE_URL} is set but {cfg.ENV_DATABASE_ANON_KEY} is not; "
                "database stays unavailable"
            )
        return candidate

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_database_config(self) -> Optional[DatabaseConfig]:
        return self.snapshot.database

    def get_source_hosting_token(self) -> Optional[str]:
        if self.snapshot.source_hosting is None:
            return None
        return self.snapshot.source_hosting.token

    def get_cloud_context(self) -> Optional[CloudContext]:
        return self.snapshot.cloud_context

    def has_database(self) -> bool:
        return self.snapshot.database is not None and self.snapshot.database.usable

    def has_source_hosting(self) -> bool:
        return self.snapshot.source_hosting is not None and self.snapshot.source_hosting.usable

    def has_cloud_context(self) -> bool:
        return self.snapshot.cloud_context is not None and self.snapshot.cloud_context.usable

    def describe(self) -> Dict[str, Optional[str]]:
        """Domain -> source that supplied it (None if unresolved)."""
        available = {
            "database": self.has_database(),
            "source_hosting": self.has_source_hosting(),
            "cloud_context": self.has_cloud_context(),
        }
        return {
            domain: self.sources.get(domain) if ok else None
            for domain, ok in available.items()
        }
