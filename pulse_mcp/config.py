"""
Shared configuration for the Pulse MCP server.

Constants live here so the secrets resolver, the integrations and the
repository tooling agree on names. Runtime settings (transport, ports,
timeouts) come from an optional JSON file merged over DEFAULT_SETTINGS:

    {
        "server": {"transport": "http", "host": "0.0.0.0", "port": 8000},
        "log_level": "DEBUG",
        "cli_timeout": 15,
        "repos": {"base_url": "https://github.com/anandroid"}
    }
"""

import copy
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

logger = logging.getLogger(__name__)

# =============================================================================
# ENVIRONMENT
# =============================================================================
ENV_DATABASE_URL = "DATABASE_URL"
ENV_DATABASE_ANON_KEY = "DATABASE_ANON_KEY"
ENV_DATABASE_SERVICE_ROLE_KEY = "DATABASE_SERVICE_ROLE_KEY"
ENV_SOURCE_HOSTING_TOKEN = "SOURCE_HOSTING_TOKEN"
ENV_SOURCE_HOSTING_USERNAME = "SOURCE_HOSTING_USERNAME"
ENV_CLOUD_PROJECT = "CLOUD_PROJECT"
ENV_CONFIG_PATH = "PULSE_MCP_CONFIG"

# =============================================================================
# SECRET MANAGER
# =============================================================================
SECRET_DATABASE_URL = "database-url"
SECRET_DATABASE_ANON_KEY = "database-anon-key"
SECRET_DATABASE_SERVICE_ROLE_KEY = "database-service-role-key"
SECRET_SOURCE_HOSTING_TOKEN = "source-hosting-token"

MANAGED_SECRETS = (
    SECRET_DATABASE_URL,
    SECRET_DATABASE_ANON_KEY,
    SECRET_DATABASE_SERVICE_ROLE_KEY,
    SECRET_SOURCE_HOSTING_TOKEN,
)

# =============================================================================
# SERVICES
# =============================================================================
GITHUB_API_URL = "https://api.github.com"
GITHUB_API_VERSION = "2022-11-28"
SUPABASE_REST_PATH = "/rest/v1"
HTTP_TIMEOUT = 30.0
GCLOUD_BINARY = "gcloud"

# =============================================================================
# REPOSITORIES
# =============================================================================
REPOS_BASE_URL = "https://github.com/anandroid"
REPOS = (
    "pulse",
    "pulse-ui",
    "pulse-apis",
    "pulse-type-registry",
    "terraform-gcp",
    "n8n-sync",
)

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "pulse-mcp" / "config.json"

DEFAULT_SETTINGS: Dict[str, Any] = {
    "server": {
        "name": "Pulse MCP",
        "transport": "stdio",
        "host": "127.0.0.1",
        "port": 8000,
    },
    "log_level": "INFO",
    "cli_timeout": 10,
    "repos": {
        "base_url": REPOS_BASE_URL,
        "names": list(REPOS),
    },
}


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into a copy of base."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_settings(path: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
    """
    Load runtime settings.

    Args:
        path: Settings file. Falls back to $PULSE_MCP_CONFIG, then
              ~/.config/pulse-mcp/config.json.

    Returns:
        DEFAULT_SETTINGS with the file's values merged over it. A missing or
        unreadable file yields the defaults.
    """
    if path is None:
        path = os.getenv(ENV_CONFIG_PATH) or DEFAULT_CONFIG_PATH
    config_path = Path(path)

    if not config_path.exists():
        logger.debug(f"No settings file at {config_path}, using defaults")
        return copy.deepcopy(DEFAULT_SETTINGS)

    try:
        data = json.loads(config_path.read_text())
        if not isinstance(data, dict):
            raise ValueError("settings file must contain a JSON object")
        logger.info(f"Loaded settings from {config_path}")
        return _merge(DEFAULT_SETTINGS, data)
    except (OSError, ValueError) as e:
        logger.error(f"Failed to load settings from {config_path}: {e}")
        return copy.deepcopy(DEFAULT_SETTINGS)
