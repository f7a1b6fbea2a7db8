"""
Pulse MCP Server

Central MCP providing:
- Supabase: database query/insert/update/delete/RPC
- GitHub: repositories, issues, pull requests, files, search
- Google Cloud: storage objects, Secret Manager, gcloud CLI

Credentials are resolved once at startup; integrations without credentials
are skipped and reported by the integrations_status tool.

Run:
    pulse-mcp                                  # stdio (desktop hosts)
    pulse-mcp --transport http --port 8000     # streamable HTTP
"""

import argparse
import asyncio
import logging
import sys
from typing import Any, Dict, List, Optional, Tuple

from fastmcp import FastMCP

from . import __version__
from .config import load_settings
from .core.secrets import GCloudProbe, SecretsResolver
from .services import GCloudIntegration, GitHubIntegration, Integration, SupabaseIntegration
from .tools import IntegrationLoader

logger = logging.getLogger(__name__)

CREDENTIAL_LABELS = {
    "database": "Database",
    "source_hosting": "Source hosting",
    "cloud_context": "Google Cloud",
}


def build_integrations(resolver: SecretsResolver, settings: Dict[str, Any]) -> List[Integration]:
    return [
        SupabaseIntegration(resolver),
        GitHubIntegration(resolver),
        GCloudIntegration(resolver, cli_timeout=settings.get("cli_timeout", 60)),
    ]


async def build_server(
    settings: Dict[str, Any],
    resolver: Optional[SecretsResolver] = None,
    integrations: Optional[List[Integration]] = None,
) -> Tuple[FastMCP, IntegrationLoader]:
    """
    Resolve credentials, initialize integrations and register their tools.

    Args:
        settings: Output of load_settings()
        resolver: Pre-built resolver (default: probes gcloud)
        integrations: Integrations to offer (default: Supabase, GitHub, GCloud)

    Returns:
        (server, loader)
    """
    if resolver is None:
        resolver = SecretsResolver(probe=GCloudProbe(timeout=settings.get("cli_timeout", 10)))
    await resolver.load()

    mcp = FastMCP(settings.get("server", {}).get("name", "Pulse MCP"))
    loader = IntegrationLoader(mcp)

    @mcp.tool()
    def ping() -> str:
        """Health check. Returns pong if the server is running."""
        return f"pong from Pulse MCP v{__version__}"

    @mcp.tool()
    def integrations_status() -> str:
        """Show which credentials were resolved and which integrations are loaded."""
        lines = ["🔐 Credentials", "─" * 40]
        for domain, source in resolver.describe().items():
            label = CREDENTIAL_LABELS[domain]
            if source:
                lines.append(f"🟢 {label} (from {source})")
            else:
                lines.append(f"⚪ {label}")
        lines.append("")
        lines.append(loader.get_status())
        return "\n".join(lines)

    if integrations is None:
        integrations = build_integrations(resolver, settings)

    for integration in integrations:
        await integration.initialize()
        loader.load(integration)

    return mcp, loader


async def serve(settings: Dict[str, Any]) -> None:
    mcp, loader = await build_server(settings)
    server = settings.get("server", {})
    transport = server.get("transport", "stdio")

    try:
        if transport == "stdio":
            await mcp.run_async(transport="stdio")
        else:
            await mcp.run_async(
                transport=transport,
                host=server.get("host", "127.0.0.1"),
                port=int(server.get("port", 8000)),
            )
    finally:
        for integration in loader.integrations.values():
            await integration.close()


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="pulse-mcp", description="Pulse MCP server")
    parser.add_argument("--config", help="Path to a JSON settings file")
    parser.add_argument("--transport", choices=["stdio", "http", "sse"], help="MCP transport")
    parser.add_argument("--host", help="Bind address for http/sse")
    parser.add_argument("--port", type=int, help="Port for http/sse")
    parser.add_argument("--log-level", help="Logging level (default: from settings)")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    settings = load_settings(args.config)

    server = settings.setdefault("server", {})
    for key in ("transport", "host", "port"):
        value = getattr(args, key)
        if value is not None:
            server[key] = value
    if args.log_level:
        settings["log_level"] = args.log_level

    # stderr keeps the stdio transport clean
    logging.basicConfig(
        level=str(settings.get("log_level", "INFO")).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        asyncio.run(serve(settings))
    except KeyboardInterrupt:
        logger.info("Shutting down")
    return 0


if __name__ == "__main__":
    sys.exit(main())
