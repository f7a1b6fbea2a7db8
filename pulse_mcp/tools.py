"""
Integration Tool Loader

Registers each integration's tool catalogue with a running FastMCP server
and removes it again on unload.

Usage:
    loader = IntegrationLoader(mcp)
    loader.load(github)        # adds github_* tools if the client is ready
    loader.unload("github")    # removes them
"""

import logging
from typing import Any, Dict, List, Set

from fastmcp import FastMCP
from fastmcp.tools import Tool

from .services.interface import Integration

logger = logging.getLogger(__name__)


class IntegrationLoader:
    """
    Tracks which tools belong to which integration.

    Only available integrations are registered; the host never sees tools
    that would fail with "not initialized".
    """

    def __init__(self, mcp: FastMCP):
        self.mcp = mcp
        self.integrations: Dict[str, Integration] = {}
        self.integration_tools: Dict[str, Set[str]] = {}
        self.skipped: Set[str] = set()

    def load(self, integration: Integration) -> bool:
        """
        Register an integration's tools.

        Returns:
            True if the tools were registered, False if the integration is
            unavailable or its catalogue and handlers disagree.
        """
        name = integration.integration_type
        if name in self.integrations:
            self.unload(name)

        if not integration.is_available():
            logger.info(f"⚪ Skipping {name}: not available")
            self.skipped.add(name)
            return False

        handlers = integration.get_handlers()
        descriptors = integration.get_tools()
        missing = [d.name for d in descriptors if d.name not in handlers]
        if missing:
            logger.error(f"❌ {name} has no handler for: {', '.join(missing)}")
            return False

        registered = set()
        for descriptor in descriptors:
            tool = Tool.from_function(
                fn=handlers[descriptor.name],
                name=descriptor.name,
                description=descriptor.description,
            )
            # Hosts see the declared schema, not the one inferred from the signature
            tool = tool.model_copy(update={"parameters": descriptor.input_schema})
            self.mcp.add_tool(tool)
            registered.add(descriptor.name)
            logger.debug(f"  Registered tool: {descriptor.name}")

        self.integrations[name] = integration
        self.integration_tools[name] = registered
        self.skipped.discard(name)
        logger.info(f"✅ Loaded integration: {name} ({len(registered)} tools)")
        return True

    def unload(self, name: str) -> bool:
        """Remove an integration's tools from the server."""
        if name not in self.integrations:
            logger.warning(f"Integration not loaded: {name}")
            return False

        for tool_name in self.integration_tools.get(name, set()):
            try:
                self.mcp.remove_tool(tool_name)
            except Exception as e:
                logger.warning(f"  Failed to remove tool {tool_name}: {e}")

        del self.integrations[name]
        removed = self.integration_tools.pop(name, set())
        logger.info(f"✅ Unloaded integration: {name} ({len(removed)} tools removed)")
        return True

    def catalogue(self) -> List[Dict[str, Any]]:
        """Descriptors of every registered tool, as {name, description, inputSchema}."""
        return [
            descriptor.to_dict()
            for integration in self.integrations.values()
            for descriptor in integration.get_tools()
        ]

    def get_status(self) -> str:
        lines = ["🔌 Integrations", "─" * 40]

        for name in sorted(self.integrations):
            tools = self.integration_tools.get(name, set())
            lines.append(f"🟢 {name} ({len(tools)} tools)")
            for tool_name in sorted(tools):
                lines.append(f"    • {tool_name}")

        for name in sorted(self.skipped):
            lines.append(f"⚪ {name} (credentials not available)")

        if not self.integrations and not self.skipped:
            lines.append("No integrations loaded")

        return "\n".join(lines)
