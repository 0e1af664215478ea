"""MCP servers exposed as tool providers."""

import json
import logging
from pathlib import Path
from typing import Any, Iterable, Optional

from toolpilot.core.models import ToolDefinition
from toolpilot.core.tool_registry import parameters_from_json_schema
from toolpilot.tools.base import ToolProvider

from .connection import MCPConnection, MCPServerConfig

logger = logging.getLogger(__name__)


def load_server_configs(path: Path) -> list[MCPServerConfig]:
    """Load MCP server definitions from a JSON file.

    The file holds either ``{"servers": [...]}`` or a bare list. A missing
    file means no servers.

    Raises:
        ValueError: If the file is not valid JSON or an entry is malformed.
    """
    path = Path(path)
    if not path.exists():
        logger.debug(f"No MCP server file at {path}")
        return []

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid MCP server file {path}: {e}") from e

    entries = data.get("servers", []) if isinstance(data, dict) else data
    if not isinstance(entries, list):
        raise ValueError(f"MCP server file {path} must contain a list of servers")

    return [MCPServerConfig.from_dict(entry) for entry in entries]


class MCPToolProvider(ToolProvider):
    """Tools of one MCP server, namespaced as ``mcp_<server>_<tool>``."""

    def __init__(self, config: MCPServerConfig, connection: Optional[MCPConnection] = None):
        self.config = config
        self.connection = connection or MCPConnection(config)
        self._tools: list[ToolDefinition] = []

    @property
    def prefix(self) -> str:
        return f"mcp_{self.config.name}"

    @property
    def label(self) -> str:
        return f"MCP: {self.config.name}"

    @property
    def requires_approval(self) -> bool:
        return self.config.require_approval

    async def connect(self) -> None:
        """Start the server and cache its tool definitions."""
        await self.connection.start()
        tools = await self.connection.list_tools()
        self._tools = [
            ToolDefinition(
                name=tool.name,
                description=tool.description or "",
                parameters=parameters_from_json_schema(getattr(tool, "inputSchema", None)),
            )
            for tool in tools
        ]
        logger.info(f"MCP server {self.config.name} offers {len(self._tools)} tools")

    def list_tools(self) -> list[ToolDefinition]:
        return list(self._tools)

    async def call_tool(self, name: str, parameters: dict[str, str]) -> Any:
        return await self.connection.call_tool(name, dict(parameters))

    async def close(self) -> None:
        await self.connection.close()


async def connect_providers(configs: Iterable[MCPServerConfig]) -> list[MCPToolProvider]:
    """Connect every enabled server. Servers that fail to start are skipped."""
    providers = []
    for config in configs:
        if not config.enabled:
            logger.debug(f"Skipping disabled MCP server: {config.name}")
            continue

        provider = MCPToolProvider(config)
        try:
            await provider.connect()
        except Exception as e:
            logger.error(f"Failed to connect MCP server {config.name}: {e}")
            await provider.close()
            continue
        providers.append(provider)
    return providers
