"""MCP server integration."""

from .connection import MCPConnection, MCPServerConfig
from .provider import MCPToolProvider, connect_providers, load_server_configs

__all__ = [
    "MCPConnection",
    "MCPServerConfig",
    "MCPToolProvider",
    "connect_providers",
    "load_server_configs",
]
