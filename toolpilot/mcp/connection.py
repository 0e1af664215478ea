"""Stdio connection to an MCP server."""

import logging
import os
import re
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from typing import Any, Optional

from mcp import ClientSession, StdioServerParameters
from mcp.client.stdio import stdio_client

from toolpilot.core.errors import ProviderError

logger = logging.getLogger(__name__)

ENV_REFERENCE = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


def resolve_env_value(value: str) -> str:
    """Expand ``${VAR}`` references from the process environment."""
    return ENV_REFERENCE.sub(lambda m: os.environ.get(m.group(1), ""), value)


@dataclass
class MCPServerConfig:
    """How to launch one MCP server."""
    name: str
    command: str
    args: list[str] = field(default_factory=list)
    env: dict[str, str] = field(default_factory=dict)
    enabled: bool = True
    require_approval: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MCPServerConfig":
        if not data.get("name") or not data.get("command"):
            raise ValueError(f"MCP server entry needs 'name' and 'command': {data}")
        return cls(
            name=str(data["name"]),
            command=str(data["command"]),
            args=[str(arg) for arg in data.get("args", [])],
            env={str(k): resolve_env_value(str(v)) for k, v in (data.get("env") or {}).items()},
            enabled=bool(data.get("enabled", True)),
            require_approval=bool(data.get("requireApproval", data.get("require_approval", False))),
        )


class MCPConnection:
    """A client session with a server started as a child process."""

    def __init__(self, config: MCPServerConfig):
        self.config = config
        self._stack: Optional[AsyncExitStack] = None
        self._session: Optional[ClientSession] = None

    @property
    def connected(self) -> bool:
        return self._session is not None

    async def start(self) -> None:
        """Launch the server and initialize the session."""
        if self._session is not None:
            return

        params = StdioServerParameters(
            command=self.config.command,
            args=self.config.args,
            env={**os.environ, **self.config.env},
        )
        logger.debug(f"Starting MCP server {self.config.name}: {self.config.command} {' '.join(self.config.args)}")

        stack = AsyncExitStack()
        try:
            read_stream, write_stream = await stack.enter_async_context(stdio_client(params))
            session = await stack.enter_async_context(ClientSession(read_stream, write_stream))
            await session.initialize()
        except BaseException:
            await stack.aclose()
            raise

        self._stack = stack
        self._session = session
        logger.info(f"Connected to MCP server: {self.config.name}")

    def _require_session(self) -> ClientSession:
        if self._session is None:
            raise ProviderError(f"MCP server not connected: {self.config.name}")
        return self._session

    async def list_tools(self) -> list[Any]:
        result = await self._require_session().list_tools()
        return list(result.tools)

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> Any:
        """Call a tool and return the raw CallToolResult."""
        logger.debug(f"Calling MCP tool {name} on {self.config.name}")
        return await self._require_session().call_tool(name, arguments)

    async def close(self) -> None:
        if self._stack is None:
            return
        stack, self._stack, self._session = self._stack, None, None
        try:
            await stack.aclose()
        except Exception as e:
            logger.warning(f"Error closing MCP server {self.config.name}: {e}")
        logger.debug(f"Closed MCP server: {self.config.name}")
