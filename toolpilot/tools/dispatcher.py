"""Routes tool calls to built-in executors or external providers."""

import json
import logging
from pathlib import Path
from typing import Any, Iterable, Optional

from toolpilot.core.models import ToolCall, ToolResult
from toolpilot.core.tool_registry import ToolRegistry

from .base import ToolExecutor, ToolProvider
from .filesystem import FILESYSTEM_TOOLS
from .shell import (
    GitDiffTool,
    GitStatusTool,
    RunCommandTool,
    TerminalHistory,
    TerminalHistoryTool,
)

logger = logging.getLogger(__name__)


def create_builtin_executors(
    history: Optional[TerminalHistory] = None,
    command_timeout: float = 30.0,
) -> list[ToolExecutor]:
    """Instantiate every built-in tool. Command tools share one history."""
    history = history if history is not None else TerminalHistory()
    executors: list[ToolExecutor] = [tool_cls() for tool_cls in FILESYSTEM_TOOLS]
    executors += [
        RunCommandTool(history, timeout=command_timeout),
        TerminalHistoryTool(history),
        GitStatusTool(),
        GitDiffTool(),
    ]
    return executors


def _field(raw: Any, key: str) -> Any:
    if isinstance(raw, dict):
        return raw.get(key)
    return getattr(raw, key, None)


def normalize_result(raw: Any) -> ToolResult:
    """Turn a provider's raw return value into a ToolResult.

    Strings pass through. Content-list results (as returned by MCP servers)
    are flattened to their text items, honouring an error flag. Anything else
    is rendered as indented JSON.
    """
    if isinstance(raw, ToolResult):
        return raw
    if raw is None:
        return ToolResult.ok("")
    if isinstance(raw, str):
        return ToolResult.ok(raw)

    content = _field(raw, "content")
    if isinstance(content, list):
        texts = []
        for item in content:
            if _field(item, "type") == "text":
                texts.append(str(_field(item, "text") or ""))
        text = "\n".join(texts)
        if _field(raw, "isError") or _field(raw, "is_error"):
            return ToolResult.fail(text or "Tool reported an error", output=text)
        return ToolResult.ok(text)

    try:
        return ToolResult.ok(json.dumps(raw, indent=2, default=str))
    except (TypeError, ValueError):
        return ToolResult.ok(str(raw))


class ToolDispatcher:
    """Executes tool calls. Failures come back as results, never exceptions."""

    def __init__(self, registry: ToolRegistry):
        self.registry = registry
        self._executors: dict[str, ToolExecutor] = {}
        self._providers: dict[str, ToolProvider] = {}

    def register(self, executor: ToolExecutor) -> None:
        """Register a built-in executor and its definition."""
        self._executors[executor.name] = executor
        self.registry.register(executor.definition)

    def register_all(self, executors: Iterable[ToolExecutor]) -> None:
        for executor in executors:
            self.register(executor)

    def register_provider(self, provider: ToolProvider) -> None:
        """Register an external provider and surface its tools in the registry."""
        self._providers[provider.prefix] = provider
        self.registry.add_provider_tools(
            provider.prefix,
            provider.list_tools(),
            label=provider.label,
            requires_approval=provider.requires_approval,
        )

    def unregister_provider(self, prefix: str) -> None:
        self._providers.pop(prefix, None)
        self.registry.remove_provider_tools(prefix)

    def _match_provider(self, name: str) -> Optional[tuple[ToolProvider, str]]:
        """Find the provider owning ``name``; the longest prefix wins."""
        for prefix in sorted(self._providers, key=len, reverse=True):
            if name.startswith(f"{prefix}_") and len(name) > len(prefix) + 1:
                return self._providers[prefix], name[len(prefix) + 1:]
        return None

    async def execute(self, call: ToolCall, workspace_root: Path) -> ToolResult:
        """Execute a tool call against the workspace.

        Args:
            call: Tool name and string parameters.
            workspace_root: Directory all file and command tools are confined to.

        Returns:
            The tool's result. Unknown tools and raised errors yield a failure.
        """
        executor = self._executors.get(call.name)
        if executor is not None:
            try:
                return await executor.execute(call.parameters, Path(workspace_root))
            except Exception as e:
                logger.exception(f"Tool {call.name} raised")
                return ToolResult.fail(f"{type(e).__name__}: {e}")

        match = self._match_provider(call.name)
        if match is not None:
            provider, tool_name = match
            try:
                raw = await provider.call_tool(tool_name, call.parameters)
            except Exception as e:
                logger.error(f"Provider tool {call.name} failed: {e}")
                return ToolResult.fail(str(e) or type(e).__name__)
            return normalize_result(raw)

        logger.warning(f"Unknown tool requested: {call.name}")
        return ToolResult.fail(f"Unknown tool: {call.name}")
