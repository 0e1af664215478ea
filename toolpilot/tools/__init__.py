"""Built-in tools and the dispatcher that routes calls to them."""

from .base import ToolExecutor, ToolProvider, WorkspaceTool
from .dispatcher import ToolDispatcher, create_builtin_executors, normalize_result
from .shell import TerminalHistory, gather_git_context

__all__ = [
    "ToolExecutor",
    "ToolProvider",
    "WorkspaceTool",
    "ToolDispatcher",
    "create_builtin_executors",
    "normalize_result",
    "TerminalHistory",
    "gather_git_context",
]
