"""Base classes for tool executors and external tool providers."""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from toolpilot.core.errors import ToolError, ToolParameterError, WorkspaceEscapeError
from toolpilot.core.models import ToolDefinition, ToolResult


def resolve_in_workspace(workspace_root: Path, relative: str) -> Path:
    """Resolve ``relative`` against the workspace and verify containment.

    Raises:
        WorkspaceEscapeError: If the resolved path is outside the workspace.
    """
    root = Path(workspace_root).resolve()
    target = (root / relative).resolve()
    if not target.is_relative_to(root):
        raise WorkspaceEscapeError(relative)
    return target


def require_param(parameters: dict[str, str], key: str) -> str:
    """Get a required parameter or raise ToolParameterError."""
    value = parameters.get(key)
    if value is None:
        raise ToolParameterError(f"Missing required parameter: {key}")
    return value


def int_param(parameters: dict[str, str], key: str) -> int:
    """Get a required integer parameter. Values arrive as strings."""
    value = require_param(parameters, key)
    try:
        return int(str(value).strip())
    except ValueError:
        raise ToolParameterError(f"Parameter '{key}' must be an integer, got {value!r}")


class ToolExecutor(ABC):
    """A locally implemented tool."""

    definition: ToolDefinition

    @property
    def name(self) -> str:
        return self.definition.name

    @abstractmethod
    async def execute(self, parameters: dict[str, str], workspace_root: Path) -> ToolResult:
        """Run the tool. Implementations report failures, they never raise."""
        ...


class ToolProvider(ABC):
    """An external source of tools, addressed by a namespace prefix."""

    @property
    @abstractmethod
    def prefix(self) -> str:
        """Namespace prefix; tools are exposed as ``<prefix>_<tool>``."""
        ...

    @property
    def label(self) -> str:
        """Tag shown in front of tool descriptions."""
        return self.prefix

    @property
    def requires_approval(self) -> bool:
        return False

    @abstractmethod
    def list_tools(self) -> list[ToolDefinition]:
        """Unprefixed definitions of the tools this provider offers."""
        ...

    @abstractmethod
    async def call_tool(self, name: str, parameters: dict[str, str]) -> Any:
        """Call an unprefixed tool and return the provider's raw result."""
        ...


class WorkspaceTool(ToolExecutor):
    """Executor base turning raised errors into failed results."""

    async def execute(self, parameters: dict[str, str], workspace_root: Path) -> ToolResult:
        try:
            return await self.run(parameters, Path(workspace_root))
        except ToolError as e:
            return ToolResult.fail(str(e))
        except (OSError, UnicodeError) as e:
            return ToolResult.fail(f"{type(e).__name__}: {e}")

    @abstractmethod
    async def run(self, parameters: dict[str, str], workspace_root: Path) -> ToolResult:
        """Tool body. May raise ToolError or OSError."""
        ...
