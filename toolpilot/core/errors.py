"""Exception hierarchy for the orchestrator and its tools."""


class AgentError(Exception):
    """Base class for orchestrator errors."""


class AgentBusyError(AgentError, RuntimeError):
    """Raised when a task is started while another one is still running."""

    def __init__(self, message: str = "Agent is already running a task"):
        super().__init__(message)


class ApprovalPendingError(AgentError):
    """Raised when a second approval is requested before the first resolved."""


class ToolError(AgentError):
    """Base class for errors raised inside tool executors."""


class WorkspaceEscapeError(ToolError, ValueError):
    """A path resolved outside the workspace root."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Path is outside workspace: {path}")


class ToolParameterError(ToolError, ValueError):
    """A tool call is missing a parameter or carries an invalid value."""


class ProviderError(AgentError):
    """An external tool provider could not be reached or reported an error."""
