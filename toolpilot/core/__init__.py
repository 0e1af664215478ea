"""Core orchestration components."""

from .states import ConversationState, AgentState, RunOutcome, TaskRun
from .models import AgentStep, Message, Role, StepType, ToolCall, ToolDefinition, ToolParameter, ToolResult
from .parser import ResponseParser
from .prompt_builder import PromptBuilder
from .tool_registry import ToolRegistry
from .failure_tracker import FailureTracker
from .approval import ApprovalGate
from .events import EventChannel

__all__ = [
    "ConversationState",
    "AgentState",
    "RunOutcome",
    "TaskRun",
    "AgentStep",
    "Message",
    "Role",
    "StepType",
    "ToolCall",
    "ToolDefinition",
    "ToolParameter",
    "ToolResult",
    "ResponseParser",
    "PromptBuilder",
    "ToolRegistry",
    "FailureTracker",
    "ApprovalGate",
    "EventChannel",
]
