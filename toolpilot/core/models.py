"""Data models shared by the loop, the parser and the tools."""

import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class Role(str, Enum):
    """Author of a conversation message."""
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


@dataclass(frozen=True)
class Message:
    """A single role-tagged entry in the conversation history."""
    role: Role
    content: str

    def to_dict(self) -> dict:
        return {"role": self.role.value, "content": self.content}


@dataclass(frozen=True)
class ToolParameter:
    """Description of one named tool parameter."""
    type: str = "string"
    description: str = ""
    required: bool = False


@dataclass(frozen=True)
class ToolDefinition:
    """Definition of a tool surfaced to the text generator."""
    name: str
    description: str
    parameters: dict[str, ToolParameter] = field(default_factory=dict)
    requires_approval: bool = False
    provider: Optional[str] = None  # namespace prefix for external tools

    def to_dict(self) -> dict:
        """Convert to the catalog schema (name, description, parameter map)."""
        return {
            "name": self.name,
            "description": self.description,
            "parameters": {
                name: {
                    "type": param.type,
                    "description": param.description,
                    "required": param.required,
                }
                for name, param in self.parameters.items()
            },
        }


@dataclass(frozen=True)
class ToolCall:
    """A structured tool invocation recovered from model output."""
    name: str
    parameters: dict[str, str] = field(default_factory=dict)

    @property
    def fingerprint(self) -> str:
        """Deterministic key used to detect repeated calls."""
        return f"{self.name}:{json.dumps(self.parameters, sort_keys=True)}"


@dataclass(frozen=True)
class ToolResult:
    """Normalized outcome of a tool execution."""
    success: bool
    output: str = ""
    error: Optional[str] = None

    @classmethod
    def ok(cls, output: str = "") -> "ToolResult":
        return cls(success=True, output=output)

    @classmethod
    def fail(cls, error: str, output: str = "") -> "ToolResult":
        return cls(success=False, output=output, error=error)

    def to_dict(self) -> dict:
        data: dict[str, Any] = {"success": self.success, "output": self.output}
        if self.error is not None:
            data["error"] = self.error
        return data

    def __str__(self) -> str:
        if self.success:
            return self.output
        return f"Error: {self.error}"


class StepType(str, Enum):
    """Kinds of progress events emitted during a run."""
    THINKING = "thinking"
    TOOL_CALL = "tool_call"
    TOOL_RESULT = "tool_result"
    RESPONSE = "response"
    APPROVAL_REQUESTED = "approval_requested"


@dataclass(frozen=True)
class AgentStep:
    """An observable step of a run. Consumers get it, the agent keeps nothing."""
    type: StepType
    content: str
    tool_name: Optional[str] = None
    tool_params: Optional[dict[str, str]] = None
    result: Optional[ToolResult] = None
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict:
        """Render the step event schema."""
        data: dict[str, Any] = {
            "type": self.type.value,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.tool_name is not None:
            data["toolName"] = self.tool_name
        if self.tool_params is not None:
            data["toolParams"] = dict(self.tool_params)
        if self.result is not None:
            data["result"] = self.result.to_dict()
        return data
