"""State definitions for the orchestrator loop."""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, auto
from typing import Optional

from .failure_tracker import FailureTracker
from .models import Message, Role


class AgentState(Enum):
    """Possible states of the orchestrator."""
    IDLE = auto()               # No task running
    RUNNING = auto()            # Generating or parsing a turn
    TOOL_EXECUTING = auto()     # Waiting on a tool executor
    APPROVAL_PENDING = auto()   # Waiting for the user to allow or deny
    FINALIZING = auto()         # Producing the final answer


class RunOutcome(Enum):
    """How a task run ended."""
    COMPLETED = auto()
    GENERATION_FAILED = auto()
    REPEATED_FAILURE = auto()
    ITERATION_LIMIT = auto()
    ABORTED = auto()


@dataclass
class TaskRun:
    """Per-run state. A fresh instance is created for every task."""

    task: str
    failure_tracker: FailureTracker
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)
    iterations: int = 0
    nudges: int = 0
    outcome: Optional[RunOutcome] = None
    final_text: str = ""
    started_at: datetime = field(default_factory=datetime.now)

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def finish(self, outcome: RunOutcome, text: str) -> str:
        self.outcome = outcome
        self.final_text = text
        return text


class ConversationState:
    """Rolling, role-tagged message history for one agent."""

    def __init__(self):
        self._messages: list[Message] = []

    def append(self, role: Role, content: str) -> Message:
        message = Message(role=role, content=content)
        self._messages.append(message)
        return message

    def recent(self, count: int) -> list[Message]:
        """Return the last ``count`` messages, oldest first."""
        if count <= 0:
            return []
        return self._messages[-count:]

    def clear(self) -> None:
        self._messages.clear()

    @property
    def messages(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    def __len__(self) -> int:
        return len(self._messages)
