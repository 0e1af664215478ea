"""Shared fixtures: a scripted text generator and a workspace-bound agent."""

import asyncio
import json
from pathlib import Path
from typing import Callable, Optional, Union

import pytest

from toolpilot.core.agent import Agent, AgentSettings
from toolpilot.core.models import AgentStep, StepType
from toolpilot.core.tool_registry import ToolRegistry
from toolpilot.llm.base import GenerationOptions, TextGenerator
from toolpilot.tools.dispatcher import ToolDispatcher, create_builtin_executors

Turn = Union[str, None, Callable]


class ScriptedGenerator(TextGenerator):
    """Replays canned turns. Callables are awaited with the cancel event."""

    def __init__(self, turns: list[Turn], repeat_last: bool = False):
        self.turns = list(turns)
        self.repeat_last = repeat_last
        self.prompts: list[str] = []
        self.calls = 0

    @property
    def name(self) -> str:
        return "scripted"

    @property
    def model_name(self) -> str:
        return "scripted-model"

    async def generate(
        self,
        prompt: str,
        options: GenerationOptions,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Optional[str]:
        self.calls += 1
        self.prompts.append(prompt)
        if not self.turns:
            return None

        turn = self.turns[0] if self.repeat_last and len(self.turns) == 1 else self.turns.pop(0)
        if callable(turn):
            return await turn(cancel_event)
        return turn


def tool_turn(name: str, **parameters) -> str:
    """A well-formed fenced tool call."""
    return f"```tool\n{json.dumps({'name': name, 'parameters': parameters})}\n```"


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    root = tmp_path / "workspace"
    root.mkdir()
    return root


@pytest.fixture
def make_agent(workspace: Path):
    """Build an agent over the built-in tools with scripted turns."""

    def factory(turns: list[Turn], repeat_last: bool = False, **settings) -> Agent:
        registry = ToolRegistry()
        dispatcher = ToolDispatcher(registry)
        dispatcher.register_all(create_builtin_executors(command_timeout=5))
        return Agent(
            generator=ScriptedGenerator(turns, repeat_last=repeat_last),
            dispatcher=dispatcher,
            workspace_root=workspace,
            settings=AgentSettings(**settings),
            context_provider=None,
        )

    return factory


class StepRecorder:
    """Observer collecting every emitted step."""

    def __init__(self):
        self.steps: list[AgentStep] = []

    def __call__(self, step: AgentStep) -> None:
        self.steps.append(step)

    @property
    def types(self) -> list[StepType]:
        return [step.type for step in self.steps]

    def of_type(self, step_type: StepType) -> list[AgentStep]:
        return [step for step in self.steps if step.type == step_type]


@pytest.fixture
def recorder() -> StepRecorder:
    return StepRecorder()
