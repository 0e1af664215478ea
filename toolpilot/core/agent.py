"""The tool-calling loop: generate, parse, act, repeat until an answer."""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Awaitable, Callable, Optional

from toolpilot.llm.base import GenerationOptions, TextGenerator
from toolpilot.tools.dispatcher import ToolDispatcher
from toolpilot.tools.shell import gather_git_context

from .approval import ApprovalGate
from .completion import IncompletePredicate, clean_final_response, looks_incomplete
from .errors import AgentBusyError
from .events import EventChannel, StepCallback
from .failure_tracker import FailureTracker
from .models import AgentStep, Role, StepType, ToolCall, ToolResult
from .parser import ResponseParser
from .prompt_builder import NUDGE_MESSAGE, PromptBuilder
from .states import AgentState, ConversationState, RunOutcome, TaskRun
from .tool_registry import ToolRegistry

logger = logging.getLogger(__name__)

GIT_TASK_PATTERN = re.compile(r"git|commit|push|branch|merge", re.IGNORECASE)

GENERATION_FAILED_MESSAGE = "Failed to get response from the model."
STOPPED_MESSAGE = "Task stopped by user."
APPROVAL_DENIED_MESSAGE = "User denied permission to run this tool."

ContextProvider = Callable[[Path], Awaitable[str]]


@dataclass
class AgentSettings:
    """Budgets for one agent instance."""
    max_iterations: int = 15
    max_nudges: int = 2
    failure_threshold: int = 2
    history_window: int = 10
    generation: GenerationOptions = field(default_factory=GenerationOptions)


def repeated_failure_message(count: int) -> str:
    return (
        f"Stopping: The same action failed {count} times. "
        "Please try a different approach or check if the command is valid."
    )


def iteration_limit_message(iterations: int) -> str:
    return (
        f"Stopped after {iterations} steps. The task may need to be broken down "
        "into smaller parts, or the model may need clearer instructions."
    )


class Agent:
    """Drives one task at a time through the tool-calling loop.

    Collaborators are injected so a session owns exactly one agent and tests
    can swap any of them. Conversation history outlives individual runs;
    budgets and failure tracking do not.
    """

    def __init__(
        self,
        generator: TextGenerator,
        dispatcher: ToolDispatcher,
        workspace_root: Path,
        registry: Optional[ToolRegistry] = None,
        prompt_builder: Optional[PromptBuilder] = None,
        settings: Optional[AgentSettings] = None,
        parser: Optional[ResponseParser] = None,
        incomplete_predicate: IncompletePredicate = looks_incomplete,
        approval_gate: Optional[ApprovalGate] = None,
        events: Optional[EventChannel] = None,
        context_provider: Optional[ContextProvider] = gather_git_context,
    ):
        """Initialize the agent.

        Args:
            generator: Text generator producing each turn.
            dispatcher: Executes tool calls.
            workspace_root: Directory every tool is confined to.
            registry: Tool definitions; defaults to the dispatcher's registry.
            prompt_builder: Renders prompts; built from settings when omitted.
            settings: Iteration, nudge and failure budgets.
            parser: Extracts tool calls from turns.
            incomplete_predicate: Decides whether a plain-text turn is unfinished.
            approval_gate: Gate for sensitive tools.
            events: Channel receiving every step.
            context_provider: Produces git context for git-related tasks, or None.
        """
        self.generator = generator
        self.dispatcher = dispatcher
        self.workspace_root = Path(workspace_root).resolve()
        self.registry = registry if registry is not None else dispatcher.registry
        self.settings = settings or AgentSettings()
        self.prompt_builder = prompt_builder or PromptBuilder(history_window=self.settings.history_window)
        self.parser = parser or ResponseParser()
        self.incomplete_predicate = incomplete_predicate
        self.approval_gate = approval_gate or ApprovalGate()
        self.events = events or EventChannel()
        self.context_provider = context_provider

        self.conversation = ConversationState()
        self.state = AgentState.IDLE
        self.last_outcome: Optional[RunOutcome] = None
        self._run: Optional[TaskRun] = None

    # Control surface

    def is_running(self) -> bool:
        return self._run is not None

    @property
    def history(self):
        return self.conversation.messages

    def stop(self) -> None:
        """Abort the current run at the next boundary. A running tool finishes."""
        if self._run is None:
            return
        logger.info("Stop requested")
        self._run.cancel_event.set()
        self.approval_gate.cancel()

    def clear_history(self) -> None:
        self.conversation.clear()

    def approve_request(self) -> bool:
        return self.approval_gate.approve()

    def reject_request(self) -> bool:
        return self.approval_gate.deny()

    def set_event_callback(self, callback: Optional[StepCallback]) -> None:
        self.events.set_primary(callback)

    def subscribe(self, callback: StepCallback) -> Callable[[], None]:
        return self.events.subscribe(callback)

    async def run_task(self, task: str) -> str:
        """Run a task to its end and return the final text.

        The run slot is claimed before the first await, so it is released on
        every exit, including cancellation of the awaiting task.

        Raises:
            AgentBusyError: On the first step, if another task is running.
                Nothing is changed in that case.
        """
        if self._run is not None:
            raise AgentBusyError()

        run = TaskRun(task=task, failure_tracker=FailureTracker(self.settings.failure_threshold))
        self._run = run
        self.state = AgentState.RUNNING
        try:
            text = await self._loop(run)
        finally:
            if run.outcome is None:
                run.outcome = RunOutcome.ABORTED
            self.last_outcome = run.outcome
            self.state = AgentState.IDLE
            self._run = None
        logger.info(f"Task finished: {run.outcome.name} after {run.iterations} iterations")
        return text

    # Loop

    def _emit(self, step_type: StepType, content: str, **kwargs) -> None:
        self.events.emit(AgentStep(type=step_type, content=content, **kwargs))

    async def _prepare_task(self, task: str) -> str:
        if self.context_provider is None or not GIT_TASK_PATTERN.search(task):
            return task
        context = await self.context_provider(self.workspace_root)
        return f"{context}\n\nTask: {task}"

    async def _generate(self, prompt: str, run: TaskRun) -> Optional[str]:
        try:
            return await self.generator.generate(prompt, self.settings.generation, run.cancel_event)
        except Exception as e:
            logger.error(f"Text generator raised: {e}")
            return None

    async def _loop(self, run: TaskRun) -> str:
        logger.info(f"Starting task: {run.task[:100]}")
        self.conversation.append(Role.USER, await self._prepare_task(run.task))

        while run.iterations < self.settings.max_iterations:
            if run.cancelled:
                return run.finish(RunOutcome.ABORTED, STOPPED_MESSAGE)

            run.iterations += 1
            self.state = AgentState.RUNNING
            self._emit(StepType.THINKING, f"Step {run.iterations}...")

            tools = self.registry.get_all_tool_definitions()
            prompt = self.prompt_builder.build(self.conversation.messages, tools)
            response = await self._generate(prompt, run)

            if run.cancelled:
                return run.finish(RunOutcome.ABORTED, STOPPED_MESSAGE)

            if not response:
                self._emit(StepType.RESPONSE, GENERATION_FAILED_MESSAGE)
                return run.finish(RunOutcome.GENERATION_FAILED, GENERATION_FAILED_MESSAGE)

            call = self.parser.parse(response)
            if call is not None:
                tracker = run.failure_tracker
                if tracker.note_attempt(call.fingerprint):
                    message = repeated_failure_message(tracker.count)
                    tracker.reset()
                    self._emit(StepType.RESPONSE, message)
                    return run.finish(RunOutcome.REPEATED_FAILURE, message)

                if await self._act(call, run) is None:
                    return run.finish(RunOutcome.ABORTED, STOPPED_MESSAGE)
                continue

            if self.incomplete_predicate(response) and run.nudges < self.settings.max_nudges:
                run.nudges += 1
                logger.debug(f"Incomplete turn, nudging ({run.nudges}/{self.settings.max_nudges})")
                self.conversation.append(Role.ASSISTANT, response)
                self.conversation.append(Role.SYSTEM, NUDGE_MESSAGE)
                continue

            self.state = AgentState.FINALIZING
            final = clean_final_response(response)
            self.conversation.append(Role.ASSISTANT, final)
            self._emit(StepType.RESPONSE, final)
            return run.finish(RunOutcome.COMPLETED, final)

        message = iteration_limit_message(run.iterations)
        self._emit(StepType.RESPONSE, message)
        return run.finish(RunOutcome.ITERATION_LIMIT, message)

    async def _act(self, call: ToolCall, run: TaskRun) -> Optional[ToolResult]:
        """Approve, dispatch and record one tool call.

        Returns None when the run was stopped while waiting for approval.
        """
        self._emit(
            StepType.TOOL_CALL,
            f"Calling tool: {call.name}",
            tool_name=call.name,
            tool_params=dict(call.parameters),
        )

        if self.registry.is_sensitive(call.name):
            self.state = AgentState.APPROVAL_PENDING
            decision = self.approval_gate.open(call)
            self._emit(
                StepType.APPROVAL_REQUESTED,
                f"Approval required for {call.name}",
                tool_name=call.name,
                tool_params=dict(call.parameters),
            )
            allowed = await self.approval_gate.wait(decision)
            if run.cancelled:
                return None
            if not allowed:
                result = ToolResult.fail(APPROVAL_DENIED_MESSAGE)
                self._record(call, result, run)
                return result

        self.state = AgentState.TOOL_EXECUTING
        logger.info(f"Executing tool: {call.name} with params: {call.parameters}")
        result = await self.dispatcher.execute(call, self.workspace_root)
        self.state = AgentState.RUNNING

        if result.success:
            logger.info(f"Tool {call.name} succeeded: {result.output[:200]}")
        else:
            logger.warning(f"Tool {call.name} failed: {result.error}")
        self._record(call, result, run)
        return result

    def _record(self, call: ToolCall, result: ToolResult, run: TaskRun) -> None:
        if result.success:
            run.failure_tracker.record_success()
        else:
            run.failure_tracker.record_failure(call.fingerprint)

        self._emit(
            StepType.TOOL_RESULT,
            result.output if result.success else (result.error or result.output),
            tool_name=call.name,
            result=result,
        )
        self.conversation.append(Role.ASSISTANT, self.prompt_builder.format_tool_call(call))
        self.conversation.append(Role.SYSTEM, self.prompt_builder.format_tool_result(result))
