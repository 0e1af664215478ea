"""Console entry point for Toolpilot."""

import argparse
import asyncio
import logging
import signal
from pathlib import Path
from typing import Optional

from toolpilot.config import Config
from toolpilot.core import AgentStep, PromptBuilder, StepType, ToolRegistry
from toolpilot.core.agent import Agent, AgentSettings
from toolpilot.llm import GenerationOptions, OllamaProvider
from toolpilot.mcp import MCPToolProvider, connect_providers, load_server_configs
from toolpilot.tools import ToolDispatcher, create_builtin_executors

logger = logging.getLogger(__name__)

STEP_ICONS = {
    StepType.THINKING: "...",
    StepType.TOOL_CALL: ">>",
    StepType.TOOL_RESULT: "<<",
    StepType.APPROVAL_REQUESTED: "??",
    StepType.RESPONSE: "==",
}

MAX_PRINTED_RESULT = 500


def setup_logging(config: Config) -> None:
    """Log to the console and to a file under the log directory."""
    config.paths.log_dir.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        handlers=[
            logging.StreamHandler(),  # Console output
            logging.FileHandler(config.paths.log_dir / "toolpilot.log", encoding="utf-8"),  # File output
        ],
    )

    # Suppress noisy loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


class ToolpilotApp:
    """Wires the agent to Ollama, the built-in tools and any MCP servers."""

    def __init__(self, config: Config, auto_approve: bool = False):
        self.config = config
        self.auto_approve = auto_approve

        self.generator: Optional[OllamaProvider] = None
        self.agent: Optional[Agent] = None
        self.mcp_providers: list[MCPToolProvider] = []
        self._approval_task: Optional[asyncio.Task] = None
        self._reader: Optional[asyncio.Future] = None

    async def initialize(self) -> None:
        """Initialize all async components."""
        logger.info("Initializing Toolpilot...")

        errors = self.config.validate()
        if errors:
            for error in errors:
                logger.error(f"Config error: {error}")
            raise ValueError("Configuration validation failed")

        self.generator = OllamaProvider(
            base_url=self.config.ollama.base_url,
            model=self.config.ollama.model,
            timeout=self.config.ollama.timeout,
        )
        if not await self.generator.check_available_async():
            logger.warning(f"Ollama is not reachable at {self.config.ollama.base_url}")

        registry = ToolRegistry()
        dispatcher = ToolDispatcher(registry)
        dispatcher.register_all(create_builtin_executors(command_timeout=self.config.agent.command_timeout))

        configs = load_server_configs(self.config.paths.mcp_servers_file)
        self.mcp_providers = await connect_providers(configs)
        for provider in self.mcp_providers:
            dispatcher.register_provider(provider)
        logger.info(f"{len(registry)} tools registered ({len(self.mcp_providers)} MCP servers)")

        agent_config = self.config.agent
        settings = AgentSettings(
            max_iterations=agent_config.max_iterations,
            max_nudges=agent_config.max_nudges,
            failure_threshold=agent_config.failure_threshold,
            history_window=agent_config.history_window,
            generation=GenerationOptions(
                max_tokens=agent_config.max_tokens,
                temperature=agent_config.temperature,
            ),
        )
        self.agent = Agent(
            generator=self.generator,
            dispatcher=dispatcher,
            workspace_root=self.config.paths.workspace_root,
            registry=registry,
            prompt_builder=PromptBuilder(history_window=settings.history_window),
            settings=settings,
        )
        self.agent.set_event_callback(self._print_step)

        logger.info(f"Toolpilot ready in {self.config.paths.workspace_root}")

    def _print_step(self, step: AgentStep) -> None:
        icon = STEP_ICONS.get(step.type, "-")
        if step.type == StepType.TOOL_RESULT and step.result is not None:
            status = "ok" if step.result.success else "failed"
            text = step.content[:MAX_PRINTED_RESULT]
            print(f"{icon} {step.tool_name} [{status}]\n{text}")
        elif step.type == StepType.TOOL_CALL:
            print(f"{icon} {step.tool_name} {step.tool_params}")
        elif step.type == StepType.APPROVAL_REQUESTED:
            self._approval_task = asyncio.get_running_loop().create_task(self._ask_approval(step))
            self._approval_task.add_done_callback(self._on_approval_done)
        elif step.type != StepType.RESPONSE:
            print(f"{icon} {step.content}")

    def _on_approval_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Approval prompt failed: {error}")
            self.agent.reject_request()

    async def _read_line(self, prompt: str) -> str:
        """Read one console line.

        A read abandoned by a cancelled prompt keeps its thread blocked on
        input(), so it is reused here and the next line typed is not lost.
        """
        if self._reader is None:
            self._reader = asyncio.get_running_loop().run_in_executor(None, input, prompt)
        else:
            print(prompt, end="", flush=True)
        try:
            return await asyncio.shield(self._reader)
        finally:
            if self._reader is not None and self._reader.done():
                self._reader = None

    async def _ask_approval(self, step: AgentStep) -> None:
        if self.auto_approve:
            self.agent.approve_request()
            return

        try:
            answer = await self._read_line(f"?? Allow {step.tool_name} with {step.tool_params}? [y/N] ")
        except EOFError:
            answer = ""
        if answer.strip().lower() in ("y", "yes"):
            self.agent.approve_request()
        else:
            self.agent.reject_request()

    async def run_task(self, task: str) -> str:
        """Run one task, stopping the agent on Ctrl+C."""
        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGINT, self.agent.stop)
        except NotImplementedError:
            logger.debug("Signal handlers unavailable; Ctrl+C will not stop the task cleanly")

        try:
            return await self.agent.run_task(task)
        finally:
            if self._approval_task is not None and not self._approval_task.done():
                self._approval_task.cancel()
            self._approval_task = None
            try:
                loop.remove_signal_handler(signal.SIGINT)
            except NotImplementedError:
                logger.debug("Signal handlers unavailable")

    async def interactive(self) -> None:
        """Read tasks from the console until 'exit'."""
        print("Toolpilot. Type a task, /clear to reset history, exit to quit.")
        while True:
            task = (await self._read_line("task> ")).strip()
            if not task:
                continue
            if task in ("exit", "quit"):
                break
            if task == "/clear":
                self.agent.clear_history()
                print("History cleared.")
                continue
            print(await self.run_task(task))

    async def close(self) -> None:
        logger.info("Shutting down...")
        for provider in self.mcp_providers:
            await provider.close()
        if self.generator:
            await self.generator.close()

    async def run(self, task: Optional[str]) -> None:
        await self.initialize()
        try:
            if task:
                print(await self.run_task(task))
            else:
                await self.interactive()
        finally:
            await self.close()


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="toolpilot", description="Run a tool-calling agent in a workspace.")
    parser.add_argument("task", nargs="*", help="Task to run. Omit for an interactive session.")
    parser.add_argument("--workspace", help="Workspace root (overrides WORKSPACE_ROOT).")
    parser.add_argument("--model", help="Ollama model (overrides OLLAMA_MODEL).")
    parser.add_argument("--yes", action="store_true", help="Approve every sensitive tool call.")
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> None:
    """Entry point."""
    args = parse_args(argv)

    config = Config()
    if args.workspace:
        config.paths.workspace_root = Path(args.workspace).resolve()
    if args.model:
        config.ollama.model = args.model
    setup_logging(config)

    app = ToolpilotApp(config, auto_approve=args.yes)
    try:
        asyncio.run(app.run(" ".join(args.task) or None))
    except KeyboardInterrupt:
        logger.info("Toolpilot stopped by user")


if __name__ == "__main__":
    main()
