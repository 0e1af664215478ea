"""Tests for the console runner."""

import asyncio
import logging
import threading
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from toolpilot.config import Config
from toolpilot.core.models import AgentStep, StepType, ToolResult
from toolpilot.main import ToolpilotApp, parse_args


def test_parse_args_joins_task_words():
    args = parse_args(["fix", "the", "tests", "--yes", "--model", "qwen2.5"])
    assert " ".join(args.task) == "fix the tests"
    assert args.yes
    assert args.model == "qwen2.5"


def test_parse_args_interactive():
    assert parse_args([]).task == []


def test_print_step(capsys):
    app = ToolpilotApp(Config())
    app._print_step(AgentStep(StepType.THINKING, "Step 1..."))
    app._print_step(AgentStep(StepType.TOOL_CALL, "Calling tool: readFile", tool_name="readFile",
                              tool_params={"filePath": "a.py"}))
    app._print_step(AgentStep(StepType.TOOL_RESULT, "x = 1", tool_name="readFile", result=ToolResult.ok("x = 1")))
    app._print_step(AgentStep(StepType.RESPONSE, "Final answer"))

    out = capsys.readouterr().out
    assert "... Step 1..." in out
    assert ">> readFile {'filePath': 'a.py'}" in out
    assert "<< readFile [ok]\nx = 1" in out
    assert "Final answer" not in out


@pytest.mark.asyncio
async def test_auto_approve():
    app = ToolpilotApp(Config(), auto_approve=True)
    app.agent = MagicMock()

    await app._ask_approval(AgentStep(StepType.APPROVAL_REQUESTED, "Approval required"))

    app.agent.approve_request.assert_called_once()


@pytest.mark.asyncio
async def test_failed_approval_prompt_is_logged_and_denied(caplog):
    app = ToolpilotApp(Config())
    app.agent = MagicMock()
    app._read_line = AsyncMock(side_effect=RuntimeError("console gone"))

    with caplog.at_level(logging.ERROR, logger="toolpilot.main"):
        app._print_step(AgentStep(StepType.APPROVAL_REQUESTED, "Approval required", tool_name="runCommand"))
        with pytest.raises(RuntimeError):
            await app._approval_task

    assert "Approval prompt failed: console gone" in caplog.text
    app.agent.reject_request.assert_called_once()


@pytest.mark.asyncio
async def test_finished_run_cancels_open_approval_prompt():
    app = ToolpilotApp(Config())
    app.agent = MagicMock()
    app.agent.run_task = AsyncMock(return_value="Task stopped by user.")
    prompt = asyncio.create_task(asyncio.Event().wait())
    app._approval_task = prompt

    assert await app.run_task("make a file") == "Task stopped by user."

    with pytest.raises(asyncio.CancelledError):
        await prompt
    assert app._approval_task is None


@pytest.mark.asyncio
async def test_abandoned_approval_prompt_does_not_swallow_next_line():
    app = ToolpilotApp(Config())
    app.agent = MagicMock()
    typed = threading.Event()
    prompts = []

    def fake_input(prompt):
        prompts.append(prompt)
        typed.wait(timeout=5)
        return "list the files"

    with patch("builtins.input", fake_input):
        step = AgentStep(StepType.APPROVAL_REQUESTED, "Approval required", tool_name="runCommand",
                         tool_params={"command": "ls"})
        asking = asyncio.create_task(app._ask_approval(step))
        await asyncio.sleep(0.05)
        asking.cancel()
        with pytest.raises(asyncio.CancelledError):
            await asking

        typed.set()
        line = await app._read_line("task> ")

    assert line == "list the files"
    assert len(prompts) == 1
    app.agent.approve_request.assert_not_called()
    app.agent.reject_request.assert_not_called()
