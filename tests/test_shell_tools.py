"""Tests for command, history and git tools."""

import asyncio
import shutil
import subprocess
import sys

import pytest

from toolpilot.tools.shell import (
    GitDiffTool,
    GitStatusTool,
    RunCommandTool,
    TerminalHistory,
    TerminalHistoryTool,
    gather_git_context,
)

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")
posix_only = pytest.mark.skipif(sys.platform == "win32", reason="POSIX shell commands")


def git(workspace, *args):
    subprocess.run(["git", *args], cwd=workspace, check=True, capture_output=True)


@pytest.fixture
def repo(workspace):
    git(workspace, "init", "-q")
    git(workspace, "config", "user.email", "dev@example.com")
    git(workspace, "config", "user.name", "Dev")
    (workspace / "app.py").write_text("print('v1')\n")
    git(workspace, "add", "app.py")
    git(workspace, "commit", "-q", "-m", "initial")
    return workspace


@posix_only
@pytest.mark.asyncio
async def test_run_command_in_workspace(workspace):
    history = TerminalHistory()
    result = await RunCommandTool(history).execute({"command": "pwd && echo warn >&2"}, workspace)

    assert result.success
    assert str(workspace.resolve()) in result.output
    assert "Stderr: warn" in result.output
    assert len(history) == 1
    assert history.entries[0].success


@posix_only
@pytest.mark.asyncio
async def test_failing_command_reports_stderr(workspace):
    history = TerminalHistory()
    result = await RunCommandTool(history).execute({"command": "echo partial; echo broken >&2; exit 3"}, workspace)

    assert not result.success
    assert result.error.strip() == "broken"
    assert result.output.strip() == "partial"
    assert not history.entries[0].success


@posix_only
@pytest.mark.asyncio
async def test_command_timeout(workspace):
    history = TerminalHistory()
    result = await RunCommandTool(history, timeout=0.2).execute({"command": "sleep 5"}, workspace)

    assert not result.success
    assert "timed out" in result.error


@posix_only
@pytest.mark.asyncio
async def test_command_timeout_kills_child_processes(workspace):
    history = TerminalHistory()
    loop = asyncio.get_running_loop()
    started = loop.time()

    result = await RunCommandTool(history, timeout=0.5).execute({"command": "sleep 8; echo x"}, workspace)

    assert loop.time() - started < 4
    assert not result.success
    assert result.error == "Command timed out after 0.5 seconds"
    assert not history.entries[0].success


@posix_only
@pytest.mark.asyncio
async def test_terminal_history_is_bounded_and_rendered(workspace):
    history = TerminalHistory(max_entries=2)
    tool = RunCommandTool(history)
    for word in ("one", "two", "three"):
        await tool.execute({"command": f"echo {word}"}, workspace)

    result = await TerminalHistoryTool(history).execute({}, workspace)

    assert "echo one" not in result.output
    assert "$ echo two" in result.output
    assert "$ echo three" in result.output


@pytest.mark.asyncio
async def test_empty_terminal_history(workspace):
    result = await TerminalHistoryTool(TerminalHistory()).execute({}, workspace)
    assert result.output == "No terminal commands have been run yet in this session."


@requires_git
@pytest.mark.asyncio
async def test_git_status(repo):
    result = await GitStatusTool().execute({}, repo)
    assert result.output == "Working tree is clean - no changes."

    (repo / "app.py").write_text("print('v2')\n")
    (repo / "new.py").write_text("")
    result = await GitStatusTool().execute({}, repo)

    assert "Modified: app.py" in result.output
    assert "Untracked: new.py" in result.output


@requires_git
@pytest.mark.asyncio
async def test_git_diff(repo):
    assert (await GitDiffTool().execute({}, repo)).output == "No differences found."

    (repo / "app.py").write_text("print('v2')\n")
    result = await GitDiffTool().execute({"filePath": "app.py"}, repo)

    assert "-print('v1')" in result.output
    assert "+print('v2')" in result.output


@requires_git
@pytest.mark.asyncio
async def test_git_status_outside_repository_fails(workspace):
    result = await GitStatusTool().execute({}, workspace)
    assert not result.success


@pytest.mark.asyncio
async def test_git_context_without_repository(workspace):
    context = await gather_git_context(workspace)
    assert "NOT a git repository" in context


@requires_git
@pytest.mark.asyncio
async def test_git_context_in_repository(repo):
    context = await gather_git_context(repo)

    assert "- Repository: initialized" in context
    assert "- Status: Working tree clean" in context
    assert "NO REMOTES CONFIGURED" in context

    git(repo, "remote", "add", "origin", "https://example.com/repo.git")
    context = await gather_git_context(repo)
    assert "origin\thttps://example.com/repo.git" in context
    assert "WARNING" not in context
