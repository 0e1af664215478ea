"""Command execution, git inspection and terminal history tools."""

import asyncio
import logging
import os
import signal
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional

from toolpilot.core.models import ToolDefinition, ToolParameter, ToolResult

from .base import WorkspaceTool, require_param, resolve_in_workspace

logger = logging.getLogger(__name__)

MAX_TERMINAL_HISTORY = 10
MAX_HISTORY_OUTPUT_LINES = 10
MAX_DIFF_LINES = 100
MAX_OUTPUT_BYTES = 1024 * 1024

GIT_STATUS_LABELS = [
    ("M", "Modified"),
    ("A", "Added"),
    ("D", "Deleted"),
    ("?", "Untracked"),
    ("R", "Renamed"),
]


@dataclass
class TerminalCommand:
    """A command run by the agent and what came out of it."""
    command: str
    output: str
    success: bool
    timestamp: datetime = field(default_factory=datetime.now)


class TerminalHistory:
    """Bounded record of recent commands, shared by the command tools."""

    def __init__(self, max_entries: int = MAX_TERMINAL_HISTORY):
        self._entries: deque[TerminalCommand] = deque(maxlen=max_entries)

    def add(self, command: str, output: str, success: bool) -> None:
        self._entries.append(TerminalCommand(command=command, output=output, success=success))

    @property
    def entries(self) -> list[TerminalCommand]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)


def _decode(data: bytes) -> str:
    return data[:MAX_OUTPUT_BYTES].decode("utf-8", errors="replace")


def _kill_process_group(process: asyncio.subprocess.Process) -> None:
    """Kill the process and everything it spawned.

    Processes are started in their own session, so on POSIX the group id is
    the process id and grandchildren holding the output pipes die with it.
    """
    if not hasattr(os, "killpg"):
        process.kill()
        return
    try:
        os.killpg(process.pid, signal.SIGKILL)
    except ProcessLookupError:
        logger.debug(f"Process group {process.pid} already exited")


async def _run_process(
    *args: str,
    cwd: Path,
    shell: bool = False,
    timeout: Optional[float] = None,
) -> tuple[int, str, str]:
    """Run a process and return (returncode, stdout, stderr).

    Raises:
        asyncio.TimeoutError: If the process outlives ``timeout``; its whole
            process group is killed.
    """
    if shell:
        process = await asyncio.create_subprocess_shell(
            args[0],
            cwd=str(cwd),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            start_new_session=True,
        )
    else:
        process = await asyncio.create_subprocess_exec(
            *args,
            cwd=str(cwd),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            start_new_session=True,
        )

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        _kill_process_group(process)
        await process.wait()
        raise

    return process.returncode, _decode(stdout), _decode(stderr)


class RunCommandTool(WorkspaceTool):
    definition = ToolDefinition(
        name="runCommand",
        description=(
            "Execute a terminal command in the workspace. Use for running scripts, "
            "installing packages, or executing any shell command."
        ),
        parameters={"command": ToolParameter("string", "The command to execute", True)},
        requires_approval=True,
    )

    def __init__(self, history: TerminalHistory, timeout: float = 30.0):
        self.history = history
        self.timeout = timeout

    async def run(self, parameters: dict[str, str], workspace_root: Path) -> ToolResult:
        command = require_param(parameters, "command")
        logger.info(f"Running command: {command}")

        try:
            code, stdout, stderr = await _run_process(
                command, cwd=workspace_root, shell=True, timeout=self.timeout
            )
        except asyncio.TimeoutError:
            result = ToolResult.fail(f"Command timed out after {self.timeout:g} seconds")
        else:
            if code == 0:
                output = stdout + (f"\nStderr: {stderr}" if stderr else "")
                result = ToolResult.ok(output)
            else:
                result = ToolResult.fail(stderr or f"Command exited with code {code}", output=stdout)

        self.history.add(command, result.output or result.error or "", result.success)
        return result


class TerminalHistoryTool(WorkspaceTool):
    definition = ToolDefinition(
        name="getTerminalHistory",
        description=(
            "Get recent terminal command history with their outputs. "
            "Useful to see what commands were run and their results."
        ),
    )

    def __init__(self, history: TerminalHistory):
        self.history = history

    async def run(self, parameters: dict[str, str], workspace_root: Path) -> ToolResult:
        if not len(self.history):
            return ToolResult.ok("No terminal commands have been run yet in this session.")

        blocks = []
        for entry in self.history.entries:
            status = "ok" if entry.success else "failed"
            lines = [f"[{entry.timestamp.strftime('%H:%M:%S')}] {status} $ {entry.command}"]
            if entry.output:
                output_lines = entry.output.split("\n")
                lines.extend(f"  {line}" for line in output_lines[:MAX_HISTORY_OUTPUT_LINES])
                if len(output_lines) > MAX_HISTORY_OUTPUT_LINES:
                    lines.append("  ... (output truncated)")
            blocks.append("\n".join(lines))

        return ToolResult.ok("Recent terminal commands:\n\n" + "\n\n".join(blocks))


class GitStatusTool(WorkspaceTool):
    definition = ToolDefinition(
        name="getGitStatus",
        description="Get the current git status showing modified, staged, and untracked files.",
    )

    async def run(self, parameters: dict[str, str], workspace_root: Path) -> ToolResult:
        code, stdout, stderr = await _run_process("git", "status", "--porcelain", cwd=workspace_root)
        if code != 0:
            return ToolResult.fail(stderr.strip() or f"git status exited with code {code}")
        if not stdout.strip():
            return ToolResult.ok("Working tree is clean - no changes.")

        formatted = []
        for line in stdout.rstrip().split("\n"):
            status, file_name = line[:2], line[3:]
            label = next((text for flag, text in GIT_STATUS_LABELS if flag in status), status.strip())
            formatted.append(f"{label}: {file_name}")
        return ToolResult.ok("Git Status:\n" + "\n".join(formatted))


class GitDiffTool(WorkspaceTool):
    definition = ToolDefinition(
        name="gitDiff",
        description="Get the git diff for a specific file or all changes.",
        parameters={
            "filePath": ToolParameter(
                "string",
                "Optional file path to get diff for. Omit for all changes.",
                False,
            ),
        },
    )

    async def run(self, parameters: dict[str, str], workspace_root: Path) -> ToolResult:
        args = ["git", "diff"]
        file_path = parameters.get("filePath")
        if file_path:
            resolve_in_workspace(workspace_root, file_path)
            args += ["--", file_path]

        code, stdout, stderr = await _run_process(*args, cwd=workspace_root)
        if code != 0:
            return ToolResult.fail(stderr.strip() or f"git diff exited with code {code}")
        if not stdout.strip():
            return ToolResult.ok("No differences found.")

        lines = stdout.split("\n")
        output = "\n".join(lines[:MAX_DIFF_LINES])
        if len(lines) > MAX_DIFF_LINES:
            output += f"\n\n... ({len(lines) - MAX_DIFF_LINES} more lines truncated)"
        return ToolResult.ok(output)


async def gather_git_context(workspace_root: Path) -> str:
    """Describe the repository state so git tasks start from facts, not guesses."""
    workspace_root = Path(workspace_root)
    if not (workspace_root / ".git").exists():
        return (
            'GIT CONTEXT: This is NOT a git repository. '
            'You need to run "git init" first before any git operations.'
        )

    try:
        code, status, _ = await _run_process("git", "status", "--short", cwd=workspace_root)
        status = (status.strip() or "Working tree clean") if code == 0 else "Unable to get git status"

        code, branch, _ = await _run_process("git", "branch", "--show-current", cwd=workspace_root)
        branch = (branch.strip() or "HEAD detached") if code == 0 else "unknown"

        code, remotes_out, _ = await _run_process("git", "remote", "-v", cwd=workspace_root)
    except OSError as e:
        logger.warning(f"Failed to gather git context: {e}")
        return "GIT CONTEXT: Repository initialized but unable to get status."

    remotes = ", ".join(
        line.replace("(push)", "").strip()
        for line in remotes_out.strip().split("\n")
        if "(push)" in line
    ) if code == 0 else ""

    context = (
        "GIT CONTEXT:\n"
        "- Repository: initialized\n"
        f"- Branch: {branch}\n"
        f"- Status: {status}\n"
        f"- Remotes: {remotes or 'NO REMOTES CONFIGURED'}"
    )
    if not remotes:
        context += (
            "\n\nWARNING: No remote is configured. To push, you need to add a remote first:\n"
            "  git remote add origin <repository-url>\n\n"
            "Ask the user for the repository URL if they want to push."
        )
    return context
