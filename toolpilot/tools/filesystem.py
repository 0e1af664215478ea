"""Built-in workspace file tools."""

import logging
import shutil
from pathlib import Path
from typing import Iterator

from toolpilot.core.errors import ToolParameterError
from toolpilot.core.models import ToolDefinition, ToolParameter, ToolResult

from .base import WorkspaceTool, int_param, require_param, resolve_in_workspace

logger = logging.getLogger(__name__)

# Directories never searched
EXCLUDED_DIRS = {"node_modules", ".git", "__pycache__", ".venv"}

MAX_FILE_MATCHES = 50
MAX_SEARCH_FILES = 100
MAX_RESULTS_PER_FILE = 5
MAX_TOTAL_RESULTS = 30


def _path_param(description: str = "Relative path to the file from workspace root") -> ToolParameter:
    return ToolParameter(type="string", description=description, required=True)


def _iter_workspace_files(workspace_root: Path, pattern: str) -> Iterator[Path]:
    """Yield files matching a glob pattern, skipping excluded and escaping paths."""
    root = workspace_root.resolve()
    try:
        matches = root.glob(pattern)
        for path in matches:
            if not path.is_file():
                continue
            resolved = path.resolve()
            if not resolved.is_relative_to(root):
                continue
            if EXCLUDED_DIRS.intersection(resolved.relative_to(root).parts):
                continue
            yield resolved
    except (ValueError, NotImplementedError) as e:
        raise ToolParameterError(f"Invalid glob pattern {pattern!r}: {e}")


class ReadFileTool(WorkspaceTool):
    definition = ToolDefinition(
        name="readFile",
        description="Read the contents of a file in the workspace.",
        parameters={"filePath": _path_param()},
    )

    async def run(self, parameters: dict[str, str], workspace_root: Path) -> ToolResult:
        path = resolve_in_workspace(workspace_root, require_param(parameters, "filePath"))
        if not path.is_file():
            return ToolResult.fail("File does not exist")
        return ToolResult.ok(path.read_text(encoding="utf-8"))


class WriteFileTool(WorkspaceTool):
    definition = ToolDefinition(
        name="writeFile",
        description="Create or overwrite a file with new content.",
        parameters={
            "filePath": _path_param(),
            "content": ToolParameter("string", "The content to write to the file", True),
        },
        requires_approval=True,
    )

    async def run(self, parameters: dict[str, str], workspace_root: Path) -> ToolResult:
        file_path = require_param(parameters, "filePath")
        content = require_param(parameters, "content")
        path = resolve_in_workspace(workspace_root, file_path)

        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        logger.info(f"Wrote {len(content)} chars to {path}")
        return ToolResult.ok(f"File written successfully: {file_path}")


class EditFileTool(WorkspaceTool):
    definition = ToolDefinition(
        name="editFile",
        description="Edit specific lines in a file. Better than writeFile for making targeted changes.",
        parameters={
            "filePath": _path_param("Relative path to the file"),
            "startLine": ToolParameter("number", "Starting line number (1-based)", True),
            "endLine": ToolParameter("number", "Ending line number (1-based, inclusive)", True),
            "newContent": ToolParameter("string", "New content to replace the specified lines", True),
        },
        requires_approval=True,
    )

    async def run(self, parameters: dict[str, str], workspace_root: Path) -> ToolResult:
        file_path = require_param(parameters, "filePath")
        start_line = int_param(parameters, "startLine")
        end_line = int_param(parameters, "endLine")
        new_content = require_param(parameters, "newContent")

        path = resolve_in_workspace(workspace_root, file_path)
        if not path.is_file():
            return ToolResult.fail("File does not exist")

        lines = path.read_text(encoding="utf-8").split("\n")
        if start_line < 1 or end_line > len(lines) or start_line > end_line:
            return ToolResult.fail(f"Invalid line range. File has {len(lines)} lines.")

        lines[start_line - 1:end_line] = new_content.split("\n")
        path.write_text("\n".join(lines), encoding="utf-8")
        return ToolResult.ok(f"Edited lines {start_line}-{end_line} in {file_path}")


class InsertCodeTool(WorkspaceTool):
    definition = ToolDefinition(
        name="insertCode",
        description="Insert code at a specific line in a file without replacing existing content.",
        parameters={
            "filePath": _path_param("Relative path to the file"),
            "lineNumber": ToolParameter("number", "Line number to insert at (1-based)", True),
            "content": ToolParameter("string", "Content to insert", True),
        },
        requires_approval=True,
    )

    async def run(self, parameters: dict[str, str], workspace_root: Path) -> ToolResult:
        file_path = require_param(parameters, "filePath")
        line_number = int_param(parameters, "lineNumber")
        content = require_param(parameters, "content")

        path = resolve_in_workspace(workspace_root, file_path)
        if not path.is_file():
            return ToolResult.fail("File does not exist")

        lines = path.read_text(encoding="utf-8").split("\n")
        if line_number < 1 or line_number > len(lines) + 1:
            return ToolResult.fail(f"Invalid line number. File has {len(lines)} lines.")

        new_lines = content.split("\n")
        lines[line_number - 1:line_number - 1] = new_lines
        path.write_text("\n".join(lines), encoding="utf-8")
        return ToolResult.ok(f"Inserted {len(new_lines)} lines at line {line_number} in {file_path}")


class ListDirectoryTool(WorkspaceTool):
    definition = ToolDefinition(
        name="listDirectory",
        description="List files and folders in a directory.",
        parameters={
            "dirPath": _path_param('Relative path to the directory from workspace root (use "." for root)'),
        },
    )

    async def run(self, parameters: dict[str, str], workspace_root: Path) -> ToolResult:
        dir_path = parameters.get("dirPath") or "."
        path = resolve_in_workspace(workspace_root, dir_path)
        if not path.is_dir():
            return ToolResult.fail("Directory does not exist")

        entries = sorted(path.iterdir(), key=lambda p: (not p.is_dir(), p.name.lower()))
        formatted = [f"{entry.name}/" if entry.is_dir() else entry.name for entry in entries]
        return ToolResult.ok(f"Contents of {dir_path}:\n" + "\n".join(formatted))


class CreateDirectoryTool(WorkspaceTool):
    definition = ToolDefinition(
        name="createDirectory",
        description="Create a new directory (and parent directories if needed).",
        parameters={"dirPath": _path_param("Relative path to the directory to create")},
    )

    async def run(self, parameters: dict[str, str], workspace_root: Path) -> ToolResult:
        dir_path = require_param(parameters, "dirPath")
        path = resolve_in_workspace(workspace_root, dir_path)
        path.mkdir(parents=True, exist_ok=True)
        return ToolResult.ok(f"Created directory: {dir_path}")


class DeleteFileTool(WorkspaceTool):
    definition = ToolDefinition(
        name="deleteFile",
        description="Delete a file or directory from the workspace.",
        parameters={"filePath": _path_param("Relative path to the file or directory to delete")},
        requires_approval=True,
    )

    async def run(self, parameters: dict[str, str], workspace_root: Path) -> ToolResult:
        file_path = require_param(parameters, "filePath")
        path = resolve_in_workspace(workspace_root, file_path)

        if path == workspace_root.resolve():
            return ToolResult.fail("Refusing to delete the workspace root")
        if not path.exists():
            return ToolResult.fail("File or directory does not exist")

        if path.is_dir():
            shutil.rmtree(path)
        else:
            path.unlink()
        logger.info(f"Deleted {path}")
        return ToolResult.ok(f"Deleted: {file_path}")


class SearchFilesTool(WorkspaceTool):
    definition = ToolDefinition(
        name="searchFiles",
        description="Search for files in the workspace by name pattern.",
        parameters={
            "pattern": ToolParameter(
                "string",
                'Glob pattern to search (e.g., "**/*.py" for all Python files)',
                True,
            ),
        },
    )

    async def run(self, parameters: dict[str, str], workspace_root: Path) -> ToolResult:
        pattern = require_param(parameters, "pattern")
        root = workspace_root.resolve()

        found = []
        for path in _iter_workspace_files(root, pattern):
            found.append(str(path.relative_to(root)))
            if len(found) >= MAX_FILE_MATCHES:
                break

        if not found:
            return ToolResult.ok("No files found matching the pattern.")
        return ToolResult.ok(f"Found {len(found)} files:\n" + "\n".join(sorted(found)))


class SearchCodeTool(WorkspaceTool):
    definition = ToolDefinition(
        name="searchCode",
        description="Search for text across all files in the workspace (case-insensitive).",
        parameters={
            "query": ToolParameter("string", "Text to search for", True),
            "filePattern": ToolParameter(
                "string",
                'Optional glob pattern to filter files (e.g., "**/*.py")',
                False,
            ),
        },
    )

    async def run(self, parameters: dict[str, str], workspace_root: Path) -> ToolResult:
        query = require_param(parameters, "query")
        pattern = parameters.get("filePattern") or "**/*"
        root = workspace_root.resolve()
        needle = query.lower()

        results = []
        for scanned, path in enumerate(_iter_workspace_files(root, pattern)):
            if scanned >= MAX_SEARCH_FILES or len(results) >= MAX_TOTAL_RESULTS:
                break
            try:
                lines = path.read_text(encoding="utf-8").split("\n")
            except (UnicodeDecodeError, OSError):
                continue  # binary or unreadable

            file_hits = 0
            for number, line in enumerate(lines, start=1):
                if needle in line.lower():
                    results.append(f"{path.relative_to(root)}:{number}: {line.strip()[:100]}")
                    file_hits += 1
                    if file_hits >= MAX_RESULTS_PER_FILE or len(results) >= MAX_TOTAL_RESULTS:
                        break

        if not results:
            return ToolResult.ok(f'No matches found for "{query}"')
        return ToolResult.ok(f"Found {len(results)} matches:\n" + "\n".join(results))


FILESYSTEM_TOOLS = (
    ReadFileTool,
    WriteFileTool,
    EditFileTool,
    InsertCodeTool,
    ListDirectoryTool,
    CreateDirectoryTool,
    DeleteFileTool,
    SearchFilesTool,
    SearchCodeTool,
)
