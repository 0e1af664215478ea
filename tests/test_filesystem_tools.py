"""Tests for the built-in workspace file tools."""

import pytest

from toolpilot.core.errors import WorkspaceEscapeError
from toolpilot.tools.base import int_param, resolve_in_workspace
from toolpilot.tools.filesystem import (
    CreateDirectoryTool,
    DeleteFileTool,
    EditFileTool,
    InsertCodeTool,
    ListDirectoryTool,
    ReadFileTool,
    SearchCodeTool,
    SearchFilesTool,
    WriteFileTool,
)


def test_resolve_in_workspace(workspace):
    assert resolve_in_workspace(workspace, "src/a.py") == (workspace / "src" / "a.py").resolve()
    with pytest.raises(WorkspaceEscapeError):
        resolve_in_workspace(workspace, "../secret.txt")
    with pytest.raises(WorkspaceEscapeError):
        resolve_in_workspace(workspace, "/etc/passwd")


def test_int_param_rejects_garbage():
    assert int_param({"n": " 7 "}, "n") == 7
    with pytest.raises(ValueError):
        int_param({"n": "seven"}, "n")


@pytest.mark.asyncio
async def test_read_file(workspace):
    (workspace / "a.txt").write_text("hello")
    result = await ReadFileTool().execute({"filePath": "a.txt"}, workspace)
    assert result.success
    assert result.output == "hello"


@pytest.mark.asyncio
async def test_read_missing_file(workspace):
    result = await ReadFileTool().execute({"filePath": "nope.txt"}, workspace)
    assert not result.success
    assert result.error == "File does not exist"


@pytest.mark.asyncio
async def test_read_outside_workspace_fails_without_io(workspace):
    (workspace.parent / "secret.txt").write_text("top secret")
    result = await ReadFileTool().execute({"filePath": "../secret.txt"}, workspace)
    assert not result.success
    assert "outside workspace" in result.error


@pytest.mark.asyncio
async def test_missing_parameter(workspace):
    result = await ReadFileTool().execute({}, workspace)
    assert not result.success
    assert result.error == "Missing required parameter: filePath"


@pytest.mark.asyncio
async def test_write_file_creates_parents(workspace):
    result = await WriteFileTool().execute({"filePath": "src/pkg/mod.py", "content": "x = 1\n"}, workspace)
    assert result.success
    assert (workspace / "src" / "pkg" / "mod.py").read_text() == "x = 1\n"


@pytest.mark.asyncio
async def test_write_outside_workspace_has_no_side_effects(workspace):
    result = await WriteFileTool().execute({"filePath": "../escape/evil.txt", "content": "x"}, workspace)
    assert not result.success
    assert not (workspace.parent / "escape").exists()


@pytest.mark.asyncio
async def test_edit_file_replaces_line_range(workspace):
    (workspace / "a.py").write_text("one\ntwo\nthree\nfour")
    result = await EditFileTool().execute(
        {"filePath": "a.py", "startLine": "2", "endLine": "3", "newContent": "TWO"},
        workspace,
    )
    assert result.success
    assert (workspace / "a.py").read_text() == "one\nTWO\nfour"


@pytest.mark.asyncio
async def test_edit_file_invalid_range(workspace):
    (workspace / "a.py").write_text("one\ntwo")
    result = await EditFileTool().execute(
        {"filePath": "a.py", "startLine": "2", "endLine": "5", "newContent": "x"},
        workspace,
    )
    assert not result.success
    assert "File has 2 lines" in result.error


@pytest.mark.asyncio
async def test_edit_file_non_numeric_line(workspace):
    (workspace / "a.py").write_text("one")
    result = await EditFileTool().execute(
        {"filePath": "a.py", "startLine": "first", "endLine": "1", "newContent": "x"},
        workspace,
    )
    assert not result.success
    assert "startLine" in result.error


@pytest.mark.asyncio
async def test_insert_code(workspace):
    (workspace / "a.py").write_text("import os\nprint(os.name)")
    result = await InsertCodeTool().execute(
        {"filePath": "a.py", "lineNumber": "2", "content": "import sys\n"},
        workspace,
    )
    assert result.success
    assert (workspace / "a.py").read_text() == "import os\nimport sys\n\nprint(os.name)"


@pytest.mark.asyncio
async def test_insert_code_at_end(workspace):
    (workspace / "a.py").write_text("a")
    result = await InsertCodeTool().execute({"filePath": "a.py", "lineNumber": "2", "content": "b"}, workspace)
    assert result.success
    assert (workspace / "a.py").read_text() == "a\nb"

    result = await InsertCodeTool().execute({"filePath": "a.py", "lineNumber": "9", "content": "c"}, workspace)
    assert not result.success


@pytest.mark.asyncio
async def test_list_directory(workspace):
    (workspace / "src").mkdir()
    (workspace / "b.txt").write_text("")
    (workspace / "A.md").write_text("")

    result = await ListDirectoryTool().execute({"dirPath": "."}, workspace)

    assert result.success
    assert result.output.split("\n")[1:] == ["src/", "A.md", "b.txt"]


@pytest.mark.asyncio
async def test_create_and_delete_directory(workspace):
    result = await CreateDirectoryTool().execute({"dirPath": "build/out"}, workspace)
    assert result.success
    (workspace / "build" / "out" / "x.o").write_text("")

    result = await DeleteFileTool().execute({"filePath": "build"}, workspace)
    assert result.success
    assert not (workspace / "build").exists()


@pytest.mark.asyncio
async def test_delete_refuses_workspace_root(workspace):
    result = await DeleteFileTool().execute({"filePath": "."}, workspace)
    assert not result.success
    assert workspace.exists()


@pytest.mark.asyncio
async def test_search_files_skips_excluded_dirs(workspace):
    (workspace / "pkg").mkdir()
    (workspace / "pkg" / "a.py").write_text("")
    (workspace / "node_modules").mkdir()
    (workspace / "node_modules" / "b.py").write_text("")

    result = await SearchFilesTool().execute({"pattern": "**/*.py"}, workspace)

    assert result.success
    assert "a.py" in result.output
    assert "node_modules" not in result.output


@pytest.mark.asyncio
async def test_search_files_no_match(workspace):
    result = await SearchFilesTool().execute({"pattern": "*.rs"}, workspace)
    assert result.output == "No files found matching the pattern."


@pytest.mark.asyncio
async def test_search_code_is_case_insensitive(workspace):
    (workspace / "a.py").write_text("def main():\n    # TODO: handle errors\n    pass\n")
    (workspace / "b.bin").write_bytes(b"\xff\xfe\x00todo")

    result = await SearchCodeTool().execute({"query": "todo"}, workspace)

    assert result.success
    assert "a.py:2: # TODO: handle errors" in result.output
    assert "b.bin" not in result.output


@pytest.mark.asyncio
async def test_search_code_caps_hits_per_file(workspace):
    (workspace / "many.txt").write_text("\n".join("needle" for _ in range(20)))

    result = await SearchCodeTool().execute({"query": "needle"}, workspace)

    assert result.output.startswith("Found 5 matches")
