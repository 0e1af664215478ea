"""Prompt builder rendering instructions, tool catalog and history."""

import json
from typing import Iterable, Sequence

from .models import Message, Role, ToolCall, ToolDefinition, ToolResult

ROLE_LABELS = {
    Role.USER: "User",
    Role.ASSISTANT: "Assistant",
    Role.SYSTEM: "System",
}

NUDGE_MESSAGE = (
    "You must use a tool now. Output ONLY a tool call in this exact format:\n"
    "```tool\n"
    '{"name": "toolName", "parameters": {...}}\n'
    "```\n"
    'If the task is complete, just say "Done" with a brief summary.'
)

USAGE_SECTION = """HOW TO USE A TOOL:
When you need to perform an action, output EXACTLY this format:

```tool
{"name": "TOOL_NAME", "parameters": {"param": "value"}}
```

EXAMPLES:

To create a file:
```tool
{"name": "writeFile", "parameters": {"filePath": "hello.py", "content": "print('Hello World')"}}
```

To run a command (executes in workspace root):
```tool
{"name": "runCommand", "parameters": {"command": "pip install -r requirements.txt"}}
```
(NEVER use 'cd'. You are already in the workspace root.)

To read a file:
```tool
{"name": "readFile", "parameters": {"filePath": "pyproject.toml"}}
```"""

RULES_SECTION = """CRITICAL RULES:
1. ALWAYS use a tool when asked to do something. Never just describe or plan - USE THE TOOL.
2. Use ONE tool per response. Output the tool call and NOTHING ELSE.
3. After getting a tool result, immediately use the NEXT tool needed, or summarize if done.
4. Keep going until the ENTIRE task is complete. Don't stop after one step.
5. When fully done, give a SHORT summary (1-2 sentences). No headers like "##" or "Next Step".
6. READ THE CONTEXT CAREFULLY. If it says "NOT a git repository", run "git init" first!
7. If a command fails, understand WHY and fix the prerequisite first.

You are in a loop. Each response should be EITHER a tool call OR a final summary. Nothing else.

START NOW - use a tool immediately."""


class PromptBuilder:
    """Builds the single prompt string sent to the text generator."""

    def __init__(self, agent_name: str = "Toolpilot", history_window: int = 10):
        """Initialize prompt builder.

        Args:
            agent_name: Name the model is told it has.
            history_window: How many trailing history messages go into a prompt.
        """
        self.agent_name = agent_name
        self.history_window = history_window

    def format_tool_catalog(self, tools: Iterable[ToolDefinition]) -> str:
        """Render tool definitions as enumerated prose."""
        entries = []
        for tool in tools:
            lines = [f"- {tool.name}: {tool.description}"]
            for name, param in tool.parameters.items():
                flag = "required" if param.required else "optional"
                lines.append(f"  - {name} ({param.type}, {flag}): {param.description}")
            entries.append("\n".join(lines))
        return "\n\n".join(entries)

    def build_system_prompt(
        self,
        tools: Sequence[ToolDefinition],
        extra_sections: Iterable[str] = (),
    ) -> str:
        """Build the instruction block that precedes the conversation."""
        sections = [
            f"You are {self.agent_name}, an AI coding agent. You MUST use tools to complete tasks. "
            "You cannot just talk - you must take action."
        ]

        catalog = f"AVAILABLE TOOLS:\n{self.format_tool_catalog(tools)}"
        providers = sorted({tool.provider for tool in tools if tool.provider})
        if providers:
            catalog += f"\n\nCONNECTED TOOL PROVIDERS: {', '.join(providers)}"
        sections.append(catalog)

        sections.append(USAGE_SECTION)
        sections.extend(section for section in extra_sections if section)
        sections.append(RULES_SECTION)

        return "\n\n".join(sections)

    def build(self, history: Sequence[Message], tools: Sequence[ToolDefinition]) -> str:
        """Build the full prompt: instructions, trailing history, open assistant turn."""
        parts = [self.build_system_prompt(tools)]

        recent = list(history)[-self.history_window:] if self.history_window > 0 else []
        for message in recent:
            parts.append(f"{ROLE_LABELS[message.role]}: {message.content}")

        parts.append("Assistant:")
        return "\n\n".join(parts)

    @staticmethod
    def format_tool_call(call: ToolCall) -> str:
        """History entry recording what the assistant called."""
        return f"[TOOL_CALL: {call.name}]\n{json.dumps(call.parameters)}"

    @staticmethod
    def format_tool_result(result: ToolResult) -> str:
        """History entry feeding a tool result back to the model."""
        if result.success:
            body = result.output or "Command completed successfully."
        else:
            body = (
                f"FAILED: {result.error}\n\n"
                "You need to fix this issue before continuing. "
                "Think about what prerequisite might be missing."
            )
        return f"[TOOL_RESULT]\n{body}"
