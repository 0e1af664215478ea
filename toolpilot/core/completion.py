"""Heuristics for telling planning chatter apart from a final answer."""

import re
from typing import Callable

IncompletePredicate = Callable[[str], bool]

DEFAULT_COMPLETION_TEXT = "Task completed."

# Turns opening like this announce work instead of doing it
PLANNING_PATTERNS = [
    re.compile(r"^##\s*(Next|Step|Plan|Action)", re.IGNORECASE),
    re.compile(
        r"^(Next step|Step \d+|Plan|Action|I will|Let me|I'll|First,|Now I|Then I)",
        re.IGNORECASE,
    ),
    re.compile(r"^\*\*Step", re.IGNORECASE),
    re.compile(r"^(Here's|The next|To do this|I need to)", re.IGNORECASE),
]

COMPLETION_KEYWORDS = re.compile(r"done|complete|success|finish|✅", re.IGNORECASE)

SHORT_RESPONSE_LENGTH = 50


def looks_incomplete(text: str) -> bool:
    """Return True when a turn without a tool call reads like unfinished planning.

    This is a tunable starting policy, not an oracle: a turn counts as
    incomplete if it opens with a planning phrase, ends on a colon, or is very
    short without any completion keyword.
    """
    stripped = text.strip()
    if not stripped:
        return True

    for pattern in PLANNING_PATTERNS:
        if pattern.search(stripped):
            return True

    if stripped.endswith(":"):
        return True

    if len(stripped) < SHORT_RESPONSE_LENGTH and not COMPLETION_KEYWORDS.search(stripped):
        return True

    return False


def clean_final_response(text: str) -> str:
    """Strip tool-call artifacts and formatting noise from a final answer."""
    cleaned = text

    # Tool call fences and JSON blocks that look like calls
    cleaned = re.sub(r"```tool[\s\S]*?```", "", cleaned, flags=re.IGNORECASE)
    cleaned = re.sub(r"```json[\s\S]*?```", "", cleaned, flags=re.IGNORECASE)

    # **TOOL_CALL** / **TOOL_RESULT** blocks
    cleaned = re.sub(r"\*\*TOOL_CALL:?\s*\w*\*\*[\s\S]*?(?=\n\n|\*\*|$)", "", cleaned, flags=re.IGNORECASE)
    cleaned = re.sub(r"\*\*TOOL_RESULT\*\*[\s\S]*?(?=\n\n|\*\*|$)", "", cleaned, flags=re.IGNORECASE)

    # [TOOL_CALL] / [TOOL_RESULT] markers echoed from history
    cleaned = re.sub(r"\[TOOL_CALL:?\s*\w*\][\s\S]*?(?=\n\n|\[|$)", "", cleaned, flags=re.IGNORECASE)
    cleaned = re.sub(r"\[TOOL_RESULT\][\s\S]*?(?=\n\n|\[|$)", "", cleaned, flags=re.IGNORECASE)

    # Model end-of-turn tokens
    cleaned = re.sub(r"</?\w+_of_\w+>", "", cleaned)
    cleaned = re.sub(r"<\|.*?\|>", "", cleaned)

    # Role prefixes
    cleaned = re.sub(r"^(System|User|Assistant|Human|AI):\s*", "", cleaned, flags=re.IGNORECASE | re.MULTILINE)

    # Empty markdown headers
    cleaned = re.sub(r"^#{1,3}\s*$", "", cleaned, flags=re.MULTILINE)

    # Leftover planning lines
    cleaned = re.sub(
        r"^(Next step|Step \d+|Action|Plan|Thinking|Reasoning):.*$",
        "",
        cleaned,
        flags=re.IGNORECASE | re.MULTILINE,
    )

    # Raw git status noise
    cleaned = re.sub(
        r'^(Untracked files|nothing added to commit|use "git|Changes not staged).*$',
        "",
        cleaned,
        flags=re.IGNORECASE | re.MULTILINE,
    )

    cleaned = re.sub(r"\n{3,}", "\n\n", cleaned).strip()

    if len(cleaned) < 10 or re.fullmatch(r"[\s#*\-_]+", cleaned):
        return DEFAULT_COMPLETION_TEXT

    return cleaned
