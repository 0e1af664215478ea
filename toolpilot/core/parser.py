"""Extraction of a single tool call from free-text model output."""

import json
import logging
import re
from typing import Any, Iterator, Optional

from .models import ToolCall

logger = logging.getLogger(__name__)


class ResponseParser:
    """Recovers one structured tool call from a model turn.

    Models do not follow the wire format reliably, so several encodings are
    tried in priority order:

    1. a fenced block tagged ``tool`` holding one JSON object;
    2. a bare single-line ``{"name": ..., "parameters": {...}}`` object;
    3. any balanced JSON object carrying ``name`` and ``parameters``, isolated
       by brace-depth counting so trailing junk after the closing brace
       (end-of-turn markers and the like) does not break decoding.

    The first structurally valid match wins. Decode failures fall through to
    the next strategy; when every strategy fails ``parse`` returns None.
    """

    FENCED_PATTERN = re.compile(r"```tool\b[ \t]*\n?(.*?)\n?```", re.DOTALL | re.IGNORECASE)
    BARE_PATTERN = re.compile(
        r'\{\s*"name"\s*:\s*"[^"\n]+"\s*,\s*"parameters"\s*:\s*\{[^\n]*\}\s*\}'
    )

    def parse(self, text: str) -> Optional[ToolCall]:
        """Return the first tool call found in ``text`` or None."""
        if not text:
            return None

        for strategy in (self._parse_fenced, self._parse_bare, self._parse_embedded):
            call = strategy(text)
            if call is not None:
                return call
        return None

    def _parse_fenced(self, text: str) -> Optional[ToolCall]:
        match = self.FENCED_PATTERN.search(text)
        if not match:
            return None
        return self._decode(match.group(1).strip(), "fenced")

    def _parse_bare(self, text: str) -> Optional[ToolCall]:
        match = self.BARE_PATTERN.search(text)
        if not match:
            return None
        return self._decode(match.group(0), "bare")

    def _parse_embedded(self, text: str) -> Optional[ToolCall]:
        if '"name"' not in text or '"parameters"' not in text:
            return None

        for candidate in self._balanced_objects(text):
            if '"name"' not in candidate or '"parameters"' not in candidate:
                continue
            call = self._decode(candidate, "embedded", require_parameters=True)
            if call is not None:
                return call
        return None

    @staticmethod
    def _balanced_objects(text: str) -> Iterator[str]:
        """Yield every balanced ``{...}`` span, in order of its opening brace.

        Braces inside JSON string literals are ignored.
        """
        for start, char in enumerate(text):
            if char != "{":
                continue

            depth = 0
            in_string = False
            escaped = False
            for index in range(start, len(text)):
                current = text[index]
                if in_string:
                    if escaped:
                        escaped = False
                    elif current == "\\":
                        escaped = True
                    elif current == '"':
                        in_string = False
                    continue

                if current == '"':
                    in_string = True
                elif current == "{":
                    depth += 1
                elif current == "}":
                    depth -= 1
                    if depth == 0:
                        yield text[start:index + 1]
                        break

    def _decode(
        self,
        raw: str,
        strategy: str,
        require_parameters: bool = False,
    ) -> Optional[ToolCall]:
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.debug(f"Failed to decode {strategy} tool call: {e}")
            return None

        if not isinstance(data, dict):
            return None

        name = data.get("name")
        if not isinstance(name, str) or not name:
            return None
        if require_parameters and "parameters" not in data:
            return None

        return ToolCall(name=name, parameters=self._normalize_parameters(data.get("parameters")))

    @staticmethod
    def _normalize_parameters(raw: Any) -> dict[str, str]:
        """Coerce parameters into a string map. Null values are dropped as unset."""
        if not isinstance(raw, dict):
            return {}

        parameters = {}
        for key, value in raw.items():
            if value is None:
                continue
            if isinstance(value, str):
                parameters[str(key)] = value
            else:
                parameters[str(key)] = json.dumps(value)
        return parameters
