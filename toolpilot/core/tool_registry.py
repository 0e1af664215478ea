"""Tool registry holding built-in and provider-contributed tool definitions."""

import logging
from typing import Any, Iterable, Optional

from .models import ToolDefinition, ToolParameter

logger = logging.getLogger(__name__)

# JSON Schema types that are passed through as-is; anything else is a string
KNOWN_TYPES = {"string", "number", "integer", "boolean", "array", "object", "null"}


def parameters_from_json_schema(schema: Optional[dict[str, Any]]) -> dict[str, ToolParameter]:
    """Convert an external tool's JSON Schema into a parameter map.

    Args:
        schema: Object schema with ``properties`` and optional ``required``.

    Returns:
        Parameter name to ToolParameter mapping, in schema order.
    """
    if not schema:
        return {}

    properties = schema.get("properties") or {}
    required = set(schema.get("required") or [])

    params = {}
    for name, prop in properties.items():
        prop = prop if isinstance(prop, dict) else {}
        json_type = prop.get("type", "string")

        # ["string", "null"] -> "string"
        if isinstance(json_type, list):
            json_type = next((t for t in json_type if t != "null"), "string")
        if json_type not in KNOWN_TYPES:
            json_type = "string"

        params[name] = ToolParameter(
            type=json_type,
            description=prop.get("description", ""),
            required=name in required,
        )
    return params


class ToolRegistry:
    """Static tool definitions plus namespaced definitions from providers."""

    def __init__(self, definitions: Iterable[ToolDefinition] = ()):
        self._static: dict[str, ToolDefinition] = {}
        self._provided: dict[str, dict[str, ToolDefinition]] = {}
        for definition in definitions:
            self.register(definition)

    def register(self, definition: ToolDefinition) -> None:
        """Register a built-in tool definition."""
        if definition.name in self._static:
            logger.warning(f"Replacing tool definition: {definition.name}")
        self._static[definition.name] = definition

    def add_provider_tools(
        self,
        prefix: str,
        definitions: Iterable[ToolDefinition],
        label: Optional[str] = None,
        requires_approval: bool = False,
    ) -> list[ToolDefinition]:
        """Register tools from an external provider under ``prefix_<name>``.

        Args:
            prefix: Namespace prefix of the provider (e.g. ``mcp_github``).
            definitions: Unprefixed tool definitions reported by the provider.
            label: Tag shown in front of each description.
            requires_approval: Whether calls to these tools must be approved.

        Returns:
            The namespaced definitions that were registered.
        """
        label = label or prefix
        namespaced = {}
        for definition in definitions:
            full_name = f"{prefix}_{definition.name}"
            namespaced[full_name] = ToolDefinition(
                name=full_name,
                description=f"[{label}] {definition.description}".strip(),
                parameters=dict(definition.parameters),
                requires_approval=requires_approval or definition.requires_approval,
                provider=prefix,
            )

        self._provided[prefix] = namespaced
        logger.info(f"Registered {len(namespaced)} tools from provider '{prefix}'")
        return list(namespaced.values())

    def remove_provider_tools(self, prefix: str) -> None:
        self._provided.pop(prefix, None)

    def get_all_tool_definitions(self) -> list[ToolDefinition]:
        """Get built-in definitions followed by provider definitions."""
        tools = list(self._static.values())
        for definitions in self._provided.values():
            tools.extend(definitions.values())
        return tools

    def get_tool_definition(self, name: str) -> Optional[ToolDefinition]:
        if name in self._static:
            return self._static[name]
        for definitions in self._provided.values():
            if name in definitions:
                return definitions[name]
        return None

    def is_sensitive(self, name: str) -> bool:
        """Whether calling ``name`` needs approval. Unknown tools do not."""
        definition = self.get_tool_definition(name)
        return definition is not None and definition.requires_approval

    def providers(self) -> list[str]:
        return list(self._provided.keys())

    def __contains__(self, name: str) -> bool:
        return self.get_tool_definition(name) is not None

    def __len__(self) -> int:
        return len(self._static) + sum(len(d) for d in self._provided.values())
