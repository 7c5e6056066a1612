"""
Tool Registry - named tool sets.

Step configuration refers to a tool set by key; the registry instance is
passed to the step executor at construction so tests can substitute it.
"""

from __future__ import annotations

from reloop.config.exceptions import ToolSetNotFoundError
from reloop.tools.base import Tool
from reloop.utils.logging import get_logger

logger = get_logger(__name__)


class ToolRegistry:
    """Registry of tool sets keyed by tag."""

    def __init__(self, tool_sets: dict[str, list[Tool]] | None = None) -> None:
        self._sets: dict[str, list[Tool]] = {}
        for key, tools in (tool_sets or {}).items():
            self.register_set(key, tools)

    @classmethod
    def with_builtins(cls) -> ToolRegistry:
        from reloop.tools.builtin import DRAFTING_TOOLS, RESEARCH_TOOLS

        return cls({"drafting": DRAFTING_TOOLS, "research": RESEARCH_TOOLS})

    def register_set(self, key: str, tools: list[Tool]) -> None:
        names = [t.name for t in tools]
        if len(names) != len(set(names)):
            raise ValueError(f"Duplicate tool names in set {key}: {names}")
        if key in self._sets:
            logger.warning("tool_set_overridden", tool_set=key)
        self._sets[key] = list(tools)
        logger.debug("tool_set_registered", tool_set=key, tools=names)

    def resolve(self, key: str | None) -> list[Tool]:
        """Tools for ``key``; no key means no tools."""
        if key is None:
            return []
        try:
            return list(self._sets[key])
        except KeyError:
            raise ToolSetNotFoundError(
                f"Tool set not found: {key}. Available: {self.list_available()}"
            ) from None

    def list_available(self) -> list[str]:
        return sorted(self._sets)
