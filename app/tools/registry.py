"""
Tool registry. Maps the oracle's required actions to tool executors.
"""

import logging
from typing import Optional

from ..models import RequiredAction
from .base import BaseTool

logger = logging.getLogger(__name__)


class ToolRegistry:
    """Which executor runs for which RequiredAction."""

    def __init__(self):
        self._tools: dict[RequiredAction, BaseTool] = {}

    def register(self, action: RequiredAction, tool: BaseTool) -> None:
        if action in self._tools:
            logger.warning("Tool for %s already registered, overwriting", action.value)
        self._tools[action] = tool
        logger.debug("Registered tool: %s → %s", action.value, tool.name)

    def get(self, action: RequiredAction) -> Optional[BaseTool]:
        """Get the tool for an action. Returns None if nothing is registered."""
        return self._tools.get(action)

    def get_tool_names(self) -> list[str]:
        return [t.name for t in self._tools.values()]


# ── Global registry ──────────────────────────────────────────────────

_registry: Optional[ToolRegistry] = None


def get_tool_registry() -> ToolRegistry:
    """Get or create the global tool registry."""
    global _registry
    if _registry is None:
        _registry = build_default_registry()
    return _registry


def build_default_registry() -> ToolRegistry:
    from .search import SearchTool
    from .synthesis import SynthesisTool

    registry = ToolRegistry()
    registry.register(RequiredAction.CALL_SEARCH_TOOL, SearchTool())
    registry.register(RequiredAction.CALL_VTON_TOOL, SynthesisTool())
    logger.info(
        "Tools ready: %d tools [%s]",
        len(registry.get_tool_names()),
        ", ".join(registry.get_tool_names()),
    )
    return registry
