"""
BaseTool: every tool executor implements this interface.

No frameworks. Just a class with an _execute() method.
The public run() always resolves to a ToolResult: provider exceptions are
caught and reported as a failure. There is no retry here. A single
failure is final for the current turn.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Optional

logger = logging.getLogger(__name__)


@dataclass
class ToolResult:
    """What a tool returns after running once."""

    ok: bool
    value: Any = None          # Tool-specific payload (products, image, ...)
    error: Optional[str] = None

    @classmethod
    def success(cls, value: Any) -> "ToolResult":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: str) -> "ToolResult":
        return cls(ok=False, error=error)


class BaseTool:
    """
    Base class for all tool executors. Subclass and implement _execute().

    Attributes:
        name:        Internal ID ("product_search")
        description: What it does (logs and registry listings)
    """

    name: str = ""
    description: str = ""

    async def _execute(self, **params) -> Any:
        raise NotImplementedError(f"Tool '{self.name}' must implement _execute()")

    async def run(self, **params) -> ToolResult:
        start = time.monotonic()
        try:
            value = await self._execute(**params)
        except Exception as e:
            logger.warning(
                "Tool '%s' failed after %dms: %s",
                self.name, int((time.monotonic() - start) * 1000), e,
            )
            return ToolResult.failure(str(e) or type(e).__name__)
        logger.info("Tool '%s' ok: %dms", self.name, int((time.monotonic() - start) * 1000))
        return ToolResult.success(value)
