"""
Main orchestration loop.

Receive turn → ask the oracle → apply decision → run tool → update state.

The Orchestrator is the only writer of a session's state and the only
caller of the oracle and the tools. Two entry points:
  - submit_user_turn(): a chat message, optionally with a photo
  - invoke_action():    a UI button that bypasses the oracle ("tryOn")

Nothing in here lets an exception reach the user. Each failure resolves
into an apology or fallback content, and each fallback is logged and
emitted as an event so operators still see it.
"""

import logging
import time
from typing import Any, Optional

from ..models import Decision, ImageBlob, Product, ProductOffer, RequiredAction, TryOnResult
from ..services import realtime
from ..services.decision_oracle import DecisionOracle, OracleFailure
from ..tools.evaluation import Evaluator, StaticEvaluator
from ..tools.registry import ToolRegistry, get_tool_registry
from ..tools.search import placeholder_products
from . import messages
from .state import SessionStore, build_oracle_history
from .state_machine import InvalidDecisionValue, apply

logger = logging.getLogger(__name__)

TRY_ON = "tryOn"


class UnsupportedAction(ValueError):
    """invoke_action() was called with a kind it does not know."""


class Orchestrator:
    """Owns one SessionStore and drives it turn by turn."""

    def __init__(
        self,
        store: SessionStore,
        oracle: DecisionOracle,
        tools: Optional[ToolRegistry] = None,
        evaluator: Optional[Evaluator] = None,
        events=realtime,
        locale: str = "",
    ):
        self.store = store
        self.oracle = oracle
        self.tools = tools or get_tool_registry()
        self.evaluator = evaluator or StaticEvaluator(locale=locale)
        self.events = events          # turn_started / turn_completed / fallback_used
        self.locale = locale

    @property
    def session_id(self) -> str:
        return self.store.session_id

    def _text(self, key: str, **params) -> str:
        return messages.text(key, self.locale, **params)

    async def _fallback(self, kind: str, reason: str, **data) -> None:
        logger.warning("Fallback (%s) in session %s: %s", kind, self.session_id, reason)
        try:
            await self.events.fallback_used(self.session_id, kind, reason, data or None)
        except Exception as e:
            logger.warning("Could not emit fallback event: %s", e)

    async def _emit(self, name: str, data: dict) -> None:
        try:
            await getattr(self.events, name)(self.session_id, data)
        except Exception as e:
            logger.warning("Could not emit %s event: %s", name, e)

    # ── Chat turn ────────────────────────────────────────────────────

    async def submit_user_turn(self, text: str, image: Optional[ImageBlob] = None) -> None:
        start = time.monotonic()
        store = self.store

        # 1. Busy
        store.set_busy(True)
        try:
            # 2. Save user message (and the reference photo, if any)
            store.add_message("user", text, image=image)
            if image is not None:
                store.set_reference_image(image)

            await self._emit("turn_started", {"has_image": image is not None, "text": text[:100]})

            # 3. History for the oracle: everything before this turn
            history = build_oracle_history(store.state, exclude_last=True)

            # 4. Decide
            decision = await self._decide(history, text, image)

            # 5. Apply
            try:
                new_state, obligations = apply(store.state, decision)
            except InvalidDecisionValue as e:
                await self._fallback("decision", str(e))
                store.add_message("assistant", self._text("turn_failed"))
                return
            store.replace(new_state)

            # 6. Run the tool the decision asked for
            tool_call = obligations.tool_call
            if tool_call and tool_call.action == RequiredAction.CALL_SEARCH_TOOL:
                await self._run_search(tool_call.params["query"])
        finally:
            # 7. Never leave the session stuck on busy
            store.set_busy(False)
            await self._emit("turn_completed", {
                "phase": store.state.phase.value,
                "messages": len(store.state.messages),
                "elapsed_ms": int((time.monotonic() - start) * 1000),
            })
            await store.publish_snapshot()

    async def _decide(self, history: list[dict], text: str, image: Optional[ImageBlob]) -> Decision:
        """Ask the oracle; on any failure keep the phase and apologize."""
        try:
            return await self.oracle.decide(history, text, image)
        except OracleFailure as e:
            reason = str(e)
        except Exception as e:
            logger.exception("Oracle raised unexpectedly")
            reason = f"{type(e).__name__}: {e}"

        await self._fallback("oracle", reason)
        return Decision(
            rationale="Oracle failure",
            user_message=self._text("apology"),
            phase=self.store.state.phase,
            action=RequiredAction.NONE,
        )

    async def _run_search(self, query: str) -> None:
        tool = self.tools.get(RequiredAction.CALL_SEARCH_TOOL)
        if tool is None:
            products = placeholder_products()
            await self._fallback("search", "No search tool registered", query=query)
        else:
            result = await tool.run(query=query)
            if result.ok:
                products = result.value
            else:
                products = placeholder_products()
                await self._fallback("search", result.error or "Search failed", query=query)

        self.store.add_message(
            "assistant",
            self._text("products_found", count=len(products)),
            product_offer=ProductOffer(products=products),
        )

    # ── Direct UI actions ────────────────────────────────────────────

    async def invoke_action(self, kind: str, payload: dict[str, Any]) -> None:
        """
        UI-triggered action that bypasses the oracle.

        Supported kinds: "tryOn" with payload {"product": Product | dict}.
        Raises UnsupportedAction for anything else.
        """
        if kind != TRY_ON:
            raise UnsupportedAction(f"Unsupported action: {kind!r}")

        product = payload.get("product")
        if product is None:
            raise UnsupportedAction("tryOn requires a 'product' in the payload")
        if not isinstance(product, Product):
            product = Product.model_validate(product)

        await self._try_on(product)

    async def _try_on(self, product: Product) -> None:
        store = self.store
        reference = store.state.reference_image

        # 1. No photo yet: ask for one and stop
        if reference is None:
            store.add_message("assistant", self._text("upload_for_tryon"))
            store.request_upload()
            await store.publish_snapshot()
            return

        # 2. Record the intent, then synthesize
        store.add_message("user", self._text("tryon_request", name=product.name))
        store.set_busy(True)
        try:
            image, synthesized = await self._synthesize(reference, product)

            # 3./4. Result message: new image, or the reference photo echoed back
            evaluation = await self.evaluator.evaluate(product, image)
            store.add_message(
                "assistant",
                self._text("tryon_done", name=product.name),
                try_on_result=TryOnResult(
                    image=image,
                    evaluation=evaluation,
                    product_id=product.id,
                    synthesized=synthesized,
                ),
            )
        finally:
            # 5. Always clear busy
            store.set_busy(False)
            await store.publish_snapshot()

    async def _synthesize(self, reference: ImageBlob, product: Product) -> tuple[ImageBlob, bool]:
        tool = self.tools.get(RequiredAction.CALL_VTON_TOOL)
        if tool is None:
            await self._fallback("synthesis", "No synthesis tool registered", product_id=product.id)
            return reference, False

        description = f"Wearing {product.name}, {product.description}"
        result = await tool.run(image=reference, description=description)
        if result.ok:
            return result.value, True

        await self._fallback("synthesis", result.error or "Synthesis failed", product_id=product.id)
        return reference, False
