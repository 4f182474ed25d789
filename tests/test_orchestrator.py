"""Orchestrator tests: the two entry points and every fallback path."""

import pytest

from app.models import Decision, ImageBlob, Phase, Product, RequiredAction
from app.orchestrator import messages
from app.orchestrator.orchestrator import Orchestrator, UnsupportedAction
from app.orchestrator.state import SessionStore
from app.services.decision_oracle import OracleFailure

from conftest import RENDERED_BYTES, make_decision

DRESS = Product(
    id="p-1", name="Red Wrap Dress", price="¥4,990",
    image_url="https://example.com/dress.jpg", description="Soft jersey.",
    link="https://example.com/dress", source="Example",
)


def _text(key, **params):
    return messages.text(key, "ja", **params)


# ── submit_user_turn ─────────────────────────────────────────────────


class TestSubmitUserTurn:

    @pytest.mark.asyncio
    async def test_ask_image_raises_upload_flag_and_runs_no_tool(self, orchestrator, oracle, search_provider):
        oracle.push(make_decision(
            phase=Phase.GET_USER_IMAGE, action=RequiredAction.ASK_IMAGE, message="写真をお願いします",
        ))

        await orchestrator.submit_user_turn("I want a red dress")

        state = orchestrator.store.state
        assert state.phase is Phase.GET_USER_IMAGE
        assert state.upload_requested is True
        assert state.busy is False
        assert search_provider.queries == []
        assert [m.role for m in state.messages] == ["assistant", "user", "assistant"]
        assert state.messages[-1].text == "写真をお願いします"

    @pytest.mark.asyncio
    async def test_oracle_sees_history_without_current_turn(self, orchestrator, oracle):
        oracle.push(make_decision(), make_decision())

        await orchestrator.submit_user_turn("first")
        await orchestrator.submit_user_turn("second")

        second_call = oracle.calls[1]
        assert second_call["text"] == "second"
        assert [h["role"] for h in second_call["history"]] == ["assistant", "user", "assistant"]
        assert second_call["history"][1]["text"] == "first"
        assert all(set(h) == {"role", "text"} for h in second_call["history"])

    @pytest.mark.asyncio
    async def test_image_turn_sets_reference_image_last_write_wins(self, orchestrator, oracle, reference_image):
        oracle.push(make_decision(), make_decision())
        newer = ImageBlob(data=b"\x89PNG-newer", mime_type="image/png")

        await orchestrator.submit_user_turn("here is me", reference_image)
        assert orchestrator.store.state.reference_image == reference_image
        assert oracle.calls[0]["image"] == reference_image

        await orchestrator.submit_user_turn("another one", newer)
        assert orchestrator.store.state.reference_image == newer

    @pytest.mark.asyncio
    async def test_image_turn_clears_pending_upload_prompt(self, orchestrator, oracle, reference_image):
        oracle.push(make_decision(action=RequiredAction.ASK_IMAGE), make_decision(phase=Phase.PREFERENCE_SEARCH))

        await orchestrator.submit_user_turn("I need doll clothes")
        assert orchestrator.store.state.upload_requested is True

        await orchestrator.submit_user_turn("photo attached", reference_image)
        assert orchestrator.store.state.upload_requested is False

    @pytest.mark.parametrize("error", [OracleFailure("bad JSON"), RuntimeError("connection reset")])
    @pytest.mark.asyncio
    async def test_oracle_failure_apologizes_and_keeps_phase(self, orchestrator, oracle, events, error):
        oracle.push(error)

        await orchestrator.submit_user_turn("hello")

        state = orchestrator.store.state
        assert state.busy is False
        assert state.phase is Phase.IDENTIFY_SUBJECT
        assert state.messages[-1].role == "assistant"
        assert state.messages[-1].text == _text("apology")
        assert "fallback.oracle" in events.names()

    @pytest.mark.asyncio
    async def test_invalid_decision_appends_failure_message_only(self, orchestrator, oracle, events):
        oracle.push(Decision.model_construct(
            rationale="r", user_message="never shown", phase="CHECKOUT",
            action=RequiredAction.NONE, tool_parameters=None,
        ))

        await orchestrator.submit_user_turn("hello")

        state = orchestrator.store.state
        assert state.busy is False
        assert state.phase is Phase.IDENTIFY_SUBJECT
        assert [m.text for m in state.messages[1:]] == ["hello", _text("turn_failed")]
        assert "fallback.decision" in events.names()

    @pytest.mark.asyncio
    async def test_search_with_empty_query_uses_last_user_message(self, orchestrator, oracle, search_provider):
        oracle.push(make_decision(
            phase=Phase.PREFERENCE_SEARCH, action=RequiredAction.CALL_SEARCH_TOOL, search_query="",
        ))

        await orchestrator.submit_user_turn("I want a red dress")

        assert search_provider.queries == ["I want a red dress"]

    @pytest.mark.asyncio
    async def test_search_results_are_appended_as_product_offer(self, orchestrator, oracle):
        oracle.push(make_decision(
            phase=Phase.PREFERENCE_SEARCH, action=RequiredAction.CALL_SEARCH_TOOL, search_query="red dress",
        ))

        await orchestrator.submit_user_turn("red, casual, under 5000 yen")

        last = orchestrator.store.state.messages[-1]
        assert last.role == "assistant"
        assert last.text == _text("products_found", count=1)
        product = last.product_offer.products[0]
        assert product.name == "Red Wrap Dress"
        assert product.price == "4990"
        assert product.id == "prod-0"

    @pytest.mark.asyncio
    async def test_empty_search_result_is_not_a_failure(self, orchestrator, oracle, search_provider, events):
        search_provider.products = []
        oracle.push(make_decision(action=RequiredAction.CALL_SEARCH_TOOL, search_query="unicorn sofa"))

        await orchestrator.submit_user_turn("unicorn sofa")

        offer = orchestrator.store.state.messages[-1].product_offer
        assert offer.products == []
        assert "fallback.search" not in events.names()

    @pytest.mark.asyncio
    async def test_search_failure_shows_placeholder_products(self, orchestrator, oracle, search_provider, events):
        search_provider.error = RuntimeError("quota exceeded")
        oracle.push(make_decision(action=RequiredAction.CALL_SEARCH_TOOL, search_query="dress"))

        await orchestrator.submit_user_turn("dress please")

        state = orchestrator.store.state
        products = state.messages[-1].product_offer.products
        assert len(products) >= 1
        for p in products:
            assert p.id and p.image_url and p.link and p.source
        assert state.busy is False
        assert ("fallback.search", {"reason": "quota exceeded", "query": "dress"}) in events.events

    @pytest.mark.asyncio
    async def test_vton_action_from_oracle_is_not_auto_executed(self, orchestrator, oracle, tryon_provider, reference_image):
        oracle.push(make_decision(phase=Phase.VIRTUAL_TRYON, action=RequiredAction.CALL_VTON_TOOL))

        await orchestrator.submit_user_turn("try it on", reference_image)

        assert tryon_provider.calls == []
        assert orchestrator.store.state.messages[-1].try_on_result is None

    @pytest.mark.asyncio
    async def test_subscribers_get_an_idle_snapshot_after_the_turn(self, orchestrator, oracle):
        oracle.push(make_decision(phase=Phase.PREFERENCE_SEARCH))
        snapshots = []
        orchestrator.store.subscribe(snapshots.append)

        await orchestrator.submit_user_turn("sofa")

        assert len(snapshots) == 1
        assert snapshots[0].busy is False
        assert snapshots[0].phase is Phase.PREFERENCE_SEARCH
        assert snapshots[0] is not orchestrator.store.state

    @pytest.mark.asyncio
    async def test_emits_turn_events(self, orchestrator, oracle, events):
        oracle.push(make_decision())

        await orchestrator.submit_user_turn("hi")

        assert events.names() == ["turn.started", "turn.completed"]


# ── invoke_action("tryOn") ───────────────────────────────────────────


class TestTryOn:

    @pytest.mark.asyncio
    async def test_without_reference_image_asks_for_photo_every_time(self, orchestrator, tryon_provider):
        await orchestrator.invoke_action("tryOn", {"product": DRESS})
        first = orchestrator.store.snapshot()
        await orchestrator.invoke_action("tryOn", {"product": DRESS})
        second = orchestrator.store.snapshot()

        assert first.messages[-1].text == second.messages[-1].text == _text("upload_for_tryon")
        assert len(second.messages) == len(first.messages) + 1
        for snap in (first, second):
            assert snap.upload_requested is True
            assert snap.busy is False
            assert snap.phase is Phase.IDENTIFY_SUBJECT
            assert snap.reference_image is None
        assert tryon_provider.calls == []

    @pytest.mark.asyncio
    async def test_success_attaches_synthesized_image_and_evaluation(
        self, orchestrator, oracle, tryon_provider, reference_image,
    ):
        oracle.push(make_decision())
        await orchestrator.submit_user_turn("me", reference_image)

        await orchestrator.invoke_action("tryOn", {"product": DRESS})

        state = orchestrator.store.state
        intent, result = state.messages[-2], state.messages[-1]
        assert intent.role == "user"
        assert intent.text == _text("tryon_request", name="Red Wrap Dress")
        assert result.text == _text("tryon_done", name="Red Wrap Dress")
        assert result.try_on_result.image.data == RENDERED_BYTES
        assert result.try_on_result.synthesized is True
        assert result.try_on_result.evaluation.score == 8.8
        assert result.try_on_result.product_id == "p-1"
        assert state.busy is False

        image_bytes, mime_type, description = tryon_provider.calls[0]
        assert image_bytes == reference_image.data
        assert mime_type == "image/png"
        assert description == "Wearing Red Wrap Dress, Soft jersey."

    @pytest.mark.asyncio
    async def test_failure_returns_reference_image_unchanged(
        self, orchestrator, oracle, tryon_provider, reference_image, events,
    ):
        tryon_provider.error = RuntimeError("No image generated")
        oracle.push(make_decision())
        await orchestrator.submit_user_turn("me", reference_image)

        await orchestrator.invoke_action("tryOn", {"product": DRESS.model_dump()})

        result = orchestrator.store.state.messages[-1].try_on_result
        assert result is not None
        assert result.image.data == reference_image.data
        assert result.synthesized is False
        assert orchestrator.store.state.busy is False
        assert "fallback.synthesis" in events.names()

    @pytest.mark.asyncio
    async def test_unknown_action_kind_is_rejected(self, orchestrator):
        with pytest.raises(UnsupportedAction):
            await orchestrator.invoke_action("checkout", {"product": DRESS})

    @pytest.mark.asyncio
    async def test_try_on_without_product_is_rejected(self, orchestrator):
        with pytest.raises(UnsupportedAction):
            await orchestrator.invoke_action("tryOn", {})

    @pytest.mark.parametrize("locale", ["ja", "en"])
    @pytest.mark.asyncio
    async def test_evaluation_reason_follows_session_locale(self, oracle, tools, events, reference_image, locale):
        orchestrator = Orchestrator(
            store=SessionStore.create("locale-session", locale=locale),
            oracle=oracle, tools=tools, events=events, locale=locale,
        )
        oracle.push(make_decision())
        await orchestrator.submit_user_turn("me", reference_image)

        await orchestrator.invoke_action("tryOn", {"product": DRESS})

        evaluation = orchestrator.store.state.messages[-1].try_on_result.evaluation
        assert evaluation.reason == messages.text("evaluation_reason", locale)
