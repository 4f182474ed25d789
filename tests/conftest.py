"""Shared fixtures: scripted oracle, fake providers, recording event sink."""

from typing import Optional

import pytest

from app.models import Decision, ImageBlob, Phase, RequiredAction, ToolParameters
from app.orchestrator.orchestrator import Orchestrator
from app.orchestrator.state import SessionStore
from app.tools.registry import ToolRegistry
from app.tools.search import SearchTool
from app.tools.synthesis import SynthesisTool

PNG_BYTES = b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\xff\x10reference"
RENDERED_BYTES = b"\x89PNG\r\n\x1a\n\x00rendered\xfe\x00"


def make_decision(
    phase: Phase = Phase.IDENTIFY_SUBJECT,
    action: RequiredAction = RequiredAction.NONE,
    message: str = "OK",
    search_query: Optional[str] = None,
) -> Decision:
    params = ToolParameters(search_query=search_query) if search_query is not None else None
    return Decision(
        rationale="test",
        user_message=message,
        phase=phase,
        action=action,
        tool_parameters=params,
    )


class ScriptedOracle:
    """Returns queued decisions (or raises queued exceptions) in order."""

    def __init__(self, *answers):
        self.answers = list(answers)
        self.calls: list[dict] = []

    def push(self, *answers):
        self.answers.extend(answers)

    async def decide(self, history, text, image=None):
        self.calls.append({"history": history, "text": text, "image": image})
        answer = self.answers.pop(0)
        if isinstance(answer, BaseException):
            raise answer
        return answer


class FakeSearchProvider:
    def __init__(self, products=None, error: Optional[Exception] = None):
        self.products = products if products is not None else []
        self.error = error
        self.queries: list[str] = []

    async def __call__(self, query: str) -> list[dict]:
        self.queries.append(query)
        if self.error:
            raise self.error
        return self.products


class FakeTryonProvider:
    def __init__(self, result=(RENDERED_BYTES, "image/png"), error: Optional[Exception] = None):
        self.result = result
        self.error = error
        self.calls: list[tuple] = []

    async def __call__(self, image_bytes: bytes, mime_type: str, description: str):
        self.calls.append((image_bytes, mime_type, description))
        if self.error:
            raise self.error
        return self.result


class RecordingEvents:
    """Stands in for services.realtime."""

    def __init__(self):
        self.events: list[tuple[str, dict]] = []

    async def turn_started(self, session_id, data=None):
        self.events.append(("turn.started", data or {}))

    async def turn_completed(self, session_id, data=None):
        self.events.append(("turn.completed", data or {}))

    async def fallback_used(self, session_id, kind, reason, data=None):
        self.events.append((f"fallback.{kind}", {"reason": reason, **(data or {})}))

    def names(self) -> list[str]:
        return [name for name, _ in self.events]


@pytest.fixture
def reference_image() -> ImageBlob:
    return ImageBlob(data=PNG_BYTES, mime_type="image/png")


@pytest.fixture
def oracle() -> ScriptedOracle:
    return ScriptedOracle()


@pytest.fixture
def search_provider() -> FakeSearchProvider:
    return FakeSearchProvider(products=[
        {"name": "Red Wrap Dress", "price": 4990, "description": "Soft jersey."},
    ])


@pytest.fixture
def tryon_provider() -> FakeTryonProvider:
    return FakeTryonProvider()


@pytest.fixture
def tools(search_provider, tryon_provider) -> ToolRegistry:
    registry = ToolRegistry()
    registry.register(RequiredAction.CALL_SEARCH_TOOL, SearchTool(provider=search_provider))
    registry.register(RequiredAction.CALL_VTON_TOOL, SynthesisTool(provider=tryon_provider))
    return registry


@pytest.fixture
def events() -> RecordingEvents:
    return RecordingEvents()


@pytest.fixture
def orchestrator(oracle, tools, events) -> Orchestrator:
    return Orchestrator(
        store=SessionStore.create("test-session", locale="ja"),
        oracle=oracle,
        tools=tools,
        events=events,
        locale="ja",
    )
