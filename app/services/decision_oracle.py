"""
Decision oracle: the LLM that steers the shopping conversation.

Given the conversation so far plus the latest user turn, the model answers
with one structured Decision: which phase we are in, what to tell the user,
and which side effect (ask for a photo, run a search, ...) comes next.

The orchestrator only depends on the DecisionOracle protocol, so tests and
local runs can plug in a scripted oracle. Anything that goes wrong in here
(transport, empty answer, bad JSON, schema or enum violation) is raised as
OracleFailure; the caller decides how to recover.
"""

import logging
import time
from typing import Optional, Protocol

from pydantic import ValidationError

from ..core.config import get_settings
from ..models import Decision, ImageBlob, Phase, RequiredAction
from . import llm

logger = logging.getLogger(__name__)


class OracleFailure(Exception):
    """The oracle produced no usable decision for this turn."""


class DecisionOracle(Protocol):
    async def decide(
        self,
        history: list[dict],
        text: str,
        image: Optional[ImageBlob] = None,
    ) -> Decision:
        """history: [{role, text}, ...] oldest first, excluding the current turn."""
        ...


# ── Response schema (strict JSON output) ─────────────────────────────

DECISION_SCHEMA: dict = {
    "type": "object",
    "properties": {
        "thought": {
            "type": "string",
            "description": "Internal reasoning about the current state and user intent (English)",
        },
        "user_message": {
            "type": "string",
            "description": "The response to show to the user",
        },
        "current_phase": {
            "type": "string",
            "enum": [p.value for p in Phase],
            "description": "The current phase of the shopping journey",
        },
        "required_action": {
            "type": "string",
            "enum": [a.value for a in RequiredAction],
            "description": "Action required by the frontend",
        },
        "tool_parameters": {
            "type": "object",
            "description": "Optional parameters for tool calls",
            "properties": {
                "search_query": {"type": "string"},
                "vton_prompt": {"type": "string"},
            },
        },
    },
    "required": ["thought", "user_message", "current_phase", "required_action"],
}

_LANGUAGE = {
    "ja": "user_message must be in **Japanese**",
    "en": "user_message must be in **English**",
}


def _build_system_prompt(locale: str) -> str:
    language_rule = _LANGUAGE.get(locale, _LANGUAGE["ja"])
    return f"""**Role:**
You are the "Visual Shopping Assistant", helping users find fashion items or furniture
accessories, visualize them on their own photo, and evaluate the result.

**Primary Goal:**
Guide the user through a structured shopping journey, from identifying needs to virtual
try-on and evaluation.

**Response Format:**
ALWAYS respond with a single JSON object that follows the provided schema.

**Workflow (state machine):**

IDENTIFY_SUBJECT: decide whether the user wants a standalone "Subject" (sofa, doll) or an
"Accessory" that needs a base subject (sofa cover, doll clothes, human clothes).
  Accessory → GET_USER_IMAGE. Subject → PREFERENCE_SEARCH.

GET_USER_IMAGE: politely ask for a photo of the subject (themselves or their furniture)
with required_action=ASK_IMAGE. Once an image arrives, move to PREFERENCE_SEARCH.

PREFERENCE_SEARCH: narrow down style, color and budget.
  Vague preferences → ask ONE clarifying question with options (A/B/C).
  Clear preferences → required_action=CALL_SEARCH_TOOL with tool_parameters.search_query.
  After results are shown → SELECT_PRODUCT.

SELECT_PRODUCT: the user browses results. Try-on is started by the frontend; acknowledge
choices or offer to search for more.

VIRTUAL_TRYON: required_action=CALL_VTON_TOOL with tool_parameters.vton_prompt.
  Once the image is generated → EVALUATION.

EVALUATION: give a 1-10 score for "Style Match" and "Value" with a brief reason,
required_action=CALL_EVAL_TOOL.

**Constraints & Tone:**
1. {language_rule}. thought must be in **English**.
2. Keep user_message under 100 characters unless explaining an evaluation.
3. Do not process images that violate safety policies (NSFW).
"""


# ── Gemini-backed oracle ─────────────────────────────────────────────

class LLMDecisionOracle:
    """Decision oracle backed by services.llm (Gemini by default)."""

    def __init__(self, locale: str = ""):
        self.locale = (locale or get_settings().assistant_locale).lower()

    def _build_messages(
        self,
        history: list[dict],
        text: str,
        image: Optional[ImageBlob],
    ) -> list[dict]:
        messages: list[dict] = [{"role": "system", "content": _build_system_prompt(self.locale)}]
        for item in history:
            if not item.get("text"):
                continue
            role = "assistant" if item.get("role") == "assistant" else "user"
            messages.append({"role": role, "content": item["text"]})

        if image is not None:
            content: list[dict] = [
                {"type": "text", "text": text},
                {"type": "image_url", "image_url": {"url": image.to_data_uri()}},
            ]
            messages.append({"role": "user", "content": content})
        else:
            messages.append({"role": "user", "content": text})
        return messages

    async def decide(
        self,
        history: list[dict],
        text: str,
        image: Optional[ImageBlob] = None,
    ) -> Decision:
        start = time.monotonic()
        try:
            raw = await llm.chat_json(
                self._build_messages(history, text, image),
                schema=DECISION_SCHEMA,
                schema_name="shopping_response",
            )
        except Exception as e:
            raise OracleFailure(f"Decision request failed: {e}") from e

        decision = parse_decision(raw)
        logger.info(
            "Oracle: %dms | phase=%s action=%s",
            int((time.monotonic() - start) * 1000),
            decision.phase.value,
            decision.action.value,
        )
        return decision


def parse_decision(raw) -> Decision:
    """Validate a decoded oracle answer against the closed Decision schema."""
    if not isinstance(raw, dict):
        raise OracleFailure(f"Decision must be a JSON object, got {type(raw).__name__}")
    try:
        return Decision.model_validate(raw)
    except ValidationError as e:
        raise OracleFailure(f"Decision failed schema validation: {e.error_count()} error(s)") from e
