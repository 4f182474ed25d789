"""
Conversation state machine.

The oracle owns phase logic; this module executes its directives:
  - every decision appends one assistant message and sets the phase
  - the required action is turned into obligations for the orchestrator
    (show the upload button, run a tool with these parameters)

apply() is pure: it returns a new SessionState and never touches the one
it was given, so a rejected decision cannot leave half an update behind.

Try-on (CALL_VTON_TOOL) is recognized but never scheduled from here.
Synthesis only runs when the user presses the try-on button.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from ..models import Decision, Message, Phase, RequiredAction, SessionState

logger = logging.getLogger(__name__)


class InvalidDecisionValue(ValueError):
    """Decision carries a phase or action outside the known sets."""


@dataclass
class ToolCall:
    """A tool run the orchestrator owes for this turn."""

    action: RequiredAction
    params: dict = field(default_factory=dict)


@dataclass
class Obligations:
    """What applying a decision requires of the orchestrator."""

    message: Message                      # The assistant message that was appended
    request_upload: bool = False          # Surface the "upload a photo" affordance
    tool_call: Optional[ToolCall] = None  # At most one per turn


def _validated(decision: Decision) -> tuple[Phase, RequiredAction]:
    try:
        phase = Phase(decision.phase)
    except ValueError as e:
        raise InvalidDecisionValue(f"Unknown phase: {decision.phase!r}") from e
    try:
        action = RequiredAction(decision.action)
    except ValueError as e:
        raise InvalidDecisionValue(f"Unknown action: {decision.action!r}") from e
    return phase, action


def search_query_for(decision: Decision, state: SessionState) -> str:
    """The oracle's query, or the latest user text when it left it blank."""
    params = decision.tool_parameters
    query = (params.search_query or "").strip() if params else ""
    return query or state.last_user_text()


def apply(state: SessionState, decision: Decision) -> tuple[SessionState, Obligations]:
    """
    Apply one oracle decision.

    Returns (new_state, obligations). Raises InvalidDecisionValue if the
    decision's phase or action is not recognized; the input state is
    untouched either way.
    """
    phase, action = _validated(decision)

    message = Message(
        id=state.next_message_id(),
        role="assistant",
        text=decision.user_message,
        decision=decision,
    )
    updates: dict = {
        "messages": [*state.messages, message],
        "phase": phase,
    }
    obligations = Obligations(message=message)

    if action == RequiredAction.ASK_IMAGE:
        obligations.request_upload = True
        updates["upload_requested"] = True

    elif action == RequiredAction.CALL_SEARCH_TOOL:
        obligations.tool_call = ToolCall(
            action=action,
            params={"query": search_query_for(decision, state)},
        )
        updates["upload_requested"] = False

    elif action == RequiredAction.CALL_VTON_TOOL:
        logger.debug("CALL_VTON_TOOL ignored: try-on runs only from the try-on action")

    # CALL_EVAL_TOOL / NONE: the message is all there is

    if state.phase != phase:
        logger.info("Phase transition: %s → %s (action=%s)", state.phase.value, phase.value, action.value)

    return state.model_copy(update=updates), obligations
