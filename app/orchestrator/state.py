"""
Session state management.

One SessionStore per conversation, held in process memory:
  - owns the SessionState aggregate (messages, phase, reference image, busy)
  - builds the oracle's view of the history
  - hands out deep-copied snapshots and pushes them to subscribers

Only the orchestrator writes through this store. Everyone else reads
snapshots.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Union

from ..models import ImageBlob, Message, Phase, SessionState
from . import messages

logger = logging.getLogger(__name__)

SnapshotListener = Callable[[SessionState], Union[None, Awaitable[None]]]


def initial_state(session_id: str, locale: str = "") -> SessionState:
    """Fresh conversation: first phase plus the assistant's greeting."""
    greeting = Message(id="init", role="assistant", text=messages.text("greeting", locale))
    return SessionState(session_id=session_id, messages=[greeting], phase=Phase.IDENTIFY_SUBJECT)


class SessionStore:
    """Holder of one session's state."""

    def __init__(self, state: SessionState):
        self._state = state
        self._listeners: list[SnapshotListener] = []

    @classmethod
    def create(cls, session_id: str, locale: str = "") -> "SessionStore":
        return cls(initial_state(session_id, locale))

    # ── Reads ────────────────────────────────────────────────────────

    @property
    def state(self) -> SessionState:
        """The live aggregate. Orchestrator use only."""
        return self._state

    @property
    def session_id(self) -> str:
        return self._state.session_id

    def snapshot(self) -> SessionState:
        return self._state.model_copy(deep=True)

    # ── Writes ───────────────────────────────────────────────────────

    def replace(self, state: SessionState) -> None:
        """Swap in a state produced by the state machine."""
        self._state = state

    def add_message(
        self,
        role: str,
        text: str,
        image: Optional[ImageBlob] = None,
        **attachments,
    ) -> Message:
        """Append a message. Ids are sequential and only used for UI keying."""
        msg = Message(
            id=self._state.next_message_id(),
            role=role,
            text=text,
            attached_image=image,
            **attachments,
        )
        self._state = self._state.model_copy(update={"messages": [*self._state.messages, msg]})
        return msg

    def set_busy(self, busy: bool) -> None:
        self._state = self._state.model_copy(update={"busy": busy})

    def set_reference_image(self, image: ImageBlob) -> None:
        """Last write wins. Receiving a photo also retires the upload prompt."""
        self._state = self._state.model_copy(
            update={"reference_image": image, "upload_requested": False}
        )

    def request_upload(self) -> None:
        self._state = self._state.model_copy(update={"upload_requested": True})

    # ── Subscription ─────────────────────────────────────────────────

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Register a snapshot listener. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def publish_snapshot(self) -> None:
        """Push a snapshot to every listener. A failing listener is logged and skipped."""
        for listener in list(self._listeners):
            try:
                result = listener(self.snapshot())
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.warning("Snapshot listener failed (session=%s): %s", self.session_id, e)


def build_oracle_history(state: SessionState, exclude_last: bool = True) -> list[dict]:
    """
    Oracle view of the conversation: role + text only, oldest first.

    The last message (the turn being decided) is left out by default.
    Attachments are not replayed; a note marks turns that carried an image
    or product cards so the model knows they happened.
    """
    source = state.messages[:-1] if (exclude_last and state.messages) else state.messages
    history = []
    for m in source:
        text = m.text
        if m.attached_image is not None:
            text += "\n[The user attached an image in this message]"
        if m.product_offer is not None:
            names = ", ".join(p.name for p in m.product_offer.products[:6])
            text += f"\n[Product cards shown: {names}]"
        if m.try_on_result is not None:
            text += "\n[A try-on image was shown in this message]"
        if text:
            history.append({"role": m.role, "text": text})
    return history
