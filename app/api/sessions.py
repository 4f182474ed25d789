"""
Shopping session API.

POST /v1/sessions                    Start a conversation
GET  /v1/sessions/{id}               Current snapshot
POST /v1/sessions/{id}/turns         Submit a chat turn (text + optional photo)
POST /v1/sessions/{id}/actions       Direct UI action (tryOn)
GET  /v1/sessions/{id}/stream        Server-Sent Events (SSE) snapshot feed

Images travel as base64 data URIs in both directions.
"""

import asyncio
import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from ..core.dependencies import get_sessions
from ..models import ImageBlob, Product, SessionState
from ..orchestrator import messages
from ..orchestrator.orchestrator import Orchestrator, UnsupportedAction
from ..orchestrator.sessions import SessionManager

logger = logging.getLogger(__name__)

sessions_router = APIRouter(tags=["sessions"])

# Seconds between SSE keep-alive comments
STREAM_KEEPALIVE = 15.0


class CreateSessionRequest(BaseModel):
    session_id: Optional[str] = None


class TurnRequest(BaseModel):
    text: str = ""
    image: Optional[str] = None   # data:<mime>;base64,<payload>


class ActionRequest(BaseModel):
    kind: str
    product: Optional[Product] = None


def _dump(state: SessionState) -> dict:
    return state.model_dump(mode="json", by_alias=True)


def _get_session(session_id: str, sessions: SessionManager) -> Orchestrator:
    orchestrator = sessions.get(session_id)
    if orchestrator is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    return orchestrator


def _ensure_idle(orchestrator: Orchestrator) -> None:
    # One in-flight turn per session; the UI should have disabled input
    if orchestrator.store.state.busy:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Session is busy with another turn",
        )


@sessions_router.post("/sessions", status_code=status.HTTP_201_CREATED)
async def create_session(
    request: Optional[CreateSessionRequest] = None,
    sessions: SessionManager = Depends(get_sessions),
):
    """Start a new shopping conversation. Returns the initial snapshot."""
    session_id = request.session_id if request else None
    if session_id and sessions.get(session_id):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Session already exists")
    orchestrator = sessions.create(session_id)
    return _dump(orchestrator.store.snapshot())


@sessions_router.get("/sessions/{session_id}")
async def get_session(session_id: str, sessions: SessionManager = Depends(get_sessions)):
    return _dump(_get_session(session_id, sessions).store.snapshot())


@sessions_router.post("/sessions/{session_id}/turns")
async def submit_turn(
    session_id: str,
    request: TurnRequest,
    sessions: SessionManager = Depends(get_sessions),
):
    """Send a user message (and optionally a photo). Returns the snapshot after the turn."""
    orchestrator = _get_session(session_id, sessions)
    _ensure_idle(orchestrator)

    image = None
    if request.image:
        try:
            image = ImageBlob.from_data_uri(request.image)
        except ValueError as e:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))

    text = request.text.strip()
    if not text:
        if image is None:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="A turn needs text or an image",
            )
        text = messages.text("image_reference", orchestrator.locale)

    await orchestrator.submit_user_turn(text, image)
    return _dump(orchestrator.store.snapshot())


@sessions_router.post("/sessions/{session_id}/actions")
async def invoke_action(
    session_id: str,
    request: ActionRequest,
    sessions: SessionManager = Depends(get_sessions),
):
    """Run a UI action directly (currently only "tryOn"). Returns the snapshot."""
    orchestrator = _get_session(session_id, sessions)
    _ensure_idle(orchestrator)

    payload = {"product": request.product} if request.product else {}
    try:
        await orchestrator.invoke_action(request.kind, payload)
    except UnsupportedAction as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return _dump(orchestrator.store.snapshot())


@sessions_router.get("/sessions/{session_id}/stream")
async def stream_session(
    session_id: str,
    request: Request,
    sessions: SessionManager = Depends(get_sessions),
):
    """
    Stream snapshots via Server-Sent Events (SSE).

    Events:
      data: {"type": "snapshot", "state": {...}}   (once on connect, then after every turn)
      : keep-alive
    """
    orchestrator = _get_session(session_id, sessions)
    queue: asyncio.Queue[SessionState] = asyncio.Queue()

    async def event_generator():
        unsubscribe = orchestrator.store.subscribe(queue.put_nowait)
        try:
            yield f"data: {json.dumps({'type': 'snapshot', 'state': _dump(orchestrator.store.snapshot())})}\n\n"
            while not await request.is_disconnected():
                try:
                    state = await asyncio.wait_for(queue.get(), timeout=STREAM_KEEPALIVE)
                except asyncio.TimeoutError:
                    yield ": keep-alive\n\n"
                    continue
                yield f"data: {json.dumps({'type': 'snapshot', 'state': _dump(state)})}\n\n"
        finally:
            unsubscribe()

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",  # Disable nginx buffering
        },
    )
