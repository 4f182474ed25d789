"""
Realtime notifications. Thin wrapper around core.redis.
Provides typed event helpers for the shopping session lifecycle.

Fallback events are the operator's only view of failures the user never
sees (oracle errors, search outages, failed try-ons).
"""

from ..core import redis as _redis


# ── Generic ──────────────────────────────────────────────────────────

async def notify_session(session_id: str, event_type: str, data: dict = None):
    await _redis.notify_session(session_id, event_type, data)


# ── Turn events ──────────────────────────────────────────────────────

async def turn_started(session_id: str, data: dict = None):
    await notify_session(session_id, "turn.started", data)


async def turn_completed(session_id: str, data: dict = None):
    await notify_session(session_id, "turn.completed", data)


# ── Fallback events ──────────────────────────────────────────────────

async def fallback_used(session_id: str, kind: str, reason: str, data: dict = None):
    """kind: oracle | decision | search | synthesis"""
    payload = {"reason": reason, **(data or {})}
    await notify_session(session_id, f"fallback.{kind}", payload)
