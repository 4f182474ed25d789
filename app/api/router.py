"""
Main API router. Mounts all sub-routers.
"""

from fastapi import APIRouter

router = APIRouter()


# ── Health ───────────────────────────────────────────────────────────

@router.get("/health")
async def health():
    return {"status": "ok", "service": "styleai"}


# ── Feature config ───────────────────────────────────────────────────

@router.get("/config")
async def feature_config():
    """Which optional capabilities are switched on (the UI hides what isn't)."""
    from ..core.config import get_settings
    from ..core.flags import get_flags

    flags = get_flags()
    return {
        "locale": get_settings().assistant_locale,
        "search_grounding": flags.use_search_grounding,
        "tryon": flags.enable_tryon,
        "realtime_events": flags.use_redis,
    }


# ── V1 routes ────────────────────────────────────────────────────────

from .sessions import sessions_router

router.include_router(sessions_router, prefix="/v1")
