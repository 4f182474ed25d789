"""
FastAPI dependencies. Injected into route handlers.
"""

from ..orchestrator.sessions import SessionManager, get_session_manager


def get_sessions() -> SessionManager:
    """The process-wide session manager. Override in tests."""
    return get_session_manager()
