"""
Session registry. Create sessions, look them up, list them.

Sessions live in process memory and end with the process.
"""

import logging
import uuid
from typing import Optional

from ..services.decision_oracle import DecisionOracle, LLMDecisionOracle
from ..tools.evaluation import Evaluator
from ..tools.registry import ToolRegistry
from .orchestrator import Orchestrator
from .state import SessionStore

logger = logging.getLogger(__name__)


class SessionManager:
    """One Orchestrator per conversation, keyed by session id."""

    def __init__(
        self,
        oracle: Optional[DecisionOracle] = None,
        tools: Optional[ToolRegistry] = None,
        evaluator: Optional[Evaluator] = None,
        locale: str = "",
    ):
        self._sessions: dict[str, Orchestrator] = {}
        self._oracle = oracle
        self._tools = tools
        self._evaluator = evaluator
        self._locale = locale

    def create(self, session_id: Optional[str] = None) -> Orchestrator:
        session_id = session_id or uuid.uuid4().hex
        if session_id in self._sessions:
            logger.warning("Session '%s' already exists, returning it", session_id)
            return self._sessions[session_id]

        orchestrator = Orchestrator(
            store=SessionStore.create(session_id, self._locale),
            oracle=self._oracle or LLMDecisionOracle(self._locale),
            tools=self._tools,
            evaluator=self._evaluator,
            locale=self._locale,
        )
        self._sessions[session_id] = orchestrator
        logger.info("Created session: %s (%d active)", session_id, len(self._sessions))
        return orchestrator

    def get(self, session_id: str) -> Optional[Orchestrator]:
        """Get a session by id. Returns None if not found."""
        return self._sessions.get(session_id)


# ── Global manager ───────────────────────────────────────────────────

_manager: Optional[SessionManager] = None


def get_session_manager() -> SessionManager:
    """Get or create the global session manager."""
    global _manager
    if _manager is None:
        _manager = SessionManager()
    return _manager
