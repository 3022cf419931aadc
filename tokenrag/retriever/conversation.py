"""
Conversation Sessions

A session is either active (accepting query/answer turns) or closed
(history discarded). Sessions are created on first contact and closed on
an explicit termination from the transport layer.
"""

import logging
import threading
from collections import deque
from enum import Enum
from typing import Deque, Dict, List, Optional

from ..common.errors import SessionClosedError
from ..common.schemas.conversation import ConversationMessage, Role

logger = logging.getLogger("tokenrag.retriever.conversation")

DEFAULT_MAX_HISTORY = 20


class SessionState(str, Enum):
    ACTIVE = "active"
    CLOSED = "closed"


class ConversationSession:
    """
    Ordered, capped history for one client.

    Only the owning handler appends to a session, one turn at a time.
    Once more than max_history messages are appended the oldest are dropped.
    """

    def __init__(self, session_id: str, max_history: int = DEFAULT_MAX_HISTORY):
        self.session_id = session_id
        self.state = SessionState.ACTIVE
        self._history: Deque[ConversationMessage] = deque(maxlen=max_history)

    @property
    def is_active(self) -> bool:
        return self.state == SessionState.ACTIVE

    @property
    def history(self) -> List[ConversationMessage]:
        """Snapshot of the retained history, oldest first"""
        return list(self._history)

    def append(self, message: ConversationMessage) -> None:
        if not self.is_active:
            raise SessionClosedError(f"Session {self.session_id} is closed")
        self._history.append(message)

    def add_user_message(self, content: str) -> None:
        self.append(ConversationMessage(role=Role.USER, content=content))

    def add_assistant_message(self, content: str) -> None:
        self.append(ConversationMessage(role=Role.ASSISTANT, content=content))

    def close(self) -> None:
        self.state = SessionState.CLOSED
        self._history.clear()


class SessionRegistry:
    """Session id → ConversationSession, safe for concurrent lookup/insert/remove."""

    def __init__(self, max_history: int = DEFAULT_MAX_HISTORY):
        self._max_history = max_history
        self._sessions: Dict[str, ConversationSession] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def get(self, session_id: str) -> Optional[ConversationSession]:
        with self._lock:
            return self._sessions.get(session_id)

    def get_or_create(self, session_id: str) -> ConversationSession:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                session = ConversationSession(session_id, self._max_history)
                self._sessions[session_id] = session
                logger.info("Opened session %s", session_id)
            return session

    def close(self, session_id: str) -> bool:
        """Close and forget a session. Returns False if it did not exist."""
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        session.close()
        logger.info("Closed session %s", session_id)
        return True

    def close_all(self) -> None:
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for session in sessions:
            session.close()
