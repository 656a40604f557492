"""
Session Manager

In-memory store for assistant chat sessions. Each session belongs to exactly
one user; lookups can be scoped to the owner so one user's session id never
exposes another user's history. Callers only receive snapshots.
"""

import logging
import threading
import time
import uuid
from dataclasses import replace
from typing import Callable, Dict, Iterable, List, Optional

from ai_learning_assistant.errors import SessionNotFound
from ai_learning_assistant.models import ChatSession, Message, Role, SessionSeed

logger = logging.getLogger(__name__)

DEFAULT_MAX_MESSAGES = 50
DEFAULT_SESSION_TIMEOUT = 60 * 60


def new_message(session_id: str, role: Role, content: str, metadata: Optional[Dict] = None) -> Message:
    """Build a message with a fresh id and the current timestamp."""
    return Message(
        id=f"msg_{uuid.uuid4().hex}",
        session_id=session_id,
        role=role,
        content=content,
        timestamp=time.time(),
        metadata=metadata or {},
    )


def _snapshot(session: ChatSession) -> ChatSession:
    return replace(session, messages=list(session.messages))


class SessionManager:
    """
    Manages chat sessions in memory.

    All access goes through a re-entrant lock; expiry is checked lazily on
    access and by cleanup_expired_sessions().
    """

    def __init__(
        self,
        max_messages: int = DEFAULT_MAX_MESSAGES,
        session_timeout: float = DEFAULT_SESSION_TIMEOUT,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize SessionManager.

        Args:
            max_messages: History cap per session (oldest dropped first)
            session_timeout: Idle seconds after which a session expires
            clock: Wall-clock source, injectable for tests
        """
        self.max_messages = max_messages
        self.session_timeout = session_timeout
        self._clock = clock
        self._sessions: Dict[str, ChatSession] = {}
        self._lock = threading.RLock()

    def create_session(self, user_id: str, seed: SessionSeed) -> ChatSession:
        now = self._clock()
        session = ChatSession(
            id=f"session_{uuid.uuid4().hex}",
            user_id=user_id,
            context=seed,
            messages=[],
            created_at=now,
            last_activity=now,
        )
        with self._lock:
            self._sessions[session.id] = session
        logger.info(f"✅ [SessionManager] Created session {session.id} for user {user_id}")
        return _snapshot(session)

    def get_session(self, session_id: str, user_id: Optional[str] = None) -> Optional[ChatSession]:
        """
        Get a session snapshot.

        Args:
            session_id: Session identifier
            user_id: When given, a session owned by someone else is reported as absent

        Returns:
            ChatSession snapshot or None if missing, expired or not owned by user_id
        """
        with self._lock:
            session = self._live_session(session_id)
            if session is None:
                return None
            if user_id is not None and session.user_id != user_id:
                return None
            return _snapshot(session)

    def add_message(self, session_id: str, message: Message) -> None:
        self.add_messages(session_id, [message])

    def add_messages(self, session_id: str, messages: Iterable[Message]) -> None:
        """Append messages in order, all or nothing."""
        messages = list(messages)
        for message in messages:
            if message.session_id != session_id:
                raise ValueError(
                    f"Message {message.id} belongs to session {message.session_id}, not {session_id}"
                )
        with self._lock:
            session = self._live_session(session_id)
            if session is None:
                raise SessionNotFound(session_id)
            session.messages.extend(messages)
            if len(session.messages) > self.max_messages:
                del session.messages[: len(session.messages) - self.max_messages]
            session.last_activity = self._clock()

    def get_recent_messages(
        self,
        session_id: str,
        count: int = 10,
        user_id: Optional[str] = None,
    ) -> List[Message]:
        """Last `count` messages, oldest first; [] for an unknown session."""
        if count <= 0:
            return []
        with self._lock:
            session = self._live_session(session_id)
            if session is None:
                return []
            if user_id is not None and session.user_id != user_id:
                return []
            return list(session.messages[-count:])

    def get_user_sessions(self, user_id: str) -> List[ChatSession]:
        """Snapshots of every live session owned by user_id, newest activity first."""
        with self._lock:
            self._expire_idle()
            sessions = [_snapshot(s) for s in self._sessions.values() if s.user_id == user_id]
        return sorted(sessions, key=lambda s: s.last_activity, reverse=True)

    def clear_session(self, session_id: str) -> bool:
        """Delete a session immediately; returns False if it did not exist."""
        with self._lock:
            removed = self._sessions.pop(session_id, None)
        if removed is not None:
            logger.info(f"🗑️ [SessionManager] Cleared session {session_id}")
        return removed is not None

    def clear_user_sessions(self, user_id: str) -> int:
        """Delete every session of a user; returns how many were removed."""
        with self._lock:
            doomed = [sid for sid, s in self._sessions.items() if s.user_id == user_id]
            for sid in doomed:
                del self._sessions[sid]
        if doomed:
            logger.info(f"🗑️ [SessionManager] Cleared {len(doomed)} sessions for user {user_id}")
        return len(doomed)

    def cleanup_expired_sessions(self) -> int:
        with self._lock:
            removed = self._expire_idle()
        if removed:
            logger.info(f"🧹 [SessionManager] Removed {removed} expired sessions")
        return removed

    def get_session_count(self) -> int:
        with self._lock:
            return len(self._sessions)

    def get_stats(self) -> Dict[str, float]:
        with self._lock:
            total_sessions = len(self._sessions)
            total_messages = sum(len(s.messages) for s in self._sessions.values())
        return {
            "total_sessions": total_sessions,
            "total_messages": total_messages,
            "average_messages_per_session": total_messages / total_sessions if total_sessions else 0,
        }

    def _is_expired(self, session: ChatSession, now: float) -> bool:
        return now - session.last_activity > self.session_timeout

    def _live_session(self, session_id: str) -> Optional[ChatSession]:
        # Caller holds the lock
        session = self._sessions.get(session_id)
        if session is None:
            return None
        if self._is_expired(session, self._clock()):
            del self._sessions[session_id]
            logger.info(f"⏰ [SessionManager] Session {session_id} expired")
            return None
        return session

    def _expire_idle(self) -> int:
        # Caller holds the lock
        now = self._clock()
        expired = [sid for sid, s in self._sessions.items() if self._is_expired(s, now)]
        for sid in expired:
            del self._sessions[sid]
        return len(expired)
