"""
Per-conversation dialogue state for the task agent.

SessionManager sits in front of a small key-value store. Two stores exist:
an in-process dict (lost on restart) and a SQLite table. Sessions idle for
longer than the TTL are treated as if they never existed.
"""
import time
import logging
import threading
from typing import Callable, Optional, Protocol

import database
from models import Session

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 24 * 60 * 60


class SessionStore(Protocol):
    def get(self, conversation_id: str) -> Optional[Session]:
        ...

    def set(self, session: Session) -> None:
        ...

    def delete(self, conversation_id: str) -> None:
        ...

    def purge(self, older_than: float) -> int:
        ...


class InMemorySessionStore:
    """Process-lifetime store. Safe to share between request threads."""

    def __init__(self):
        self._sessions: dict[str, Session] = {}
        self._lock = threading.Lock()

    def get(self, conversation_id: str) -> Optional[Session]:
        with self._lock:
            session = self._sessions.get(conversation_id)
        # Copies keep callers from mutating stored state without a save
        return session.model_copy(deep=True) if session else None

    def set(self, session: Session) -> None:
        with self._lock:
            self._sessions[session.conversation_id] = session.model_copy(deep=True)

    def delete(self, conversation_id: str) -> None:
        with self._lock:
            self._sessions.pop(conversation_id, None)

    def purge(self, older_than: float) -> int:
        with self._lock:
            stale = [cid for cid, s in self._sessions.items() if s.updated_at < older_than]
            for cid in stale:
                del self._sessions[cid]
        return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)


class SqliteSessionStore:
    """Sessions as JSON rows in the agent_sessions table."""

    def get(self, conversation_id: str) -> Optional[Session]:
        payload = database.get_session_row(conversation_id)
        if payload is None:
            return None
        return Session.model_validate_json(payload)

    def set(self, session: Session) -> None:
        database.save_session_row(session.conversation_id, session.model_dump_json(), session.updated_at)

    def delete(self, conversation_id: str) -> None:
        database.delete_session_row(conversation_id)

    def purge(self, older_than: float) -> int:
        return database.purge_session_rows(older_than)


def build_session_store(backend: str) -> SessionStore:
    if backend == "memory":
        return InMemorySessionStore()
    if backend == "sqlite":
        return SqliteSessionStore()
    raise ValueError(f"Unknown session backend: {backend}")


class SessionManager:
    def __init__(
        self,
        store: Optional[SessionStore] = None,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store if store is not None else InMemorySessionStore()
        self.ttl_seconds = ttl_seconds
        self.clock = clock

    def _expired(self, session: Session) -> bool:
        return self.ttl_seconds > 0 and self.clock() - session.updated_at > self.ttl_seconds

    def get(self, conversation_id: str) -> Optional[Session]:
        session = self.store.get(conversation_id)
        if session is not None and self._expired(session):
            logger.info("Session %s expired", conversation_id)
            self.store.delete(conversation_id)
            return None
        return session

    def get_or_create(self, conversation_id: str) -> Session:
        session = self.get(conversation_id)
        if session is None:
            session = Session(conversation_id=conversation_id, updated_at=self.clock())
        return session

    def save(self, session: Session) -> None:
        session.updated_at = self.clock()
        self.store.set(session)

    def purge_expired(self) -> int:
        """Drop every expired session. Returns how many were removed."""
        if self.ttl_seconds <= 0:
            return 0
        removed = self.store.purge(self.clock() - self.ttl_seconds)
        if removed:
            logger.info("Purged %d expired agent sessions", removed)
        return removed
