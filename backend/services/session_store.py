"""Session storage behind a small get/create/update interface."""
import threading
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from models.conversation import Session


class SessionStore(ABC):
    """Keyed storage for sessions."""

    @abstractmethod
    def get(self, session_key: str) -> Optional[Session]:
        """Return the stored session or None."""

    @abstractmethod
    def create(self, session: Session) -> Session:
        """
        Store a session unless one already exists under its key.

        Returns:
            The stored session: the existing one if the key was taken,
            otherwise the session passed in
        """

    @abstractmethod
    def update(self, session: Session) -> None:
        """Persist changes to an existing session."""

    @abstractmethod
    def list_sessions(self) -> List[Session]:
        """Return a snapshot of all sessions."""


class InMemorySessionStore(SessionStore):
    """
    Process-local session store.

    Sessions live for the lifetime of the process; there is no eviction.
    """

    def __init__(self) -> None:
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()

    def get(self, session_key: str) -> Optional[Session]:
        with self._lock:
            return self._sessions.get(session_key)

    def create(self, session: Session) -> Session:
        with self._lock:
            return self._sessions.setdefault(session.session_key, session)

    def update(self, session: Session) -> None:
        with self._lock:
            if session.session_key not in self._sessions:
                raise KeyError(f"Unknown session: {session.session_key}")
            self._sessions[session.session_key] = session

    def list_sessions(self) -> List[Session]:
        with self._lock:
            return list(self._sessions.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
