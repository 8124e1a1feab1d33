"""Session registry behind a small storage interface."""

import threading
from abc import ABC, abstractmethod
from typing import Optional

from walkthrough_recorder.recording.models import RecordingSession


class SessionStore(ABC):
    """Keyed storage for recording sessions.

    Implementations hold the orchestrator's records as-is; callers that hand
    sessions to the outside world are responsible for copying them.
    """

    @abstractmethod
    def get(self, session_id: str) -> Optional[RecordingSession]:
        pass

    @abstractmethod
    def put(self, session: RecordingSession) -> None:
        pass

    @abstractmethod
    def delete(self, session_id: str) -> bool:
        """Remove a session. Returns True if it existed."""
        pass

    @abstractmethod
    def list_all(self) -> list[RecordingSession]:
        pass

    def __contains__(self, session_id: str) -> bool:
        return self.get(session_id) is not None


class InMemorySessionStore(SessionStore):
    """Process-local store. Sessions are lost on restart and not shared
    between processes."""

    def __init__(self):
        self._sessions: dict[str, RecordingSession] = {}
        self._lock = threading.Lock()

    def get(self, session_id: str) -> Optional[RecordingSession]:
        return self._sessions.get(session_id)

    def put(self, session: RecordingSession) -> None:
        with self._lock:
            self._sessions[session.id] = session

    def delete(self, session_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def list_all(self) -> list[RecordingSession]:
        with self._lock:
            return list(self._sessions.values())

    def __len__(self) -> int:
        return len(self._sessions)
