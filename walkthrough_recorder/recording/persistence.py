"""Persistence of finished walkthroughs.

``RecordingStorage`` is the interface of the external storage collaborator.
``InMemoryStorage`` implements it for development and tests.
``WalkthroughPersister`` is the pipeline stage; it never raises.
"""

import itertools
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Optional

import structlog

from walkthrough_recorder.recording.models import RecordingSession

logger = structlog.get_logger()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class User:
    id: int
    username: str
    email: Optional[str] = None
    role: str = "admin"


@dataclass
class NewWalkthrough:
    """Fields of a walkthrough to create."""

    title: str
    description: str
    target_url: str
    created_by: int
    target_app: str = "Web Application"
    user_type: str = "beginner"
    environment: str = "web"
    script_content: Optional[str] = None
    video_url: Optional[str] = None
    duration: int = 120  # seconds
    status: str = "completed"


@dataclass
class Walkthrough:
    id: int
    title: str
    description: str
    target_url: str
    created_by: int
    target_app: str
    user_type: str
    environment: str
    script_content: Optional[str]
    video_url: Optional[str]
    duration: int
    status: str
    created_at: datetime = field(default_factory=_utcnow)


@dataclass
class RecordingRequestRecord:
    """A request to record a walkthrough, as stored by the dashboard."""

    id: int
    user_prompt: str
    target_url: str
    email: str
    username: str = ""
    status: str = "pending"
    walkthrough_id: Optional[int] = None
    created_at: datetime = field(default_factory=_utcnow)


class RecordingStorage(ABC):
    """Operations the recording pipeline needs from persistent storage."""

    @abstractmethod
    async def get_user(self, user_id: int) -> Optional[User]:
        pass

    @abstractmethod
    async def create_walkthrough(self, walkthrough: NewWalkthrough) -> Walkthrough:
        pass

    @abstractmethod
    async def update_recording_request(
        self,
        request_id: int,
        fields: dict[str, Any],
    ) -> Optional[RecordingRequestRecord]:
        """Update a request record. Returns None if it does not exist."""
        pass


class InMemoryStorage(RecordingStorage):
    """Dictionary-backed storage with auto-incrementing ids."""

    def __init__(self):
        self.users: dict[int, User] = {}
        self.walkthroughs: dict[int, Walkthrough] = {}
        self.recording_requests: dict[int, RecordingRequestRecord] = {}
        self._user_ids = itertools.count(1)
        self._walkthrough_ids = itertools.count(1)
        self._request_ids = itertools.count(1)

    async def create_user(self, username: str, email: Optional[str] = None, role: str = "admin") -> User:
        user = User(id=next(self._user_ids), username=username, email=email, role=role)
        self.users[user.id] = user
        return user

    async def get_user(self, user_id: int) -> Optional[User]:
        return self.users.get(user_id)

    async def create_walkthrough(self, walkthrough: NewWalkthrough) -> Walkthrough:
        record = Walkthrough(id=next(self._walkthrough_ids), **asdict(walkthrough))
        self.walkthroughs[record.id] = record
        return record

    async def get_walkthrough(self, walkthrough_id: int) -> Optional[Walkthrough]:
        return self.walkthroughs.get(walkthrough_id)

    async def create_recording_request(
        self,
        user_prompt: str,
        target_url: str,
        email: str,
        username: str = "",
    ) -> RecordingRequestRecord:
        record = RecordingRequestRecord(
            id=next(self._request_ids),
            user_prompt=user_prompt,
            target_url=target_url,
            email=email,
            username=username,
        )
        self.recording_requests[record.id] = record
        return record

    async def get_recording_request(self, request_id: int) -> Optional[RecordingRequestRecord]:
        return self.recording_requests.get(request_id)

    async def update_recording_request(
        self,
        request_id: int,
        fields: dict[str, Any],
    ) -> Optional[RecordingRequestRecord]:
        record = self.recording_requests.get(request_id)
        if record is None:
            return None
        updated = replace(record, **fields)
        self.recording_requests[request_id] = updated
        return updated


class WalkthroughPersister:
    """Store the finished walkthrough and close out the originating request.

    Errors are logged and swallowed so persistence problems never fail an
    otherwise successful recording.
    """

    def __init__(self, storage: RecordingStorage, system_user_id: int = 1):
        self.storage = storage
        self.system_user_id = system_user_id
        self.log = logger.bind(component="persistence")

    def build_walkthrough(self, session: RecordingSession) -> NewWalkthrough:
        return NewWalkthrough(
            title=f"Walkthrough: {session.user_prompt}",
            description=f"Automated walkthrough for {session.target_url}",
            target_url=session.target_url,
            created_by=self.system_user_id,
            script_content=session.script_content,
            video_url=session.video_url,
        )

    async def save(self, session: RecordingSession) -> Optional[Walkthrough]:
        """Persist the session's walkthrough. Returns None if nothing was saved."""
        log = self.log.bind(session_id=session.id, request_id=session.request_id)
        try:
            owner = await self.storage.get_user(self.system_user_id)
            if owner is None:
                log.warning("System user not found, skipping persistence", user_id=self.system_user_id)
                return None

            walkthrough = await self.storage.create_walkthrough(self.build_walkthrough(session))
            updated = await self.storage.update_recording_request(
                session.request_id,
                {"walkthrough_id": walkthrough.id, "status": "completed"},
            )
            if updated is None:
                log.warning("Recording request not found", walkthrough_id=walkthrough.id)

            log.info("Walkthrough persisted", walkthrough_id=walkthrough.id)
            return walkthrough
        except Exception as e:
            log.error("Failed to persist walkthrough", error=str(e), error_type=type(e).__name__)
            return None
