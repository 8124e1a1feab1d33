"""Data models for recording sessions and generated walkthrough steps."""

import secrets
import string
import time
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, EmailStr, Field, SecretStr, field_validator
from pydantic.alias_generators import to_camel


class SessionStatus(str, Enum):
    """Recording session lifecycle states."""

    PENDING = "pending"
    RECORDING = "recording"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionStatus.COMPLETED, SessionStatus.FAILED)


# Forward-only; any non-terminal state may fail
ALLOWED_TRANSITIONS: dict[SessionStatus, frozenset[SessionStatus]] = {
    SessionStatus.PENDING: frozenset({SessionStatus.RECORDING, SessionStatus.FAILED}),
    SessionStatus.RECORDING: frozenset({SessionStatus.PROCESSING, SessionStatus.FAILED}),
    SessionStatus.PROCESSING: frozenset({SessionStatus.COMPLETED, SessionStatus.FAILED}),
    SessionStatus.COMPLETED: frozenset(),
    SessionStatus.FAILED: frozenset(),
}


class InvalidTransitionError(Exception):
    """Raised when a status change is not allowed by the lifecycle."""

    def __init__(self, current: SessionStatus, target: SessionStatus):
        self.current = current
        self.target = target
        super().__init__(f"Cannot transition session from {current.value} to {target.value}")


def can_transition(current: SessionStatus, target: SessionStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def validate_transition(current: SessionStatus, target: SessionStatus) -> None:
    """Raise InvalidTransitionError unless ``current -> target`` is allowed."""
    if not can_transition(current, target):
        raise InvalidTransitionError(current, target)


SESSION_ID_PREFIX = "rec"
_ID_ALPHABET = string.digits + string.ascii_lowercase


def new_session_id(now: Optional[float] = None) -> str:
    """Generate a session id of the form ``rec_<epoch-millis>_<9 base-36 chars>``.

    Args:
        now: Creation time as a Unix timestamp (defaults to the current time)
    """
    millis = int((time.time() if now is None else now) * 1000)
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"{SESSION_ID_PREFIX}_{millis}_{suffix}"


def session_created_at(session_id: str) -> Optional[datetime]:
    """Extract the creation time embedded in a session id.

    Returns None if the id does not carry a parseable timestamp.
    """
    parts = session_id.split("_")
    if len(parts) != 3 or parts[0] != SESSION_ID_PREFIX:
        return None
    try:
        millis = int(parts[1])
    except ValueError:
        return None
    return datetime.fromtimestamp(millis / 1000, tz=timezone.utc)


class RecordingRequest(BaseModel):
    """Validated input for starting a recording.

    Accepts both snake_case and camelCase keys (``userPrompt``,
    ``targetUrl``, ``requestId``).
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    username: str = ""
    password: SecretStr = SecretStr("")
    user_prompt: str = Field(..., min_length=1)
    target_url: str
    email: EmailStr
    request_id: int

    @field_validator("target_url")
    @classmethod
    def _validate_target_url(cls, value: str) -> str:
        parsed = urlparse(value)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError("target_url must be an absolute http(s) URL")
        return value

    @property
    def has_credentials(self) -> bool:
        return bool(self.username and self.password.get_secret_value())


@dataclass
class RecordingSession:
    """Mutable state of one recording request.

    Owned by the orchestrator; everything else receives copies.
    """

    id: str
    request: RecordingRequest
    status: SessionStatus = SessionStatus.PENDING
    video_url: Optional[str] = None
    file_path: Optional[str] = None
    script_content: Optional[str] = None
    error: Optional[str] = None
    email_sent: Optional[bool] = None
    email_error: Optional[str] = None

    @property
    def request_id(self) -> int:
        return self.request.request_id

    @property
    def target_url(self) -> str:
        return self.request.target_url

    @property
    def username(self) -> str:
        return self.request.username

    @property
    def password(self) -> str:
        return self.request.password.get_secret_value()

    @property
    def user_prompt(self) -> str:
        return self.request.user_prompt

    @property
    def email(self) -> str:
        return self.request.email

    @property
    def created_at(self) -> Optional[datetime]:
        return session_created_at(self.id)

    def copy(self) -> "RecordingSession":
        return replace(self)

    def to_status_dict(self) -> dict[str, Any]:
        """Poll view of the session."""
        return {
            "id": self.id,
            "status": self.status.value,
            "video_url": self.video_url,
            "error": self.error,
            "email_sent": self.email_sent,
            "email_error": self.email_error,
        }

    def to_dict(self) -> dict[str, Any]:
        """Full record without credentials."""
        created_at = self.created_at
        return {
            **self.to_status_dict(),
            "request_id": self.request_id,
            "target_url": self.target_url,
            "username": self.username,
            "user_prompt": self.user_prompt,
            "email": self.email,
            "file_path": self.file_path,
            "script_content": self.script_content,
            "created_at": created_at.isoformat() if created_at else None,
        }


class StepActionType(str, Enum):
    """Actions a generated walkthrough step can perform."""

    CLICK = "click"
    TYPE = "type"
    WAIT = "wait"
    NAVIGATE = "navigate"
    TOOLTIP = "tooltip"


class WalkthroughStep(BaseModel):
    """One step of a generated walkthrough plan."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    step_number: int = 0
    action_type: StepActionType
    target_element: Optional[str] = None
    instructions: str = ""
    data: Optional[Any] = None
