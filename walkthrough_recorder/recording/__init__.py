"""Recording session orchestration.

Turns a recording request into a captured, persisted and announced
walkthrough video.
"""

from walkthrough_recorder.recording.automation import (
    AutomationRecorder,
    CaptureResult,
    RecorderTimings,
    create_recorder,
)
from walkthrough_recorder.recording.generation import (
    DEFAULT_SCRIPT,
    MalformedResponseError,
    WalkthroughGenerator,
    create_generator,
    default_steps,
)
from walkthrough_recorder.recording.models import (
    InvalidTransitionError,
    RecordingRequest,
    RecordingSession,
    SessionStatus,
    StepActionType,
    WalkthroughStep,
)
from walkthrough_recorder.recording.notifier import Notifier
from walkthrough_recorder.recording.orchestrator import (
    RecordingService,
    create_recording_service,
)
from walkthrough_recorder.recording.persistence import (
    InMemoryStorage,
    RecordingStorage,
    WalkthroughPersister,
)
from walkthrough_recorder.recording.post_processor import PostProcessor
from walkthrough_recorder.recording.reaper import SessionReaper
from walkthrough_recorder.recording.session_store import InMemorySessionStore, SessionStore

__all__ = [
    # Orchestration
    "RecordingService",
    "create_recording_service",
    # Models
    "RecordingRequest",
    "RecordingSession",
    "SessionStatus",
    "InvalidTransitionError",
    "StepActionType",
    "WalkthroughStep",
    # Stages
    "WalkthroughGenerator",
    "MalformedResponseError",
    "DEFAULT_SCRIPT",
    "default_steps",
    "create_generator",
    "AutomationRecorder",
    "RecorderTimings",
    "CaptureResult",
    "create_recorder",
    "PostProcessor",
    "WalkthroughPersister",
    "RecordingStorage",
    "InMemoryStorage",
    "Notifier",
    "SessionReaper",
    # Session registry
    "SessionStore",
    "InMemorySessionStore",
]
