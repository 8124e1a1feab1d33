"""Recording session orchestration.

``RecordingService`` owns every recording session. ``start_recording``
stores a pending session and returns its id at once; the pipeline then runs
in a background task:

    pending -> recording -> processing -> completed
    any stage error -> failed

The completion email is sent from a second, detached task after the session
has completed. Its outcome is written back through the same mutator as every
other session change and never alters the status.
"""

import asyncio
from datetime import datetime, timedelta
from typing import Any, Coroutine, Mapping, Optional, Union

import structlog

from walkthrough_recorder.config import Settings, get_settings
from walkthrough_recorder.recording.automation import AutomationRecorder, create_recorder
from walkthrough_recorder.recording.generation import (
    DEFAULT_TARGET_APP,
    WalkthroughGenerator,
    create_generator,
)
from walkthrough_recorder.recording.models import (
    InvalidTransitionError,
    RecordingRequest,
    RecordingSession,
    SessionStatus,
    WalkthroughStep,
    new_session_id,
    validate_transition,
)
from walkthrough_recorder.recording.notifier import Notifier
from walkthrough_recorder.recording.persistence import (
    InMemoryStorage,
    RecordingStorage,
    WalkthroughPersister,
)
from walkthrough_recorder.recording.post_processor import PostProcessor
from walkthrough_recorder.recording.reaper import SessionReaper
from walkthrough_recorder.recording.session_store import InMemorySessionStore, SessionStore
from walkthrough_recorder.services.email_service import create_email_service
from walkthrough_recorder.utils.logging import LogContext, log_operation

logger = structlog.get_logger()

_MUTABLE_FIELDS = frozenset({
    "video_url",
    "file_path",
    "script_content",
    "error",
    "email_sent",
    "email_error",
})


class RecordingService:
    """Orchestrates recording sessions from request to notification.

    Collaborators are injected so tests can substitute doubles for the AI
    providers, the browser, storage and mail.

    Args:
        generator: Script and step generation fallback chain
        recorder: Browser automation recorder
        notifier: Completion email sender
        post_processor: Enrichment stage run after capture
        persister: Writes finished walkthroughs to storage
        store: Session registry
        reaper: Sweeper for old finished sessions
        fallback_video_url: Video exposed on a session whose automation
            failed. Empty disables it.
        target_app: Application name passed to generation prompts
    """

    def __init__(
        self,
        generator: WalkthroughGenerator,
        recorder: AutomationRecorder,
        notifier: Notifier,
        post_processor: Optional[PostProcessor] = None,
        persister: Optional[WalkthroughPersister] = None,
        store: Optional[SessionStore] = None,
        reaper: Optional[SessionReaper] = None,
        fallback_video_url: str = "",
        target_app: str = DEFAULT_TARGET_APP,
    ):
        self.generator = generator
        self.recorder = recorder
        self.notifier = notifier
        self.post_processor = post_processor if post_processor is not None else PostProcessor()
        self.persister = persister if persister is not None else WalkthroughPersister(InMemoryStorage())
        self.store = store if store is not None else InMemorySessionStore()
        self.reaper = reaper if reaper is not None else SessionReaper(self.store)
        self.fallback_video_url = fallback_video_url
        self.target_app = target_app

        self._pipeline_tasks: set[asyncio.Task] = set()
        self._notification_tasks: set[asyncio.Task] = set()
        self.log = logger.bind(component="recording_service")

    # Public operations

    def start_recording(self, request: Union[RecordingRequest, Mapping[str, Any]]) -> str:
        """Create a pending session and launch its pipeline without awaiting it.

        Must be called from a running event loop.

        Raises:
            pydantic.ValidationError: If the request is malformed. No session
                is created in that case.
        """
        if not isinstance(request, RecordingRequest):
            request = RecordingRequest.model_validate(request)

        session_id = self._allocate_session_id()
        self.store.put(RecordingSession(id=session_id, request=request))

        self.log.info(
            "Recording session created",
            session_id=session_id,
            request_id=request.request_id,
            target_url=request.target_url,
            has_credentials=request.has_credentials,
        )

        self._spawn(self._pipeline_tasks, self._run_pipeline_with_error_handling(session_id))
        return session_id

    def get_session_status(self, session_id: str) -> Optional[dict[str, Any]]:
        """Poll view ``{id, status, video_url, error, email_sent, email_error}``."""
        session = self.store.get(session_id)
        return session.to_status_dict() if session else None

    def get_session(self, session_id: str) -> Optional[RecordingSession]:
        """Full session record (a copy), e.g. to locate the captured file."""
        session = self.store.get(session_id)
        return session.copy() if session else None

    def get_all_sessions(self) -> list[RecordingSession]:
        return [session.copy() for session in self.store.list_all()]

    async def test_email_configuration(self, email: str) -> dict[str, Any]:
        """Send a diagnostic email. Returns ``{"success": bool, "message": str}``."""
        return await self.notifier.test_email_configuration(email)

    def cleanup_completed_sessions(self, now: Optional[datetime] = None) -> list[str]:
        """Remove finished sessions older than the retention window."""
        return self.reaper.sweep(now)

    async def generate_step_suggestions(
        self,
        description: str,
        target_url: str,
        target_app: Optional[str] = None,
    ) -> list[WalkthroughStep]:
        return await self.generator.generate_step_suggestions(
            description,
            target_app or self.target_app,
            target_url,
        )

    # Lifecycle

    def start_background_tasks(self) -> None:
        """Start the periodic session reaper."""
        self.reaper.start()

    async def shutdown(self) -> None:
        """Stop the reaper and wait for running pipelines and notifications."""
        await self.reaper.stop()

        if self._pipeline_tasks:
            self.log.info("Waiting for recording pipelines", count=len(self._pipeline_tasks))
            await asyncio.gather(*list(self._pipeline_tasks), return_exceptions=True)

        if self._notification_tasks:
            self.log.info("Waiting for notifications", count=len(self._notification_tasks))
            await asyncio.gather(*list(self._notification_tasks), return_exceptions=True)

        self.log.info("Recording service shut down")

    # Session state

    def _allocate_session_id(self) -> str:
        while True:
            session_id = new_session_id()
            if session_id not in self.store:
                return session_id

    def _update_session(
        self,
        session_id: str,
        status: Optional[SessionStatus] = None,
        **fields: Any,
    ) -> Optional[RecordingSession]:
        """Apply a change to a stored session and return a copy of the result.

        The only writer of session state. Returns None without changing
        anything if the session no longer exists or the status change is
        not allowed.
        """
        unknown = set(fields) - _MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update session fields: {sorted(unknown)}")

        session = self.store.get(session_id)
        if session is None:
            self.log.debug("Ignoring update for unknown session", session_id=session_id)
            return None

        if status is not None and status != session.status:
            try:
                validate_transition(session.status, status)
            except InvalidTransitionError as e:
                self.log.warning("Refusing session update", session_id=session_id, error=str(e))
                return None
            self.log.info(
                "Session status changed",
                session_id=session_id,
                from_status=session.status.value,
                to_status=status.value,
            )
            session.status = status

        for name, value in fields.items():
            setattr(session, name, value)

        return session.copy()

    # Pipeline

    def _spawn(self, tasks: set[asyncio.Task], coro: Coroutine) -> asyncio.Task:
        task = asyncio.create_task(coro)
        tasks.add(task)
        task.add_done_callback(tasks.discard)
        return task

    async def _run_pipeline_with_error_handling(self, session_id: str) -> None:
        with LogContext(session_id=session_id):
            try:
                await self.run_pipeline(session_id)
            except Exception as e:
                self.log.exception("Recording pipeline failed", error=str(e))
                self._update_session(
                    session_id,
                    SessionStatus.FAILED,
                    error=str(e) or type(e).__name__,
                )

    async def run_pipeline(self, session_id: str) -> None:
        """Run every stage of one session in order.

        Raises:
            Exception: Any unrecovered stage error. The caller marks the
                session failed.
        """
        session = self._update_session(session_id, SessionStatus.RECORDING)
        if session is None:
            return

        with log_operation("script_generation", self.log):
            script = await self.generator.generate_script(session.user_prompt, self.target_app)
        session = self._update_session(session_id, script_content=script)

        with log_operation("recording", self.log):
            try:
                capture = await self.recorder.record(session)
            except Exception:
                if self.fallback_video_url:
                    self.log.warning(
                        "Automation failed, exposing fallback video",
                        video_url=self.fallback_video_url,
                    )
                    self._update_session(session_id, video_url=self.fallback_video_url)
                raise
        self._update_session(
            session_id,
            video_url=capture.video_url,
            file_path=capture.file_path,
        )

        session = self._update_session(session_id, SessionStatus.PROCESSING)
        if session is None:
            return

        with log_operation("post_processing", self.log):
            await self.post_processor.process(session)

        with log_operation("persistence", self.log):
            await self.persister.save(session)

        session = self._update_session(session_id, SessionStatus.COMPLETED)
        if session is None:
            return

        self.log.info("Recording session completed", video_url=session.video_url)
        self._spawn(self._notification_tasks, self._send_notification(session))

    async def _send_notification(self, session: RecordingSession) -> None:
        with LogContext(session_id=session.id):
            sent, error = await self.notifier.notify(session)
            self._update_session(session.id, email_sent=sent, email_error=error)


def create_recording_service(
    settings: Optional[Settings] = None,
    storage: Optional[RecordingStorage] = None,
) -> RecordingService:
    """Wire a RecordingService from settings.

    Args:
        settings: Application settings (loaded from the environment if omitted)
        storage: Persistence collaborator (in-memory if omitted)
    """
    settings = settings or get_settings()
    store = InMemorySessionStore()

    return RecordingService(
        generator=create_generator(settings),
        recorder=create_recorder(settings),
        notifier=Notifier(create_email_service(settings), public_base_url=settings.public_base_url),
        post_processor=PostProcessor(settings.post_processing_seconds),
        persister=WalkthroughPersister(
            storage if storage is not None else InMemoryStorage(),
            settings.system_user_id,
        ),
        store=store,
        reaper=SessionReaper(
            store,
            retention=timedelta(hours=settings.session_retention_hours),
            interval_seconds=settings.session_cleanup_interval_seconds,
        ),
        fallback_video_url=settings.fallback_video_url,
    )
