"""Tests for the recording session orchestrator."""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest
from pydantic import ValidationError

FALLBACK_VIDEO = "https://videos.example.com/demo.mp4"


@pytest.fixture
def storage():
    from walkthrough_recorder.recording.persistence import InMemoryStorage, User

    storage = InMemoryStorage()
    storage.users[1] = User(id=1, username="admin")
    return storage


@pytest.fixture
def make_service(recorder, mock_email_service, storage):
    """Build a RecordingService wired to fakes."""
    from walkthrough_recorder.recording.generation import WalkthroughGenerator
    from walkthrough_recorder.recording.notifier import Notifier
    from walkthrough_recorder.recording.orchestrator import RecordingService
    from walkthrough_recorder.recording.persistence import WalkthroughPersister
    from walkthrough_recorder.recording.post_processor import PostProcessor

    def _make(providers=None, email_service=None, fallback_video_url=FALLBACK_VIDEO, **overrides):
        options = dict(
            generator=WalkthroughGenerator(providers or []),
            recorder=recorder,
            notifier=Notifier(email_service or mock_email_service),
            post_processor=PostProcessor(delay_seconds=0),
            persister=WalkthroughPersister(storage),
            fallback_video_url=fallback_video_url,
        )
        options.update(overrides)
        return RecordingService(**options)

    return _make


@pytest.fixture
def service(make_service):
    return make_service()


async def run_to_end(service, session_id):
    """Drain the pipeline and notification tasks."""
    await service.shutdown()
    return service.get_session_status(session_id)


class TestStartRecording:
    """Tests for RecordingService.start_recording."""

    @pytest.mark.asyncio
    async def test_returns_immediately_with_pending_session(self, service, sample_request_data):
        session_id = service.start_recording(sample_request_data)

        status = service.get_session_status(session_id)
        assert status["status"] == "pending"
        assert status["video_url"] is None
        await service.shutdown()

    @pytest.mark.asyncio
    async def test_accepts_request_model(self, service, sample_request):
        session_id = service.start_recording(sample_request)

        assert service.get_session(session_id).request is sample_request
        await service.shutdown()

    @pytest.mark.asyncio
    async def test_validation_error_creates_no_session(self, service, sample_request_data):
        with pytest.raises(ValidationError):
            service.start_recording({**sample_request_data, "targetUrl": "not a url"})

        assert service.get_all_sessions() == []

    @pytest.mark.asyncio
    async def test_ids_are_distinct(self, service, sample_request_data):
        ids = [service.start_recording(sample_request_data) for _ in range(50)]

        assert len(set(ids)) == 50
        await service.shutdown()

    @pytest.mark.asyncio
    async def test_colliding_id_is_regenerated(self, service, sample_request_data):
        with patch(
            "walkthrough_recorder.recording.orchestrator.new_session_id",
            side_effect=["rec_1_aaaaaaaaa", "rec_1_aaaaaaaaa", "rec_1_bbbbbbbbb"],
        ):
            first = service.start_recording(sample_request_data)
            second = service.start_recording(sample_request_data)

        assert first == "rec_1_aaaaaaaaa"
        assert second == "rec_1_bbbbbbbbb"
        await service.shutdown()


class TestPipeline:
    """End-to-end pipeline behavior."""

    @pytest.mark.asyncio
    async def test_completes_with_default_script(self, service, sample_request_data):
        from walkthrough_recorder.recording.generation import DEFAULT_SCRIPT

        session_id = service.start_recording(sample_request_data)
        status = await run_to_end(service, session_id)
        session = service.get_session(session_id)

        assert status["status"] == "completed"
        assert status["error"] is None
        assert session.script_content == DEFAULT_SCRIPT
        assert status["video_url"] == f"/api/recordings/{session_id}.webm"
        assert session.file_path.endswith(f"{session_id}.webm")

    @pytest.mark.asyncio
    async def test_uses_generated_script(self, make_service, provider_factory, sample_request_data):
        service = make_service(providers=[provider_factory("openai", '{"script": "Custom narration"}')])

        session_id = service.start_recording(sample_request_data)
        await run_to_end(service, session_id)

        assert service.get_session(session_id).script_content == "Custom narration"

    @pytest.mark.asyncio
    async def test_navigation_timeout_fails_session(self, service, browser_factory, sample_request_data):
        browser_factory.goto_error = TimeoutError("Timeout 30000ms exceeded navigating to https://example.com")

        session_id = service.start_recording(sample_request_data)
        status = await run_to_end(service, session_id)

        assert status["status"] == "failed"
        assert "Timeout 30000ms exceeded" in status["error"]
        assert status["video_url"] == FALLBACK_VIDEO
        assert status["email_sent"] is None

    @pytest.mark.asyncio
    async def test_failure_without_fallback_video(self, make_service, browser_factory, sample_request_data):
        service = make_service(fallback_video_url="")
        browser_factory.goto_error = TimeoutError("navigation timeout")

        session_id = service.start_recording(sample_request_data)
        status = await run_to_end(service, session_id)

        assert status["status"] == "failed"
        assert status["video_url"] is None

    @pytest.mark.asyncio
    async def test_error_without_message_uses_type(self, service, browser_factory, sample_request_data):
        browser_factory.launch_error = ConnectionResetError()

        session_id = service.start_recording(sample_request_data)
        status = await run_to_end(service, session_id)

        assert status["error"] == "ConnectionResetError"

    @pytest.mark.asyncio
    async def test_status_sequence(self, service, sample_request_data):
        from walkthrough_recorder.recording.models import SessionStatus

        observed = []
        original = service._update_session

        def spy(session_id, status=None, **fields):
            result = original(session_id, status, **fields)
            current = service.store.get(session_id).status
            if not observed or observed[-1] != current:
                observed.append(current)
            return result

        service._update_session = spy
        session_id = service.start_recording(sample_request_data)
        await run_to_end(service, session_id)

        assert observed == [SessionStatus.RECORDING, SessionStatus.PROCESSING, SessionStatus.COMPLETED]

    @pytest.mark.asyncio
    async def test_failure_sequence_ends_at_failed(self, service, browser_factory, sample_request_data):
        from walkthrough_recorder.recording.models import SessionStatus

        browser_factory.goto_error = TimeoutError("timeout")
        observed = []
        original = service._update_session

        def spy(session_id, status=None, **fields):
            result = original(session_id, status, **fields)
            current = service.store.get(session_id).status
            if not observed or observed[-1] != current:
                observed.append(current)
            return result

        service._update_session = spy
        session_id = service.start_recording(sample_request_data)
        await run_to_end(service, session_id)

        assert observed == [SessionStatus.RECORDING, SessionStatus.FAILED]

    @pytest.mark.asyncio
    async def test_persists_walkthrough(self, service, storage, sample_request_data):
        await storage.create_recording_request("show the homepage", "https://example.com", "a@b.com")

        session_id = service.start_recording(sample_request_data)
        await run_to_end(service, session_id)

        walkthrough = await storage.get_walkthrough(1)
        assert walkthrough.video_url == f"/api/recordings/{session_id}.webm"
        assert (await storage.get_recording_request(1)).status == "completed"

    @pytest.mark.asyncio
    async def test_persistence_failure_does_not_fail_session(self, make_service, sample_request_data):
        from walkthrough_recorder.recording.persistence import RecordingStorage, WalkthroughPersister

        broken = AsyncMock(spec=RecordingStorage)
        broken.get_user.side_effect = ConnectionError("database unavailable")
        service = make_service(persister=WalkthroughPersister(broken))

        session_id = service.start_recording(sample_request_data)
        status = await run_to_end(service, session_id)

        assert status["status"] == "completed"

    @pytest.mark.asyncio
    async def test_post_processing_sees_capture(self, make_service, sample_request_data):
        from walkthrough_recorder.recording.post_processor import PostProcessor

        processor = PostProcessor(delay_seconds=0)
        processor.process = AsyncMock()
        service = make_service(post_processor=processor)

        session_id = service.start_recording(sample_request_data)
        await run_to_end(service, session_id)

        processed = processor.process.call_args.args[0]
        assert processed.video_url == f"/api/recordings/{session_id}.webm"
        assert processed.status.value == "processing"

    @pytest.mark.asyncio
    async def test_concurrent_sessions_are_independent(self, service, browser_factory, sample_request_data):
        ids = [service.start_recording(sample_request_data) for _ in range(3)]
        await service.shutdown()

        assert {service.get_session_status(i)["status"] for i in ids} == {"completed"}
        assert len(browser_factory.instances) == 3


class TestNotification:
    """Tests for the detached notification task."""

    @pytest.mark.asyncio
    async def test_email_sent(self, service, mock_email_service, sample_request_data):
        session_id = service.start_recording(sample_request_data)
        status = await run_to_end(service, session_id)

        assert status["email_sent"] is True
        assert status["email_error"] is None
        assert mock_email_service.provider.send.call_args.kwargs["to"] == "a@b.com"

    @pytest.mark.asyncio
    async def test_unconfigured_mail(self, make_service, unconfigured_email_service, sample_request_data):
        service = make_service(email_service=unconfigured_email_service)

        session_id = service.start_recording(sample_request_data)
        status = await run_to_end(service, session_id)

        assert status["status"] == "completed"
        assert status["email_sent"] is False
        assert status["email_error"]

    @pytest.mark.asyncio
    async def test_send_failure_keeps_completed(self, service, mock_email_service, sample_request_data):
        from walkthrough_recorder.services.email_service import EmailError

        mock_email_service.provider.send.side_effect = EmailError("SMTP send failed: 421")

        session_id = service.start_recording(sample_request_data)
        status = await run_to_end(service, session_id)

        assert status["status"] == "completed"
        assert status["email_sent"] is False
        assert status["email_error"] == "SMTP send failed: 421"

    @pytest.mark.asyncio
    async def test_runs_only_after_completion(self, service, sample_request_data):
        seen = []

        async def notify(session):
            seen.append(service.get_session_status(session.id)["status"])
            return True, None

        service.notifier.notify = notify
        session_id = service.start_recording(sample_request_data)
        await run_to_end(service, session_id)

        assert seen == ["completed"]

    @pytest.mark.asyncio
    async def test_completion_visible_before_notification(self, service, sample_request_data):
        release = asyncio.Event()

        async def slow_notify(session):
            await release.wait()
            return True, None

        service.notifier.notify = slow_notify
        session_id = service.start_recording(sample_request_data)

        for _ in range(100):
            await asyncio.sleep(0)
            if service.get_session_status(session_id)["status"] == "completed":
                break

        status = service.get_session_status(session_id)
        assert status["status"] == "completed"
        assert status["email_sent"] is None

        release.set()
        status = await run_to_end(service, session_id)
        assert status["email_sent"] is True

    @pytest.mark.asyncio
    async def test_not_sent_for_failed_session(self, service, browser_factory, mock_email_service, sample_request_data):
        browser_factory.goto_error = TimeoutError("timeout")

        session_id = service.start_recording(sample_request_data)
        await run_to_end(service, session_id)

        mock_email_service.provider.send.assert_not_called()


class TestSessionUpdates:
    """Tests for the session mutator."""

    @pytest.mark.asyncio
    async def test_terminal_status_is_final(self, service, make_session):
        from walkthrough_recorder.recording.models import SessionStatus

        session = make_session(status=SessionStatus.COMPLETED)
        service.store.put(session)

        assert service._update_session(session.id, SessionStatus.FAILED, error="late") is None
        assert session.status == SessionStatus.COMPLETED
        assert session.error is None

    @pytest.mark.asyncio
    async def test_skipping_a_stage_is_refused(self, service, make_session):
        from walkthrough_recorder.recording.models import SessionStatus

        session = make_session()
        service.store.put(session)

        assert service._update_session(session.id, SessionStatus.COMPLETED) is None
        assert session.status == SessionStatus.PENDING

    @pytest.mark.asyncio
    async def test_missing_session_is_noop(self, service):
        from walkthrough_recorder.recording.models import SessionStatus

        assert service._update_session("rec_0_gone", SessionStatus.FAILED, error="x") is None

    @pytest.mark.asyncio
    async def test_unknown_field_rejected(self, service, make_session):
        session = make_session()
        service.store.put(session)

        with pytest.raises(ValueError):
            service._update_session(session.id, status_code=500)

    @pytest.mark.asyncio
    async def test_returns_copy(self, service, make_session):
        from walkthrough_recorder.recording.models import SessionStatus

        session = make_session()
        service.store.put(session)

        updated = service._update_session(session.id, SessionStatus.RECORDING)
        updated.status = SessionStatus.FAILED

        assert session.status == SessionStatus.RECORDING


class TestReads:
    """Tests for the read operations."""

    def test_unknown_session(self, service):
        assert service.get_session_status("rec_0_missing") is None
        assert service.get_session("rec_0_missing") is None

    def test_reads_return_copies(self, service, make_session):
        from walkthrough_recorder.recording.models import SessionStatus

        session = make_session()
        service.store.put(session)

        service.get_session(session.id).status = SessionStatus.FAILED
        service.get_all_sessions()[0].video_url = "tampered"

        assert session.status == SessionStatus.PENDING
        assert session.video_url is None

    def test_cleanup_completed_sessions(self, service, make_session):
        from walkthrough_recorder.recording.models import SessionStatus

        old = make_session(status=SessionStatus.COMPLETED, age_hours=25)
        recent = make_session(status=SessionStatus.COMPLETED, age_hours=1)
        running = make_session(status=SessionStatus.RECORDING, age_hours=100)
        for session in (old, recent, running):
            service.store.put(session)

        assert service.cleanup_completed_sessions() == [old.id]
        assert {s.id for s in service.get_all_sessions()} == {recent.id, running.id}

    @pytest.mark.asyncio
    async def test_email_configuration_check(self, service):
        result = await service.test_email_configuration("ops@example.com")

        assert result["success"] is True

    @pytest.mark.asyncio
    async def test_step_suggestions_default(self, service):
        steps = await service.generate_step_suggestions("create an invoice", "https://acme.test")

        assert [s.step_number for s in steps] == [1, 2, 3]


class TestLifecycle:
    """Tests for background task management."""

    @pytest.mark.asyncio
    async def test_start_and_shutdown(self, service):
        service.start_background_tasks()
        assert service.reaper.is_running

        await service.shutdown()

        assert not service.reaper.is_running


class TestCreateRecordingService:
    """Tests for create_recording_service."""

    def test_wiring_from_settings(self):
        from walkthrough_recorder.config import Settings
        from walkthrough_recorder.recording.orchestrator import create_recording_service

        settings = Settings(
            _env_file=None,
            email_backend="disabled",
            fallback_video_url="",
            session_retention_hours=12,
            recordings_dir="/tmp/recordings",
            post_processing_seconds=0,
        )
        service = create_recording_service(settings)

        assert service.fallback_video_url == ""
        assert service.reaper.retention.total_seconds() == 12 * 3600
        assert service.reaper.store is service.store
        assert str(service.recorder.recordings_dir) == "/tmp/recordings"
        assert service.post_processor.delay_seconds == 0
        assert not service.notifier.email_service.is_configured
        assert service.generator.active_providers == []

    def test_cleanup_uses_shared_store(self, make_session):
        """A factory-wired service reaps sessions it stores."""
        from walkthrough_recorder.config import Settings
        from walkthrough_recorder.recording.models import SessionStatus
        from walkthrough_recorder.recording.orchestrator import create_recording_service

        service = create_recording_service(Settings(_env_file=None, email_backend="disabled"))
        old = make_session(status=SessionStatus.COMPLETED, age_hours=25)
        service.store.put(old)

        assert service.cleanup_completed_sessions() == [old.id]
        assert service.get_session(old.id) is None

    def test_empty_injected_store_is_kept(self, recorder, unconfigured_email_service):
        from walkthrough_recorder.recording.generation import WalkthroughGenerator
        from walkthrough_recorder.recording.notifier import Notifier
        from walkthrough_recorder.recording.orchestrator import RecordingService
        from walkthrough_recorder.recording.session_store import InMemorySessionStore

        store = InMemorySessionStore()
        service = RecordingService(
            generator=WalkthroughGenerator([]),
            recorder=recorder,
            notifier=Notifier(unconfigured_email_service),
            store=store,
        )

        assert service.store is store
        assert service.reaper.store is store
