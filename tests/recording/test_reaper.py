"""Tests for the session reaper."""

import asyncio
from datetime import timedelta

import pytest


@pytest.fixture
def store():
    from walkthrough_recorder.recording.session_store import InMemorySessionStore

    return InMemorySessionStore()


class TestSweep:
    """Tests for SessionReaper.sweep."""

    def test_removes_old_completed_keeps_recent(self, store, make_session):
        from walkthrough_recorder.recording.models import SessionStatus
        from walkthrough_recorder.recording.reaper import SessionReaper

        old = make_session(status=SessionStatus.COMPLETED, age_hours=25)
        recent = make_session(status=SessionStatus.COMPLETED, age_hours=1)
        store.put(old)
        store.put(recent)

        removed = SessionReaper(store).sweep()

        assert removed == [old.id]
        assert store.get(old.id) is None
        assert store.get(recent.id) is recent

    def test_removes_old_failed(self, store, make_session):
        from walkthrough_recorder.recording.models import SessionStatus
        from walkthrough_recorder.recording.reaper import SessionReaper

        failed = make_session(status=SessionStatus.FAILED, age_hours=48)
        store.put(failed)

        assert SessionReaper(store).sweep() == [failed.id]

    @pytest.mark.parametrize("status", ["pending", "recording", "processing"])
    def test_keeps_running_sessions_regardless_of_age(self, store, make_session, status):
        from walkthrough_recorder.recording.models import SessionStatus
        from walkthrough_recorder.recording.reaper import SessionReaper

        stuck = make_session(status=SessionStatus(status), age_hours=24 * 30)
        store.put(stuck)

        assert SessionReaper(store).sweep() == []
        assert stuck.id in store

    def test_keeps_sessions_without_timestamp(self, store, sample_request):
        from walkthrough_recorder.recording.models import RecordingSession, SessionStatus
        from walkthrough_recorder.recording.reaper import SessionReaper

        session = RecordingSession(id="legacy-session", request=sample_request, status=SessionStatus.COMPLETED)
        store.put(session)

        assert SessionReaper(store).sweep() == []

    def test_custom_retention(self, store, make_session):
        from walkthrough_recorder.recording.models import SessionStatus
        from walkthrough_recorder.recording.reaper import SessionReaper

        session = make_session(status=SessionStatus.COMPLETED, age_hours=2)
        store.put(session)

        assert SessionReaper(store, retention=timedelta(hours=3)).sweep() == []
        assert SessionReaper(store, retention=timedelta(hours=1)).sweep() == [session.id]

    def test_idempotent(self, store, make_session):
        from walkthrough_recorder.recording.models import SessionStatus
        from walkthrough_recorder.recording.reaper import SessionReaper

        store.put(make_session(status=SessionStatus.COMPLETED, age_hours=30))
        reaper = SessionReaper(store)

        assert len(reaper.sweep()) == 1
        assert reaper.sweep() == []


class TestPeriodicSweep:
    """Tests for the background sweep loop."""

    @pytest.mark.asyncio
    async def test_start_and_stop(self, store, make_session):
        from walkthrough_recorder.recording.models import SessionStatus
        from walkthrough_recorder.recording.reaper import SessionReaper

        old = make_session(status=SessionStatus.COMPLETED, age_hours=25)
        store.put(old)
        reaper = SessionReaper(store, interval_seconds=0.01)

        reaper.start()
        assert reaper.is_running
        await asyncio.sleep(0.05)
        await reaper.stop()

        assert not reaper.is_running
        assert old.id not in store

    @pytest.mark.asyncio
    async def test_start_twice_keeps_one_task(self, store):
        from walkthrough_recorder.recording.reaper import SessionReaper

        reaper = SessionReaper(store, interval_seconds=60)
        reaper.start()
        task = reaper._task
        reaper.start()

        assert reaper._task is task
        await reaper.stop()

    @pytest.mark.asyncio
    async def test_loop_survives_sweep_errors(self, store):
        from unittest.mock import patch

        from walkthrough_recorder.recording.reaper import SessionReaper

        reaper = SessionReaper(store, interval_seconds=0.01)
        with patch.object(reaper, "sweep", side_effect=RuntimeError("boom")) as mock_sweep:
            reaper.start()
            await asyncio.sleep(0.05)
            assert reaper.is_running
            await reaper.stop()

        assert mock_sweep.call_count >= 2

    @pytest.mark.asyncio
    async def test_stop_without_start(self, store):
        from walkthrough_recorder.recording.reaper import SessionReaper

        await SessionReaper(store).stop()
