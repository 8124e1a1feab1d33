"""Removal of old finished sessions from the session store."""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Optional

import structlog

from walkthrough_recorder.recording.session_store import SessionStore

logger = structlog.get_logger()


class SessionReaper:
    """Sweep terminal sessions older than the retention window.

    Sessions that are still running are never removed, whatever their age.
    Sessions whose id carries no creation time are kept.
    """

    def __init__(
        self,
        store: SessionStore,
        retention: timedelta = timedelta(hours=24),
        interval_seconds: float = 3600,
    ):
        self.store = store
        self.retention = retention
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None
        self._log = logger.bind(component="session_reaper")

    def sweep(self, now: Optional[datetime] = None) -> list[str]:
        """Remove expired terminal sessions. Returns the removed ids."""
        cutoff = (now or datetime.now(timezone.utc)) - self.retention
        removed = []

        for session in self.store.list_all():
            if not session.status.is_terminal:
                continue
            created_at = session.created_at
            if created_at is None or created_at >= cutoff:
                continue
            if self.store.delete(session.id):
                removed.append(session.id)

        if removed:
            self._log.info("Removed expired sessions", count=len(removed), session_ids=removed)
        return removed

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the periodic sweep. Requires a running event loop."""
        if self.is_running:
            self._log.warning("Session reaper already running")
            return

        self._log.info("Starting session reaper", interval_seconds=self.interval_seconds)
        self._task = asyncio.create_task(self._loop())

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            self._log.info("Session reaper stopped")

    async def _loop(self) -> None:
        while True:
            try:
                await asyncio.sleep(self.interval_seconds)
                self.sweep()
            except asyncio.CancelledError:
                break
            except Exception as e:
                self._log.error("Session sweep failed", error=str(e))
