"""Post-processing stage for captured recordings."""

import asyncio

import structlog

from walkthrough_recorder.recording.models import RecordingSession

logger = structlog.get_logger()


class PostProcessor:
    """Enrichment of a captured video before it is published.

    Currently simulates the latency of highlighting, narration synthesis,
    captioning and CDN upload. Does not modify the session.
    """

    def __init__(self, delay_seconds: float = 3.0):
        self.delay_seconds = delay_seconds

    async def process(self, session: RecordingSession) -> None:
        logger.info(
            "Post-processing recording",
            session_id=session.id,
            file_path=session.file_path,
            has_script=bool(session.script_content),
        )
        if self.delay_seconds > 0:
            await asyncio.sleep(self.delay_seconds)
