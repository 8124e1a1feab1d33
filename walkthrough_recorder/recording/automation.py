"""Browser-driven screen recording of a target web application.

Each call to ``AutomationRecorder.record`` acquires its own browser, captures
one video and releases everything before returning or raising.
"""

import asyncio
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Callable, Optional, Sequence

import structlog

from walkthrough_recorder.config import Settings
from walkthrough_recorder.recording.models import RecordingSession
from walkthrough_recorder.recording.strategies import (
    PASSWORD_STRATEGIES,
    SUBMIT_STRATEGIES,
    USERNAME_STRATEGIES,
    ButtonClickInteraction,
    InteractionStrategy,
    LinkFollowInteraction,
    first_match,
)
from walkthrough_recorder.tools.browser_automation import (
    BrowserAutomation,
    BrowserConfig,
    playwright_factory,
)

logger = structlog.get_logger()

BrowserFactory = Callable[[], BrowserAutomation]

VIDEO_EXTENSION = ".webm"


@dataclass(frozen=True)
class RecorderTimings:
    """Fixed settle delays in milliseconds."""

    navigation_settle_ms: int = 2000
    field_pause_ms: int = 500
    submit_pause_ms: int = 3000
    initial_scroll_ms: int = 1500
    button_before_ms: int = 1000
    button_after_ms: int = 2000
    link_before_ms: int = 1000
    link_after_ms: int = 3000
    bottom_scroll_ms: int = 2000
    top_scroll_ms: int = 1500
    final_hold_ms: int = 3000

    def scaled(self, factor: float) -> "RecorderTimings":
        return replace(
            self,
            **{f.name: int(getattr(self, f.name) * factor) for f in fields(self)},
        )

    @classmethod
    def instant(cls) -> "RecorderTimings":
        return cls().scaled(0)


@dataclass
class CaptureResult:
    """Where a finished capture lives."""

    file_path: str
    video_url: str


def default_interactions(timings: RecorderTimings) -> list[InteractionStrategy]:
    return [
        ButtonClickInteraction(timings.button_before_ms, timings.button_after_ms),
        LinkFollowInteraction(timings.link_before_ms, timings.link_after_ms),
    ]


class AutomationRecorder:
    """Navigate, optionally log in, interact and capture a video.

    Args:
        browser_factory: Returns a fresh, unstarted browser per recording
        recordings_dir: Directory the capture files are written to
        video_url_prefix: URL prefix under which captures are served
        navigation_timeout_ms: Bound on the initial navigation
        typing_delay_ms: Per-character delay when entering credentials
        timings: Settle delays between actions
        interactions: Prompt-driven interactions, in evaluation order
    """

    INITIAL_SCROLL_Y = 200

    def __init__(
        self,
        browser_factory: BrowserFactory,
        recordings_dir: str | Path = "./recordings",
        video_url_prefix: str = "/api/recordings",
        navigation_timeout_ms: int = 30000,
        typing_delay_ms: int = 100,
        timings: Optional[RecorderTimings] = None,
        interactions: Optional[Sequence[InteractionStrategy]] = None,
    ):
        self.browser_factory = browser_factory
        self.recordings_dir = Path(recordings_dir)
        self.video_url_prefix = video_url_prefix.rstrip("/")
        self.navigation_timeout_ms = navigation_timeout_ms
        self.typing_delay_ms = typing_delay_ms
        self.timings = timings or RecorderTimings()
        self.interactions = (
            list(interactions) if interactions is not None else default_interactions(self.timings)
        )
        self.log = logger.bind(component="automation_recorder")

    def capture_path(self, session_id: str) -> Path:
        return self.recordings_dir / f"{session_id}{VIDEO_EXTENSION}"

    def video_url(self, session_id: str) -> str:
        return f"{self.video_url_prefix}/{session_id}{VIDEO_EXTENSION}"

    async def record(self, session: RecordingSession) -> CaptureResult:
        """Capture a walkthrough video for the session.

        Raises:
            Exception: Any navigation, browser or capture error, unchanged.
                The capture is stopped and the browser released first.
        """
        path = self.capture_path(session.id)
        log = self.log.bind(session_id=session.id)

        async with self.browser_factory() as browser:
            try:
                await asyncio.to_thread(path.parent.mkdir, parents=True, exist_ok=True)
                await browser.start_capture(path)

                log.info("Navigating to target", url=session.target_url)
                await browser.goto(session.target_url, timeout_ms=self.navigation_timeout_ms)
                await browser.wait(self.timings.navigation_settle_ms)

                if session.request.has_credentials:
                    await self.authenticate(browser, session.username, session.password)

                performed = await self.perform_interactions(browser, session.user_prompt)
                await browser.wait(self.timings.final_hold_ms)

                await browser.stop_capture()
            except Exception as e:
                log.error("Recording failed", error=str(e), error_type=type(e).__name__)
                await self._abort_capture(browser, session.id)
                raise

        if not await asyncio.to_thread(path.exists):
            raise RuntimeError(f"Capture file was not written: {path}")

        stat = await asyncio.to_thread(path.stat)
        log.info(
            "Recording captured",
            file_path=str(path),
            size_bytes=stat.st_size,
            interactions=performed,
        )
        return CaptureResult(file_path=str(path), video_url=self.video_url(session.id))

    async def _abort_capture(self, browser: BrowserAutomation, session_id: str) -> None:
        try:
            await browser.stop_capture()
        except Exception as cleanup_error:
            self.log.debug(
                "Ignoring capture stop error during cleanup",
                session_id=session_id,
                error=str(cleanup_error),
            )

    async def authenticate(self, browser: BrowserAutomation, username: str, password: str) -> bool:
        """Best-effort login. Returns True if a login form was filled."""
        username_match = await first_match(browser, USERNAME_STRATEGIES)
        password_match = await first_match(browser, PASSWORD_STRATEGIES)
        if username_match is None or password_match is None:
            self.log.info(
                "Login form not found, continuing unauthenticated",
                username_field=username_match is not None,
                password_field=password_match is not None,
            )
            return False

        self.log.info(
            "Entering credentials",
            username_locator=username_match[0].selector,
            password_locator=password_match[0].selector,
        )
        await browser.type_into(username_match[1], username, delay_ms=self.typing_delay_ms)
        await browser.wait(self.timings.field_pause_ms)
        await browser.type_into(password_match[1], password, delay_ms=self.typing_delay_ms)
        await browser.wait(self.timings.field_pause_ms)

        submit_match = await first_match(browser, SUBMIT_STRATEGIES)
        if submit_match is None:
            self.log.info("No submit control found")
            return True

        await browser.click_element(submit_match[1])
        await browser.wait(self.timings.submit_pause_ms)
        return True

    async def perform_interactions(self, browser: BrowserAutomation, prompt: str) -> list[str]:
        """Run keyword interactions and a full-page scroll.

        Returns the names of interactions that clicked something.
        """
        await browser.scroll_to(self.INITIAL_SCROLL_Y)
        await browser.wait(self.timings.initial_scroll_ms)

        performed = []
        for interaction in self.interactions:
            if interaction.applies_to(prompt) and await interaction.perform(browser):
                performed.append(interaction.name)

        await browser.scroll_to_bottom()
        await browser.wait(self.timings.bottom_scroll_ms)
        await browser.scroll_to(0)
        await browser.wait(self.timings.top_scroll_ms)
        return performed


def create_recorder(settings: Settings) -> AutomationRecorder:
    """Build a Playwright-backed recorder from settings."""
    config = BrowserConfig(
        headless=settings.browser_headless,
        executable_path=settings.browser_executable_path,
        viewport_width=settings.viewport_width,
        viewport_height=settings.viewport_height,
        timeout_ms=settings.navigation_timeout_ms,
    )
    return AutomationRecorder(
        browser_factory=playwright_factory(config),
        recordings_dir=settings.recordings_dir,
        video_url_prefix=settings.video_url_prefix,
        navigation_timeout_ms=settings.navigation_timeout_ms,
        typing_delay_ms=settings.typing_delay_ms,
        timings=RecorderTimings().scaled(settings.interaction_delay_scale),
    )
