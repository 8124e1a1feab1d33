"""Browser Automation Abstraction Layer.

The recorder talks to the browser only through ``BrowserAutomation``, a small
page-automation capability: navigate with a timeout, probe for elements by
locator, type, click, scroll, wait, and capture the screen to a file.

``PlaywrightAutomation`` is the production implementation. Tests drive the
recorder with in-memory fakes of the same interface.
"""

import asyncio
import shutil
import tempfile
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional

import structlog
from playwright.async_api import Error as PlaywrightError

logger = structlog.get_logger()


DEFAULT_LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
]


@dataclass
class BrowserConfig:
    """Configuration for recording browser instances."""

    headless: bool = True
    executable_path: Optional[str] = None
    viewport_width: int = 1280
    viewport_height: int = 720
    timeout_ms: int = 30000
    ignore_https_errors: bool = True
    launch_args: list[str] = field(default_factory=lambda: list(DEFAULT_LAUNCH_ARGS))

    @property
    def viewport(self) -> dict[str, int]:
        return {"width": self.viewport_width, "height": self.viewport_height}


class BrowserAutomation(ABC):
    """Abstract page-automation capability.

    Element handles returned by ``query_selector`` are opaque; pass them back
    to the element methods of the same instance.
    """

    def __init__(self, config: Optional[BrowserConfig] = None):
        self.config = config or BrowserConfig()
        self.log = logger.bind(component="browser")

    @abstractmethod
    async def start(self) -> None:
        """Acquire the browser and an initial page."""
        pass

    @abstractmethod
    async def stop(self) -> None:
        """Release the browser, page and any capture handle."""
        pass

    @abstractmethod
    async def goto(self, url: str, timeout_ms: int, wait_until: str = "networkidle") -> None:
        """Navigate to a URL, raising on failure or timeout."""
        pass

    @abstractmethod
    async def query_selector(self, selector: str) -> Optional[Any]:
        """Return the first element matching the locator, or None.

        Best-effort: an unsupported locator is reported as no match.
        """
        pass

    @abstractmethod
    async def query_selector_all(self, selector: str) -> list[Any]:
        """Return all elements matching the locator (empty when none)."""
        pass

    @abstractmethod
    async def get_attribute(self, element: Any, name: str) -> Optional[str]:
        """Read an attribute from an element."""
        pass

    @abstractmethod
    async def type_into(self, element: Any, text: str, delay_ms: int = 0) -> None:
        """Type text into an element character by character."""
        pass

    @abstractmethod
    async def click_element(self, element: Any) -> None:
        """Click an element."""
        pass

    @abstractmethod
    async def scroll_into_view(self, element: Any) -> None:
        """Scroll until the element is visible."""
        pass

    @abstractmethod
    async def scroll_to(self, y: int) -> None:
        """Scroll the window to a vertical offset."""
        pass

    @abstractmethod
    async def scroll_to_bottom(self) -> None:
        """Scroll the window to the end of the document."""
        pass

    @abstractmethod
    async def start_capture(self, path: Path) -> None:
        """Start recording the screen into ``path``."""
        pass

    @abstractmethod
    async def stop_capture(self) -> Optional[Path]:
        """Stop recording and write the file.

        Returns the written path, or None when no capture was running.
        """
        pass

    async def wait(self, ms: int) -> None:
        """Fixed settle delay."""
        if ms > 0:
            await asyncio.sleep(ms / 1000)

    # Context manager support

    async def __aenter__(self) -> "BrowserAutomation":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()


class PlaywrightAutomation(BrowserAutomation):
    """Playwright-based browser automation with video capture.

    Playwright records video per browser context, so starting a capture opens
    a fresh recording context and page that replace the initial ones.
    Stopping the capture closes that context, which flushes the video, and
    saves it to the requested path.
    """

    def __init__(self, config: Optional[BrowserConfig] = None):
        super().__init__(config)
        self._playwright = None
        self._browser = None
        self._context = None
        self._page = None
        self._capture_path: Optional[Path] = None
        self._staging_dir: Optional[Path] = None

    @property
    def page(self):
        """Get the current page."""
        return self._page

    async def start(self) -> None:
        from playwright.async_api import async_playwright

        self.log.info("Starting browser", headless=self.config.headless)
        try:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(
                headless=self.config.headless,
                executable_path=self.config.executable_path,
                args=self.config.launch_args,
            )
            await self._open_page()
        except BaseException:
            # __aexit__ does not run when __aenter__ fails
            await self.stop()
            raise
        self.log.info("Browser started")

    async def _open_page(self, record_video_dir: Optional[Path] = None) -> None:
        options: dict[str, Any] = {
            "viewport": self.config.viewport,
            "ignore_https_errors": self.config.ignore_https_errors,
        }
        if record_video_dir is not None:
            options["record_video_dir"] = str(record_video_dir)
            options["record_video_size"] = self.config.viewport

        self._context = await self._browser.new_context(**options)
        self._context.set_default_timeout(self.config.timeout_ms)
        self._page = await self._context.new_page()

    async def stop(self) -> None:
        try:
            if self._context is not None:
                await self._context.close()
            if self._browser is not None:
                await self._browser.close()
        finally:
            self._context = None
            self._page = None
            self._browser = None
            if self._playwright is not None:
                await self._playwright.stop()
                self._playwright = None
            self._discard_staging()
            self._capture_path = None
            self.log.info("Browser stopped")

    def _discard_staging(self) -> None:
        if self._staging_dir is not None:
            shutil.rmtree(self._staging_dir, ignore_errors=True)
            self._staging_dir = None

    async def goto(self, url: str, timeout_ms: int, wait_until: str = "networkidle") -> None:
        self.log.info("Navigating", url=url, timeout_ms=timeout_ms)
        await self._page.goto(url, wait_until=wait_until, timeout=timeout_ms)

    async def query_selector(self, selector: str) -> Optional[Any]:
        try:
            return await self._page.query_selector(selector)
        except PlaywrightError as e:
            self.log.debug("Selector probe failed", selector=selector, error=str(e))
            return None

    async def query_selector_all(self, selector: str) -> list[Any]:
        try:
            return await self._page.query_selector_all(selector)
        except PlaywrightError as e:
            self.log.debug("Selector probe failed", selector=selector, error=str(e))
            return []

    async def get_attribute(self, element: Any, name: str) -> Optional[str]:
        return await element.get_attribute(name)

    async def type_into(self, element: Any, text: str, delay_ms: int = 0) -> None:
        await element.type(text, delay=delay_ms)

    async def click_element(self, element: Any) -> None:
        await element.click()

    async def scroll_into_view(self, element: Any) -> None:
        await element.scroll_into_view_if_needed()

    async def scroll_to(self, y: int) -> None:
        await self._page.evaluate("(y) => window.scrollTo(0, y)", y)

    async def scroll_to_bottom(self) -> None:
        await self._page.evaluate("() => window.scrollTo(0, document.body.scrollHeight)")

    async def start_capture(self, path: Path) -> None:
        if self._capture_path is not None:
            raise RuntimeError(f"Capture already running to {self._capture_path}")

        self._staging_dir = Path(tempfile.mkdtemp(prefix="walkthrough-capture-"))
        previous_context = self._context
        await self._open_page(record_video_dir=self._staging_dir)
        if previous_context is not None:
            await previous_context.close()

        self._capture_path = Path(path)
        self.log.info("Screen capture started", path=str(path))

    async def stop_capture(self) -> Optional[Path]:
        if self._capture_path is None:
            return None

        path, self._capture_path = self._capture_path, None
        video = self._page.video if self._page is not None else None
        context, self._context, self._page = self._context, None, None

        try:
            if context is not None:
                await context.close()
            if video is None:
                raise RuntimeError("No video handle was created for the capture")
            await video.save_as(str(path))
        finally:
            self._discard_staging()

        self.log.info("Screen capture saved", path=str(path))
        return path


def playwright_factory(config: Optional[BrowserConfig] = None) -> Callable[[], BrowserAutomation]:
    """Return a factory producing a fresh, unstarted Playwright browser per call."""

    def factory() -> BrowserAutomation:
        return PlaywrightAutomation(config)

    return factory
