"""Shared fixtures for walkthrough recorder tests."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from walkthrough_recorder.tools.browser_automation import BrowserAutomation, BrowserConfig


def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "smoke: mark test as smoke test (fast, critical path - included in CI)"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as integration test requiring a real browser or API keys"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )


# Keep real credentials out of the test run
for _name in ("OPENAI_API_KEY", "GEMINI_API_KEY", "RESEND_API_KEY", "GMAIL_USER", "GMAIL_APP_PASSWORD"):
    os.environ.pop(_name, None)


@pytest.fixture
def mock_env_vars(monkeypatch):
    """Set up test environment variables."""
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test-openai-key")
    monkeypatch.setenv("GEMINI_API_KEY", "test-gemini-key")
    monkeypatch.setenv("GMAIL_USER", "recorder@example.com")
    monkeypatch.setenv("GMAIL_APP_PASSWORD", "test-app-password")
    monkeypatch.delenv("RESEND_API_KEY", raising=False)
    monkeypatch.delenv("EMAIL_BACKEND", raising=False)


# Fake browser


@dataclass
class FakeElement:
    """Element handle returned by FakeBrowser."""

    selector: str
    attributes: dict[str, str] = field(default_factory=dict)
    typed: list[str] = field(default_factory=list)
    clicks: int = 0


class FakeBrowser(BrowserAutomation):
    """In-memory BrowserAutomation that records every call."""

    def __init__(self, factory: "FakeBrowserFactory", config: Optional[BrowserConfig] = None):
        super().__init__(config)
        self.factory = factory
        self.calls: list[tuple] = []
        self.started = False
        self.stopped = False
        self.capture_path: Optional[Path] = None
        self.waited_ms: list[int] = []

    async def start(self) -> None:
        self.calls.append(("start",))
        if self.factory.launch_error:
            raise self.factory.launch_error
        self.started = True

    async def stop(self) -> None:
        self.calls.append(("stop",))
        self.stopped = True

    async def goto(self, url: str, timeout_ms: int, wait_until: str = "networkidle") -> None:
        self.calls.append(("goto", url, timeout_ms))
        if self.factory.goto_error:
            raise self.factory.goto_error

    async def query_selector(self, selector: str) -> Optional[Any]:
        self.calls.append(("query_selector", selector))
        matches = self.factory.elements.get(selector, [])
        return matches[0] if matches else None

    async def query_selector_all(self, selector: str) -> list[Any]:
        self.calls.append(("query_selector_all", selector))
        return list(self.factory.elements.get(selector, []))

    async def get_attribute(self, element: Any, name: str) -> Optional[str]:
        return element.attributes.get(name)

    async def type_into(self, element: Any, text: str, delay_ms: int = 0) -> None:
        self.calls.append(("type", element.selector, delay_ms))
        element.typed.append(text)

    async def click_element(self, element: Any) -> None:
        self.calls.append(("click", element.selector))
        element.clicks += 1

    async def scroll_into_view(self, element: Any) -> None:
        self.calls.append(("scroll_into_view", element.selector))

    async def scroll_to(self, y: int) -> None:
        self.calls.append(("scroll_to", y))

    async def scroll_to_bottom(self) -> None:
        self.calls.append(("scroll_to_bottom",))

    async def wait(self, ms: int) -> None:
        self.waited_ms.append(ms)

    async def start_capture(self, path: Path) -> None:
        self.calls.append(("start_capture", str(path)))
        if self.factory.capture_error:
            raise self.factory.capture_error
        self.capture_path = Path(path)

    async def stop_capture(self) -> Optional[Path]:
        self.calls.append(("stop_capture",))
        if self.capture_path is None:
            return None
        path, self.capture_path = self.capture_path, None
        if self.factory.stop_capture_error:
            raise self.factory.stop_capture_error
        if self.factory.write_capture:
            path.write_bytes(b"\x1aE\xdf\xa3fake-webm")
        return path

    def call_names(self) -> list[str]:
        return [call[0] for call in self.calls]


class FakeBrowserFactory:
    """Browser factory for AutomationRecorder that hands out FakeBrowsers.

    Page content and failures are configured on the factory and shared by
    every browser it creates.
    """

    def __init__(self):
        self.elements: dict[str, list[FakeElement]] = {}
        self.instances: list[FakeBrowser] = []
        self.launch_error: Optional[Exception] = None
        self.goto_error: Optional[Exception] = None
        self.capture_error: Optional[Exception] = None
        self.stop_capture_error: Optional[Exception] = None
        self.write_capture = True

    def add_element(self, selector: str, **attributes: str) -> FakeElement:
        element = FakeElement(selector=selector, attributes=attributes)
        self.elements.setdefault(selector, []).append(element)
        return element

    @property
    def last(self) -> FakeBrowser:
        return self.instances[-1]

    def __call__(self) -> FakeBrowser:
        browser = FakeBrowser(self)
        self.instances.append(browser)
        return browser


@pytest.fixture
def browser_factory():
    """Factory producing fake browsers."""
    return FakeBrowserFactory()


@pytest.fixture
def instant_timings():
    """Recorder timings with every settle delay disabled."""
    from walkthrough_recorder.recording.automation import RecorderTimings

    return RecorderTimings.instant()


@pytest.fixture
def recorder(browser_factory, tmp_path, instant_timings):
    """AutomationRecorder writing into a temporary directory."""
    from walkthrough_recorder.recording.automation import AutomationRecorder

    return AutomationRecorder(
        browser_factory=browser_factory,
        recordings_dir=tmp_path / "recordings",
        video_url_prefix="/api/recordings",
        navigation_timeout_ms=30000,
        typing_delay_ms=100,
        timings=instant_timings,
    )


# AI providers


def make_provider(provider_id: str = "openai", content: str = '{"script": "Hello"}', configured: bool = True):
    """Create a mock BaseProvider returning a fixed response."""
    from walkthrough_recorder.core.providers import ChatResponse

    provider = MagicMock()
    provider.provider_id = provider_id
    provider.is_configured = configured
    provider.chat = AsyncMock(return_value=ChatResponse(content=content, model=f"{provider_id}-model"))
    return provider


@pytest.fixture
def provider_factory():
    """Build mock providers: provider_factory("openai", content='{...}')."""
    return make_provider


# Mail


@pytest.fixture
def mock_email_service():
    """Configured EmailService whose provider succeeds."""
    from walkthrough_recorder.services.email_service import EmailProvider, EmailService

    provider = MagicMock(spec=EmailProvider)
    provider.name = "mock"
    provider.verify = AsyncMock(return_value=None)
    provider.send = AsyncMock(return_value=None)
    return EmailService(
        provider=provider,
        from_email="recorder@example.com",
        from_name="Walkthroughs",
        smtp_summary={"host": "smtp.gmail.com", "port": 587, "sender": "recorder@example.com"},
    )


@pytest.fixture
def unconfigured_email_service():
    """EmailService with no transport."""
    from walkthrough_recorder.services.email_service import EmailService

    return EmailService(provider=None)


# Sessions


@pytest.fixture
def sample_request_data():
    """Recording request as sent by the dashboard."""
    return {
        "targetUrl": "https://example.com",
        "username": "",
        "password": "",
        "userPrompt": "show the homepage",
        "email": "a@b.com",
        "requestId": 1,
    }


@pytest.fixture
def sample_request(sample_request_data):
    from walkthrough_recorder.recording.models import RecordingRequest

    return RecordingRequest.model_validate(sample_request_data)


@pytest.fixture
def make_session(sample_request):
    """Build RecordingSessions with a chosen age and status."""
    import time

    from walkthrough_recorder.recording.models import (
        RecordingSession,
        SessionStatus,
        new_session_id,
    )

    def _make(status=SessionStatus.PENDING, age_hours: float = 0.0, request=None, **fields):
        session_id = new_session_id(now=time.time() - age_hours * 3600)
        return RecordingSession(
            id=session_id,
            request=request or sample_request,
            status=status,
            **fields,
        )

    return _make
