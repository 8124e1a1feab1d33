"""Browser automation tools for walkthrough recording."""

from walkthrough_recorder.tools.browser_automation import (
    BrowserAutomation,
    BrowserConfig,
    PlaywrightAutomation,
    playwright_factory,
)

__all__ = [
    "BrowserAutomation",
    "BrowserConfig",
    "PlaywrightAutomation",
    "playwright_factory",
]
