"""Heuristic strategies used while recording.

Login detection is an ordered list of locator strategies evaluated until the
first one finds an element. Prompt-driven interactions are keyword-triggered
strategies. Both are best-effort: finding nothing is never an error.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional, Sequence

import structlog

from walkthrough_recorder.tools.browser_automation import BrowserAutomation

logger = structlog.get_logger()


@dataclass(frozen=True)
class SelectorStrategy:
    """Locate an element with a single locator."""

    name: str
    selector: str

    async def find(self, browser: BrowserAutomation) -> Optional[Any]:
        return await browser.query_selector(self.selector)


async def first_match(
    browser: BrowserAutomation,
    strategies: Sequence[SelectorStrategy],
) -> Optional[tuple[SelectorStrategy, Any]]:
    """Evaluate strategies in order and return the first hit, or None."""
    for strategy in strategies:
        element = await strategy.find(browser)
        if element is not None:
            logger.debug("Locator matched", strategy=strategy.name, selector=strategy.selector)
            return strategy, element
    return None


def _strategies(prefix: str, selectors: Sequence[str]) -> tuple[SelectorStrategy, ...]:
    return tuple(SelectorStrategy(f"{prefix}:{selector}", selector) for selector in selectors)


USERNAME_STRATEGIES = _strategies("username", [
    'input[name="username"]',
    'input[name="email"]',
    'input[type="email"]',
    'input[id*="username"]',
    'input[id*="email"]',
    "#username",
    "#email",
    ".username",
    ".email",
])

PASSWORD_STRATEGIES = _strategies("password", [
    'input[name="password"]',
    'input[type="password"]',
    "#password",
    ".password",
])

SUBMIT_STRATEGIES = _strategies("submit", [
    'button[type="submit"]',
    'input[type="submit"]',
    'button:has-text("Login")',
    'button:has-text("Sign in")',
    "#login",
    ".login",
    ".signin",
])


class InteractionStrategy(ABC):
    """A keyword-triggered interaction with the page.

    Args:
        settle_before_ms: Pause after scrolling the element into view
        settle_after_ms: Pause after the click so the transition is recorded
    """

    name: str = "interaction"
    keywords: tuple[str, ...] = ()

    def __init__(self, settle_before_ms: int = 1000, settle_after_ms: int = 2000):
        self.settle_before_ms = settle_before_ms
        self.settle_after_ms = settle_after_ms

    def applies_to(self, prompt: str) -> bool:
        text = prompt.lower()
        return any(keyword in text for keyword in self.keywords)

    @abstractmethod
    async def find_target(self, browser: BrowserAutomation) -> Optional[Any]:
        """Return the element to click, or None."""
        pass

    async def perform(self, browser: BrowserAutomation) -> bool:
        """Scroll to and click the target. Returns False if there was none."""
        element = await self.find_target(browser)
        if element is None:
            logger.debug("No interaction target found", interaction=self.name)
            return False

        await browser.scroll_into_view(element)
        await browser.wait(self.settle_before_ms)
        await browser.click_element(element)
        await browser.wait(self.settle_after_ms)
        logger.info("Interaction performed", interaction=self.name)
        return True


class ButtonClickInteraction(InteractionStrategy):
    """Click the first button-like element."""

    name = "button_click"
    keywords = ("click", "button")
    selector = 'button, .btn, [role="button"]'

    async def find_target(self, browser: BrowserAutomation) -> Optional[Any]:
        return await browser.query_selector(self.selector)


class LinkFollowInteraction(InteractionStrategy):
    """Follow the first real hyperlink among the first few on the page."""

    name = "link_follow"
    keywords = ("link", "navigate")
    selector = "a[href]"
    max_candidates = 3

    def __init__(self, settle_before_ms: int = 1000, settle_after_ms: int = 3000):
        super().__init__(settle_before_ms, settle_after_ms)

    @staticmethod
    def is_followable(href: Optional[str]) -> bool:
        return bool(href) and not href.startswith("#") and "javascript:" not in href

    async def find_target(self, browser: BrowserAutomation) -> Optional[Any]:
        links = await browser.query_selector_all(self.selector)
        for link in links[: self.max_candidates]:
            href = await browser.get_attribute(link, "href")
            if self.is_followable(href):
                return link
        return None
