"""Rendered page fetcher using Playwright."""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Optional

import structlog
from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError

from ..config import Config, config
from ..logging_config import print_status, print_warning
from .static import FetchError

logger = structlog.get_logger()

# Elements counted to see whether scrolling still loads new posts
POST_SELECTOR = "[data-ft], [id*='story'], article, [role='article']"

# Links and buttons that load older posts on the mobile and basic skins
LOAD_MORE_SELECTORS = (
    "a[href*='show_older']",
    "a[href*='bacr']",
    "a:has-text('See more posts')",
    "a:has-text('Show older')",
)

# Expands truncated post bodies
SEE_MORE_SELECTOR = "div[role='button']:has-text('See more')"

OLDEST_POST_SCRIPT = """
(cutoff) => Array.from(document.querySelectorAll('[data-utime], time[datetime]')).some(el => {
    const raw = el.getAttribute('data-utime') || el.getAttribute('datetime');
    if (!raw) return false;
    const ms = /^\\d+$/.test(raw) ? parseInt(raw, 10) * 1000 : Date.parse(raw);
    return !isNaN(ms) && ms <= cutoff;
})
"""

STALLED_SCROLLS = 3
MAX_SEE_MORE_CLICKS = 10


@dataclass(frozen=True)
class ScrollPolicy:
    """How far to scroll a rendered feed.

    Scrolling stops once a post older than ``days_back`` days is visible,
    or after ``max_scrolls`` attempts.
    """
    max_scrolls: int = 20
    days_back: int = 5
    scroll_delay: float = 2.0
    settle_delay: float = 3.0

    @classmethod
    def from_config(cls, cfg: Optional[Config] = None) -> "ScrollPolicy":
        cfg = cfg or config
        return cls(
            max_scrolls=cfg.scroll_max_scrolls,
            days_back=cfg.scroll_days_back,
            scroll_delay=cfg.scroll_delay,
            settle_delay=cfg.scroll_settle_delay,
        )

    def cutoff_ms(self, now: Optional[datetime] = None) -> int:
        now = now or datetime.now(timezone.utc)
        return int((now - timedelta(days=self.days_back)).timestamp() * 1000)


def to_browser_cookies(cookies: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Convert saved cookies to the shape Playwright's add_cookies expects."""
    converted = []
    for cookie in cookies:
        if not cookie.get("name") or "value" not in cookie:
            continue
        entry = {
            "name": cookie["name"],
            "value": str(cookie["value"]),
            "domain": cookie.get("domain") or ".facebook.com",
            "path": cookie.get("path") or "/",
            "secure": bool(cookie.get("secure", True)),
            "httpOnly": bool(cookie.get("httpOnly", False)),
        }
        expires = cookie.get("expires")
        if isinstance(expires, (int, float)) and expires > 0:
            entry["expires"] = float(expires)
        converted.append(entry)
    return converted


class BrowserFetcher:
    """Renders group pages in a headless browser and returns their HTML.

    Each fetch gets its own browser context, so fetches can run
    concurrently against one browser instance.
    """

    def __init__(
        self,
        policy: Optional[ScrollPolicy] = None,
        timeout: Optional[float] = None,
        storage_state: Optional[Path] = None,
        headless: bool = True,
    ):
        self.policy = policy or ScrollPolicy.from_config()
        self.timeout = timeout or config.browser_timeout_seconds
        self.storage_state = storage_state or config.session_path / "facebook_session.json"
        self.headless = headless
        self._playwright: Optional[Playwright] = None
        self.browser: Optional[Browser] = None

    async def start(self):
        """Launch the browser."""
        print_status("Opening browser...")
        logger.info("Starting browser")
        self._playwright = await async_playwright().start()
        self.browser = await self._playwright.firefox.launch(headless=self.headless)

    async def stop(self):
        """Close the browser."""
        if self.browser:
            await self.browser.close()
            self.browser = None
        if self._playwright:
            await self._playwright.stop()
            self._playwright = None
        logger.info("Browser stopped")

    async def __aenter__(self) -> "BrowserFetcher":
        await self.start()
        return self

    async def __aexit__(self, *exc_info):
        await self.stop()

    async def _new_context(self, cookies: Optional[list[dict[str, Any]]]) -> BrowserContext:
        storage_state = str(self.storage_state) if self.storage_state.exists() else None
        context = await self.browser.new_context(
            storage_state=storage_state,
            viewport={"width": 1280, "height": 1800},
            user_agent=config.user_agent,
            locale="en-US",
        )
        if cookies:
            await context.add_cookies(to_browser_cookies(cookies))
        return context

    async def _post_count(self, page: Page) -> int:
        return await page.evaluate(f"() => document.querySelectorAll(\"{POST_SELECTOR}\").length")

    async def _has_old_posts(self, page: Page) -> bool:
        return await page.evaluate(OLDEST_POST_SCRIPT, self.policy.cutoff_ms())

    async def _click_load_more(self, page: Page) -> bool:
        for selector in LOAD_MORE_SELECTORS:
            link = await page.query_selector(selector)
            if link is None:
                continue
            logger.debug("Clicking load more", selector=selector)
            await link.click()
            await asyncio.sleep(self.policy.settle_delay)
            return True
        return False

    async def _expand_truncated(self, page: Page):
        """Click "See more" on truncated posts so the full text is in the DOM."""
        buttons = await page.query_selector_all(SEE_MORE_SELECTOR)
        for button in buttons[:MAX_SEE_MORE_CLICKS]:
            try:
                await button.click(timeout=2000)
            except PlaywrightError:
                # Button scrolled away or was replaced; the post stays truncated
                continue
        if buttons:
            await asyncio.sleep(1)

    async def _scroll(self, page: Page, url: str):
        previous = await self._post_count(page)
        stalled = 0

        for attempt in range(1, self.policy.max_scrolls + 1):
            await page.evaluate("window.scrollBy(0, window.innerHeight * 0.8)")
            await asyncio.sleep(self.policy.scroll_delay)

            if await self._has_old_posts(page):
                logger.debug("Reached old posts", url=url, scrolls=attempt)
                break

            current = await self._post_count(page)
            stalled = stalled + 1 if current == previous else 0
            previous = current

            if stalled >= STALLED_SCROLLS:
                if not await self._click_load_more(page):
                    logger.debug("No new posts loading", url=url, scrolls=attempt)
                    break
                stalled = 0

    async def _render(self, url: str, cookies: Optional[list[dict[str, Any]]]) -> str:
        if self.browser is None:
            raise FetchError("Browser not started", url=url)

        context = await self._new_context(cookies)
        try:
            page = await context.new_page()
            await page.goto(url, wait_until="domcontentloaded")
            await asyncio.sleep(self.policy.settle_delay)

            if "login" in page.url:
                raise FetchError("Redirected to login page", url=url)

            await self._scroll(page, url)
            await self._expand_truncated(page)
            return await page.content()
        finally:
            await context.close()

    async def fetch(self, url: str, cookies: Optional[list[dict[str, Any]]] = None) -> str:
        """Render ``url`` and return the page HTML.

        Raises:
            FetchError: navigation failed or the attempt ran past the timeout.
        """
        logger.debug("Rendering page", url=url, timeout=self.timeout)
        try:
            html = await asyncio.wait_for(self._render(url, cookies), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            print_warning(f"  Timeout rendering {url}")
            raise FetchError(f"Timed out after {self.timeout}s", url=url) from e
        except PlaywrightError as e:
            raise FetchError(f"Browser error: {e}", url=url) from e

        logger.debug("Rendered page", url=url, size=len(html))
        return html


async def fetch_rendered(
    url: str,
    cookies: Optional[list[dict[str, Any]]] = None,
    policy: Optional[ScrollPolicy] = None,
) -> str:
    """Render a single page with a short-lived browser."""
    async with BrowserFetcher(policy=policy) as fetcher:
        return await fetcher.fetch(url, cookies)
