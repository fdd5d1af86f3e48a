#!/usr/bin/env python3
"""
Browser session management over the Playwright async API.

``BrowserSession`` owns one browser/context/page. ``PerJobSessions`` and
``SharedSessions`` are the two ways a batch can hand sessions to jobs.
"""

import logging
from typing import Any, Dict, Optional
from urllib.parse import urlparse

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from .constants import DEFAULT_USER_AGENT, DEFAULTS
from .errors import BrowserError, ElementNotFoundError, NavigationError
from .models import PickerSelection
from .picker import launch_picker

logger = logging.getLogger(__name__)

# Extra time for JS rendering and lazy content after domcontentloaded
SETTLE_MS = 500

ALLOWED_SCHEMES = ("http", "https")


def normalize_url(url: str) -> str:
    """Add ``https://`` when the URL has no scheme."""
    url = (url or "").strip()
    if url and "://" not in url:
        return f"https://{url}"
    return url


def validate_url(url: str) -> str:
    """Return the URL if it is a navigable http(s) address, else raise ``NavigationError``."""
    if not url or any(ch.isspace() for ch in url):
        raise NavigationError(url, f"Invalid URL: {url!r}")
    parsed = urlparse(url)
    if parsed.scheme not in ALLOWED_SCHEMES:
        raise NavigationError(url, f"Unsupported protocol {parsed.scheme!r} in URL: {url}")
    if not parsed.hostname:
        raise NavigationError(url, f"Invalid URL, missing host: {url}")
    return url


class BrowserSession:
    """One Chromium browser with a single active page."""

    def __init__(
        self,
        headless: bool = DEFAULTS["headless"],
        viewport: Optional[Dict[str, int]] = None,
        timeout: int = DEFAULTS["timeout"],
        user_agent: Optional[str] = None,
    ):
        self.headless = headless
        self.viewport = viewport or dict(DEFAULTS["viewport"])
        self.timeout = timeout
        self.user_agent = user_agent or DEFAULT_USER_AGENT
        self._playwright = None
        self._browser = None
        self._context = None
        self._page = None

    @classmethod
    def from_config(cls, config) -> "BrowserSession":
        return cls(
            headless=config.headless,
            viewport=config.browser.viewport,
            timeout=config.browser.timeout,
            user_agent=config.browser.user_agent,
        )

    def is_launched(self) -> bool:
        return self._page is not None

    async def launch(self):
        """Start the browser and open a page. Returns the page."""
        if self.is_launched():
            return self._page
        try:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(
                headless=self.headless,
                args=["--no-sandbox", "--disable-dev-shm-usage"],
            )
            self._context = await self._browser.new_context(
                viewport=self.viewport,
                user_agent=self.user_agent,
            )
            self._page = await self._context.new_page()
            self._page.set_default_timeout(self.timeout)
        except PlaywrightError as e:
            await self.close()
            if "Executable doesn't exist" in str(e):
                raise BrowserError("Chromium is not installed. Run: playwright install chromium", cause=e)
            raise BrowserError(f"Failed to launch browser: {e}", cause=e)
        logger.debug(f"🌐 Browser launched (headless={self.headless}, viewport={self.viewport})")
        return self._page

    def get_page(self):
        if self._page is None:
            raise BrowserError("Browser not launched. Call launch() first.")
        return self._page

    async def new_page(self):
        """Replace the active page with a fresh one in the same context."""
        if self._context is None:
            raise BrowserError("Browser not launched. Call launch() first.")
        if self._page is not None:
            try:
                await self._page.close()
            except PlaywrightError as e:
                logger.debug(f"Closing previous page failed: {e}")
        self._page = await self._context.new_page()
        self._page.set_default_timeout(self.timeout)
        return self._page

    async def navigate(self, url: str) -> None:
        page = self.get_page()
        url = validate_url(normalize_url(url))
        try:
            await page.goto(url, wait_until="domcontentloaded", timeout=self.timeout)
            await page.wait_for_timeout(SETTLE_MS)
        except PlaywrightTimeoutError as e:
            raise NavigationError(url, f"Navigation timed out after {self.timeout}ms: {url}", cause=e)
        except PlaywrightError as e:
            raise NavigationError(url, f"Failed to navigate to {url}: {e}", cause=e)
        logger.debug(f"Loaded {page.url}")

    async def run_interactive_picker(self, **options) -> PickerSelection:
        return await launch_picker(self.get_page(), **options)

    async def screenshot(self, selector: Optional[str] = None) -> bytes:
        page = self.get_page()
        if selector:
            element = await page.query_selector(selector)
            if element is None:
                raise ElementNotFoundError(selector)
            return await element.screenshot()
        return await page.screenshot(full_page=True)

    async def close(self) -> None:
        """Shut everything down. Safe to call more than once."""
        browser, playwright = self._browser, self._playwright
        self._page = self._context = self._browser = self._playwright = None
        try:
            if browser is not None:
                await browser.close()
        finally:
            if playwright is not None:
                await playwright.stop()


class PageLease:
    """
    A page handed out by ``SharedSessions``.

    Exposes the session interface the pipeline uses; ``close()`` releases
    only the page, the browser stays up for the next job.
    """

    def __init__(self, session: BrowserSession):
        self._session = session
        self._closed = False

    def is_launched(self) -> bool:
        return not self._closed and self._session.is_launched()

    async def launch(self):
        return self._session.get_page()

    def get_page(self):
        return self._session.get_page()

    async def navigate(self, url: str) -> None:
        await self._session.navigate(url)

    async def run_interactive_picker(self, **options) -> PickerSelection:
        return await self._session.run_interactive_picker(**options)

    async def screenshot(self, selector: Optional[str] = None) -> bytes:
        return await self._session.screenshot(selector)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self._session.get_page().goto("about:blank")
        except (PlaywrightError, BrowserError) as e:
            logger.debug(f"Resetting shared page failed: {e}")


class PerJobSessions:
    """Every job gets its own browser, closed by the pipeline when the job ends."""

    def __init__(self, **session_options: Any):
        self.session_options = session_options

    async def acquire(self) -> BrowserSession:
        return BrowserSession(**self.session_options)

    async def aclose(self) -> None:
        pass


class SharedSessions:
    """One browser for all jobs; each job gets a fresh page through a ``PageLease``."""

    def __init__(self, **session_options: Any):
        self.session = BrowserSession(**session_options)

    async def acquire(self) -> PageLease:
        if not self.session.is_launched():
            await self.session.launch()
        else:
            await self.session.new_page()
        return PageLease(self.session)

    async def aclose(self) -> None:
        await self.session.close()
