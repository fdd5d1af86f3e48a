"""
Tests for URL handling and browser session strategies (no real browser)
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from snatch_core.browser import (
    BrowserSession,
    PageLease,
    PerJobSessions,
    SharedSessions,
    normalize_url,
    validate_url,
)
from snatch_core.errors import BrowserError, ElementNotFoundError, NavigationError


class TestUrls:
    @pytest.mark.parametrize("url, expected", [
        ("example.com", "https://example.com"),
        ("  example.com/pricing  ", "https://example.com/pricing"),
        ("http://example.com", "http://example.com"),
        ("https://example.com", "https://example.com"),
        ("", ""),
    ])
    def test_normalize(self, url, expected):
        assert normalize_url(url) == expected

    @pytest.mark.parametrize("url", ["https://example.com", "http://localhost:3000/a?b=c"])
    def test_valid(self, url):
        assert validate_url(url) == url

    @pytest.mark.parametrize("url", [
        "ftp://example.com",
        "file:///etc/passwd",
        "https://",
        "https://not a url",
        "",
    ])
    def test_invalid(self, url):
        with pytest.raises(NavigationError):
            validate_url(url)


def fake_page():
    page = MagicMock()
    page.goto = AsyncMock()
    page.wait_for_timeout = AsyncMock()
    page.close = AsyncMock()
    page.url = "https://example.com/"
    return page


def launched_session(page=None):
    session = BrowserSession(timeout=1000)
    session._page = page or fake_page()
    session._context = MagicMock()
    session._context.new_page = AsyncMock(side_effect=lambda: fake_page())
    session._browser = MagicMock()
    session._browser.close = AsyncMock()
    session._playwright = MagicMock()
    session._playwright.stop = AsyncMock()
    return session


class TestBrowserSession:
    def test_get_page_before_launch(self):
        with pytest.raises(BrowserError) as exc_info:
            BrowserSession().get_page()

        assert "launch()" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_close_without_launch(self):
        session = BrowserSession()

        await session.close()
        await session.close()

        assert not session.is_launched()

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self):
        session = launched_session()
        browser, playwright = session._browser, session._playwright

        await session.close()
        await session.close()

        browser.close.assert_awaited_once()
        playwright.stop.assert_awaited_once()
        assert not session.is_launched()

    @pytest.mark.asyncio
    async def test_navigate_normalizes(self):
        session = launched_session()

        await session.navigate("example.com")

        session._page.goto.assert_awaited_once()
        assert session._page.goto.await_args.args[0] == "https://example.com"

    @pytest.mark.asyncio
    async def test_navigate_rejects_bad_url_without_loading(self):
        session = launched_session()

        with pytest.raises(NavigationError):
            await session.navigate("ftp://example.com")

        session._page.goto.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_navigate_timeout(self):
        session = launched_session()
        session._page.goto.side_effect = PlaywrightTimeoutError("Timeout 1000ms exceeded")

        with pytest.raises(NavigationError) as exc_info:
            await session.navigate("https://slow.example.com")

        assert "timed out" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_navigate_network_error(self):
        session = launched_session()
        session._page.goto.side_effect = PlaywrightError("net::ERR_NAME_NOT_RESOLVED")

        with pytest.raises(NavigationError) as exc_info:
            await session.navigate("https://nope.invalid")

        assert "ERR_NAME_NOT_RESOLVED" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_screenshot_full_page(self):
        session = launched_session()
        session._page.screenshot = AsyncMock(return_value=b"png")

        assert await session.screenshot() == b"png"
        session._page.screenshot.assert_awaited_once_with(full_page=True)

    @pytest.mark.asyncio
    async def test_screenshot_missing_element(self):
        session = launched_session()
        session._page.query_selector = AsyncMock(return_value=None)

        with pytest.raises(ElementNotFoundError):
            await session.screenshot(".nope")

    def test_from_config(self):
        from snatch_core.config import Config

        config = Config(headless=False)
        config.browser.timeout = 5000

        session = BrowserSession.from_config(config)

        assert session.headless is False
        assert session.timeout == 5000


@pytest.mark.asyncio
class TestSessionStrategies:
    async def test_per_job_sessions_are_fresh(self):
        sessions = PerJobSessions(headless=True, timeout=1000)

        first = await sessions.acquire()
        second = await sessions.acquire()

        assert isinstance(first, BrowserSession)
        assert first is not second
        assert first.timeout == 1000

    async def test_shared_sessions_reuse_browser(self):
        sessions = SharedSessions(timeout=1000)
        session = sessions.session
        session.launch = AsyncMock(side_effect=lambda: setattr(session, "_page", fake_page()))
        session.new_page = AsyncMock()

        first = await sessions.acquire()
        second = await sessions.acquire()

        session.launch.assert_awaited_once()
        session.new_page.assert_awaited_once()
        assert isinstance(first, PageLease)
        assert first is not second

    async def test_lease_close_keeps_browser(self):
        session = launched_session()
        lease = PageLease(session)

        await lease.close()
        await lease.close()

        session._page.goto.assert_awaited_once_with("about:blank")
        session._browser.close.assert_not_awaited()
        assert session.is_launched()
        assert not lease.is_launched()

    async def test_shared_aclose_closes_browser(self):
        sessions = SharedSessions()
        sessions.session = launched_session()
        browser = sessions.session._browser

        await sessions.aclose()

        browser.close.assert_awaited_once()
