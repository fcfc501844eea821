"""Unit tests for browser factory."""

import asyncio

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from playwright.async_api import Error

from sitecap.capture.browser_factory import BrowserConfig, BrowserEngineType, BrowserFactory
from sitecap.config import SitecapSettings


class TestBrowserConfig:
    """Tests for BrowserConfig class."""

    def test_defaults(self):
        config = BrowserConfig()

        assert config.engine == BrowserEngineType.CHROMIUM
        assert config.headless is True
        assert config.cdp_endpoint is None
        assert config.context_options() == {}

    def test_context_options(self):
        config = BrowserConfig(
            user_agent="Test Agent",
            ignore_https_errors=True,
            locale='en-US',
            timezone='America/New_York',
        )

        assert config.context_options() == {
            'user_agent': "Test Agent",
            'ignore_https_errors': True,
            'locale': 'en-US',
            'timezone_id': 'America/New_York',
        }

    def test_built_from_settings(self):
        settings = SitecapSettings(browser={
            'engine': 'webkit',
            'headless': False,
            'cdp_endpoint': 'http://localhost:9222',
            'locale': 'de-DE',
        })

        config = settings.get_browser_config()

        assert config == BrowserConfig(
            engine='webkit',
            headless=False,
            cdp_endpoint='http://localhost:9222',
            locale='de-DE',
        )


class TestBrowserFactory:
    """Tests for BrowserFactory class."""

    @pytest.fixture
    def mock_playwright(self):
        """Mock Playwright driver, browser, context and page."""
        with patch('sitecap.capture.browser_factory.async_playwright') as mock_pw:
            playwright_mock = MagicMock()
            playwright_mock.stop = AsyncMock()
            async_pw_instance = MagicMock()
            async_pw_instance.start = AsyncMock(return_value=playwright_mock)
            mock_pw.return_value = async_pw_instance

            browser_mock = MagicMock()
            browser_mock.is_connected.return_value = True
            browser_mock.close = AsyncMock()

            for browser_type in (playwright_mock.chromium, playwright_mock.firefox, playwright_mock.webkit):
                browser_type.launch = AsyncMock(return_value=browser_mock)
                browser_type.connect_over_cdp = AsyncMock(return_value=browser_mock)

            context_mock = MagicMock()
            context_mock.close = AsyncMock()
            page_mock = MagicMock()
            page_mock.close = AsyncMock()
            context_mock.new_page = AsyncMock(return_value=page_mock)
            browser_mock.new_context = AsyncMock(return_value=context_mock)

            yield {
                'playwright': playwright_mock,
                'browser': browser_mock,
                'context': context_mock,
                'page': page_mock,
            }

    @pytest.mark.asyncio
    async def test_start_and_stop(self, mock_playwright):
        factory = BrowserFactory(BrowserConfig())

        await factory.start()

        assert factory.is_running
        mock_playwright['playwright'].chromium.launch.assert_awaited_once_with(headless=True)

        await factory.stop()

        assert not factory.is_running
        mock_playwright['browser'].close.assert_awaited_once()
        mock_playwright['playwright'].stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_engine_selection(self, mock_playwright):
        factory = BrowserFactory(BrowserConfig(engine=BrowserEngineType.FIREFOX.value, headless=False))

        await factory.start()

        mock_playwright['playwright'].firefox.launch.assert_awaited_once_with(headless=False)
        mock_playwright['playwright'].chromium.launch.assert_not_called()
        await factory.stop()

    @pytest.mark.asyncio
    async def test_attach_over_cdp(self, mock_playwright):
        factory = BrowserFactory(BrowserConfig(cdp_endpoint="http://localhost:9222"))

        await factory.start()

        mock_playwright['playwright'].chromium.connect_over_cdp.assert_awaited_once_with("http://localhost:9222")
        mock_playwright['playwright'].chromium.launch.assert_not_called()
        await factory.stop()

    @pytest.mark.asyncio
    async def test_start_failure_stops_driver(self, mock_playwright):
        mock_playwright['playwright'].chromium.launch.side_effect = Error("executable missing")
        factory = BrowserFactory(BrowserConfig())

        with pytest.raises(Error):
            await factory.start()

        assert factory.playwright is None
        mock_playwright['playwright'].stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_page_requires_start(self):
        factory = BrowserFactory(BrowserConfig())

        with pytest.raises(RuntimeError, match="not started"):
            async with factory.page():
                pass

    @pytest.mark.asyncio
    async def test_page_uses_context_options(self, mock_playwright):
        factory = BrowserFactory(BrowserConfig(user_agent="UA"))
        await factory.start()

        async with factory.page() as page:
            assert page is mock_playwright['page']
            assert factory.context_count == 1

        mock_playwright['browser'].new_context.assert_awaited_once_with(user_agent="UA")
        mock_playwright['page'].close.assert_awaited_once()
        mock_playwright['context'].close.assert_awaited_once()
        assert factory.context_count == 0

    @pytest.mark.asyncio
    async def test_page_released_when_body_raises(self, mock_playwright):
        factory = BrowserFactory(BrowserConfig())
        await factory.start()

        with pytest.raises(ValueError):
            async with factory.page():
                raise ValueError("capture failed")

        mock_playwright['page'].close.assert_awaited_once()
        mock_playwright['context'].close.assert_awaited_once()
        assert factory.context_count == 0

    @pytest.mark.asyncio
    async def test_page_released_on_cancellation(self, mock_playwright):
        factory = BrowserFactory(BrowserConfig())
        await factory.start()
        entered = asyncio.Event()

        async def hold_page():
            async with factory.page():
                entered.set()
                await asyncio.Event().wait()

        task = asyncio.create_task(hold_page())
        await entered.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        mock_playwright['page'].close.assert_awaited_once()
        mock_playwright['context'].close.assert_awaited_once()
        assert factory.context_count == 0

    @pytest.mark.asyncio
    async def test_context_closed_when_new_page_fails(self, mock_playwright):
        mock_playwright['context'].new_page.side_effect = Error("Target closed")
        factory = BrowserFactory(BrowserConfig())
        await factory.start()

        with pytest.raises(Error):
            async with factory.page():
                pass

        mock_playwright['context'].close.assert_awaited_once()
        assert factory.context_count == 0

    @pytest.mark.asyncio
    async def test_close_errors_are_logged(self, mock_playwright, caplog):
        mock_playwright['page'].close.side_effect = Error("Target closed")
        factory = BrowserFactory(BrowserConfig())
        await factory.start()

        async with factory.page():
            pass

        assert "Error closing page" in caplog.text
        mock_playwright['context'].close.assert_awaited_once()
