"""Shared browser lifecycle and per-capture page scoping.

One browser is launched (or attached to over CDP) for the lifetime of the
engine. Every capture gets a fresh context and page from ``page()``; both
are closed on every exit path, cancellation included, and close failures
are logged so they never mask the error that ended the capture.
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncGenerator, Dict, Optional

from playwright.async_api import Browser, BrowserType, Error, Page, Playwright, async_playwright

logger = logging.getLogger(__name__)


class BrowserEngineType(str, Enum):
    """Browser engines sitecap can drive."""
    CHROMIUM = "chromium"
    FIREFOX = "firefox"
    WEBKIT = "webkit"


@dataclass
class BrowserConfig:
    """Browser settings resolved from SitecapSettings.browser."""

    engine: str = BrowserEngineType.CHROMIUM.value
    headless: bool = True
    cdp_endpoint: Optional[str] = None
    user_agent: Optional[str] = None
    ignore_https_errors: bool = False
    locale: Optional[str] = None
    timezone: Optional[str] = None

    def context_options(self) -> Dict[str, Any]:
        """Keyword arguments for ``Browser.new_context``; unset values are omitted."""
        options: Dict[str, Any] = {}
        if self.user_agent:
            options['user_agent'] = self.user_agent
        if self.ignore_https_errors:
            options['ignore_https_errors'] = True
        if self.locale:
            options['locale'] = self.locale
        if self.timezone:
            options['timezone_id'] = self.timezone
        return options


class BrowserFactory:
    """Owns the Playwright driver and the shared browser."""

    def __init__(self, config: BrowserConfig):
        self.config = config
        self.playwright: Optional[Playwright] = None
        self.browser: Optional[Browser] = None
        self._context_count = 0

    def _browser_type(self) -> BrowserType:
        engine = BrowserEngineType(self.config.engine)
        return getattr(self.playwright, engine.value)

    async def start(self) -> None:
        """Start the driver, then launch a browser or attach to ``cdp_endpoint``.

        Raises:
            playwright Error: If the browser cannot be started; the driver
                is stopped again before the error propagates
        """
        if self.playwright is not None:
            logger.warning("Browser factory already started")
            return

        self.playwright = await async_playwright().start()
        try:
            browser_type = self._browser_type()
            if self.config.cdp_endpoint:
                self.browser = await browser_type.connect_over_cdp(self.config.cdp_endpoint)
                logger.info(f"Attached to {self.config.engine} at {self.config.cdp_endpoint}")
            else:
                self.browser = await browser_type.launch(headless=self.config.headless)
                logger.info(f"Launched {self.config.engine} (headless={self.config.headless})")
        except Error as e:
            logger.error(f"Failed to start {self.config.engine}: {e}")
            await self.stop()
            raise

    async def stop(self) -> None:
        """Close the browser and stop the driver. Errors are logged."""
        if self.browser is not None:
            try:
                await self.browser.close()
            except Error as e:
                logger.warning(f"Error closing browser: {e}")
            self.browser = None

        if self.playwright is not None:
            try:
                await self.playwright.stop()
            except Error as e:
                logger.warning(f"Error stopping Playwright: {e}")
            self.playwright = None

        self._context_count = 0
        logger.info("Browser factory stopped")

    @asynccontextmanager
    async def page(self) -> AsyncGenerator[Page, None]:
        """Yield a page in its own fresh context.

        Raises:
            RuntimeError: If the factory has not been started
        """
        if self.browser is None:
            raise RuntimeError("Browser factory not started. Call start() first.")

        context = await self.browser.new_context(**self.config.context_options())
        self._context_count += 1
        try:
            page = await context.new_page()
            try:
                yield page
            finally:
                try:
                    await page.close()
                except Error as e:
                    logger.warning(f"Error closing page: {e}")
        finally:
            try:
                await context.close()
            except Error as e:
                logger.warning(f"Error closing browser context: {e}")
            self._context_count -= 1

    @property
    def is_running(self) -> bool:
        return self.browser is not None and self.browser.is_connected()

    @property
    def context_count(self) -> int:
        """Contexts currently handed out by ``page()``."""
        return self._context_count

    def __repr__(self) -> str:
        return (
            f"BrowserFactory(engine={self.config.engine}, "
            f"running={self.is_running}, contexts={self.context_count})"
        )
