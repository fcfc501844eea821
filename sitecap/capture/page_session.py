"""Page session orchestration for a single capture run.

This module provides the PageSession class that wires request interception
and the event feed onto a page, loads the target content, sizes the
viewport and collects the requested artifacts. A run is all-or-nothing:
any failing stage raises with its stage name and nothing partial is
returned.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from playwright.async_api import Error, Page

from ..errors import CaptureError, NavigationError, ResizeError
from ..imaging.transform import resize_image
from ..models.capture import BrowserResponse, CaptureRequest, Viewport, utcnow
from .correlator import EventCorrelator
from .event_feed import PageEventFeed
from .interception import InterceptionPolicy, interception_required
from .viewport import adjust_viewport_for_full_height

logger = logging.getLogger(__name__)

SCREENSHOT_CONTENT_TYPE = "image/png"


class PageSession:
    """Runs one CaptureRequest against a page owned by the caller."""

    def __init__(self, page: Page, request: CaptureRequest, debug: bool = False):
        """Initialize page session.

        Args:
            page: Fresh Playwright page; the caller closes it
            request: What to load and which artifacts to capture
            debug: Trace interception decisions and responses
        """
        self.page = page
        self.request = request
        self.debug = debug

        self.correlator = EventCorrelator()
        self.policy: Optional[InterceptionPolicy] = None
        self.feed: Optional[PageEventFeed] = None
        self.viewport: Optional[Viewport] = None

        self.session_start_time: Optional[datetime] = None
        self.load_complete_time: Optional[datetime] = None

    async def run(self) -> BrowserResponse:
        """Perform the capture.

        Returns:
            BrowserResponse with exactly the requested fields populated

        Raises:
            NavigationError: If the content cannot be loaded
            CaptureError: If an artifact cannot be retrieved
            ResizeError: If the screenshot cannot be resized
        """
        self.session_start_time = utcnow()
        request = self.request

        # Playwright's own timeouts are disabled; the engine bounds the run.
        self.page.set_default_timeout(0)
        self.page.set_default_navigation_timeout(0)

        await self._setup_observers()
        try:
            await self._apply_cookies()
            await self._load_content()
            await self._apply_viewport()
            await self._wait_for_load()

            if request.wait_seconds > 0:
                logger.debug(f"Waiting {request.wait_seconds}s after load")
                await asyncio.sleep(request.wait_seconds)

            if request.full_height:
                await self._adjust_full_height()

            response = await self._collect_artifacts()
        finally:
            await self._teardown_observers()

        if request.capture_network:
            response.network_requests = self.correlator.network_requests()
        if request.capture_logs:
            response.console_logs = self.correlator.console_logs()

        logger.info(f"Capture completed: {request.target}")
        return response

    async def _setup_observers(self) -> None:
        request = self.request

        if interception_required(self.debug, request.allow_list, request.headers, request.capture_network):
            self.policy = InterceptionPolicy(
                allow_list=request.allow_list,
                custom_headers=request.headers,
                permit_first_request=bool(request.url),
                debug=self.debug,
            )
            await self.page.route("**/*", self.policy.handle_route)

        if request.capture_network or request.capture_logs or self.debug:
            self.feed = PageEventFeed(
                self.page,
                self.correlator,
                capture_network=request.capture_network,
                capture_logs=request.capture_logs,
                debug=self.debug,
            )
            await self.feed.start()

        logger.debug(f"Page session observers ready (policy={self.policy}, feed={self.feed})")

    async def _teardown_observers(self) -> None:
        if self.feed is not None:
            await self.feed.close()
        dropped = self.correlator.abandon()
        if dropped:
            logger.debug(f"{dropped} requests were still in flight at session end")
        logger.debug(f"Page session stats: {self.get_stats()}")

    async def _apply_cookies(self) -> None:
        if not self.request.cookies:
            return
        cookies = [c.to_playwright(self.request.url) for c in self.request.cookies]
        try:
            await self.page.context.add_cookies(cookies)
        except Error as e:
            raise CaptureError(f"failed to set cookies: {e}") from e
        logger.debug(f"Set {len(cookies)} cookies before navigation")

    async def _load_content(self) -> None:
        request = self.request
        try:
            if request.html:
                await self.page.set_content(request.html)
            else:
                await self.page.goto(request.url, wait_until="commit")
        except Error as e:
            raise NavigationError(f"navigation failed: {e}") from e
        logger.debug(f"Content loaded: {request.target}")

    async def _apply_viewport(self) -> None:
        viewport = self.request.viewport
        if not viewport.is_set:
            return
        try:
            await self.page.set_viewport_size(viewport.to_playwright())
        except Error as e:
            raise CaptureError(f"failed to set viewport: {e}") from e
        self.viewport = viewport

    async def _wait_for_load(self) -> None:
        try:
            await self.page.wait_for_load_state("load")
        except Error as e:
            raise NavigationError(f"page load failed: {e}") from e
        self.load_complete_time = utcnow()

    async def _adjust_full_height(self) -> None:
        try:
            applied = await adjust_viewport_for_full_height(self.page, self.request.viewport)
        except Error as e:
            raise CaptureError(f"full height adjustment failed: {e}") from e
        if applied is not None:
            self.viewport = applied

    async def _collect_cookies(self) -> List[Dict[str, Any]]:
        urls = [self.request.url] if self.request.url else []
        try:
            cookies = await self.page.context.cookies(urls)
        except Error as e:
            raise CaptureError(f"cookie retrieval failed: {e}") from e
        return [dict(cookie) for cookie in cookies]

    async def _take_screenshot(self) -> bytes:
        try:
            return await self.page.screenshot(type="png")
        except Error as e:
            raise CaptureError(f"screenshot capture failed: {e}") from e

    async def _collect_html(self) -> str:
        try:
            return await self.page.content()
        except Error as e:
            raise CaptureError(f"HTML capture failed: {e}") from e

    async def _collect_artifacts(self) -> BrowserResponse:
        request = self.request
        response = BrowserResponse()

        if request.capture_cookies:
            response.cookies = await self._collect_cookies()

        if request.capture_screenshot:
            screenshot = await self._take_screenshot()
            content_type = SCREENSHOT_CONTENT_TYPE
            if request.resize is not None:
                try:
                    screenshot, content_type = resize_image(screenshot, request.resize)
                except ResizeError as e:
                    raise ResizeError(
                        f"resize failed: {e}",
                        original_screenshot=screenshot,
                        original_content_type=content_type,
                    ) from e
            response.screenshot = screenshot
            response.content_type = content_type

        if request.capture_html:
            response.html = await self._collect_html()

        return response

    def get_session_duration_ms(self) -> Optional[float]:
        if not self.session_start_time or not self.load_complete_time:
            return None
        return (self.load_complete_time - self.session_start_time).total_seconds() * 1000

    def get_stats(self) -> Dict[str, Any]:
        stats: Dict[str, Any] = {
            'target': self.request.target,
            'load_time_ms': self.get_session_duration_ms(),
            'viewport': self.viewport.to_playwright() if self.viewport else None,
            'events': self.correlator.get_stats(),
        }
        if self.policy is not None:
            stats['interception'] = self.policy.get_stats()
        return stats

    def __repr__(self) -> str:
        return f"PageSession(target={self.request.target!r}, debug={self.debug})"
