"""Capture engine that runs capture requests against a shared browser.

This module provides the CaptureEngine class that owns the browser factory,
bounds concurrent page sessions, enforces each request's timeout budget
and records process metrics. ``execute_capture`` is the one-shot entry
point that starts and stops its own browser.
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional

from ..errors import CaptureTimeoutError
from ..metrics import CaptureMetrics
from ..models.capture import BrowserResponse, CaptureRequest, utcnow
from .browser_factory import BrowserConfig, BrowserFactory
from .page_session import PageSession

logger = logging.getLogger(__name__)


class CaptureEngineConfig:
    """Configuration for the capture engine."""

    def __init__(
        self,
        browser_config: Optional[BrowserConfig] = None,
        max_concurrent_pages: int = 4,
        debug: bool = False,
    ):
        """Initialize engine configuration.

        Args:
            browser_config: Browser launch/context configuration
            max_concurrent_pages: Maximum page sessions running at once
            debug: Trace interception decisions and responses
        """
        self.browser_config = browser_config or BrowserConfig()
        self.max_concurrent_pages = max_concurrent_pages
        self.debug = debug

    def __repr__(self) -> str:
        return (
            f"CaptureEngineConfig(engine={self.browser_config.engine}, "
            f"max_concurrent_pages={self.max_concurrent_pages}, debug={self.debug})"
        )


class CaptureEngine:
    """Runs capture requests, one isolated context + page per request."""

    def __init__(
        self,
        config: Optional[CaptureEngineConfig] = None,
        metrics: Optional[CaptureMetrics] = None,
    ):
        """Initialize capture engine.

        Args:
            config: Engine configuration (uses defaults if None)
            metrics: Counters to update; a private instance is used if None
        """
        self.config = config or CaptureEngineConfig()
        self.metrics = metrics or CaptureMetrics()
        self.browser_factory: Optional[BrowserFactory] = None
        self._is_running = False
        self._semaphore: Optional[asyncio.Semaphore] = None

        self.stats = {
            'captures_attempted': 0,
            'captures_successful': 0,
            'captures_failed': 0,
            'captures_timeout': 0,
            'start_time': None,
        }

    async def start(self) -> None:
        """Start the capture engine and launch the browser."""
        if self._is_running:
            logger.warning("Capture engine already running")
            return

        logger.info("Starting capture engine")

        try:
            self.browser_factory = BrowserFactory(self.config.browser_config)
            await self.browser_factory.start()

            self._semaphore = asyncio.Semaphore(self.config.max_concurrent_pages)
            self.stats['start_time'] = utcnow()
            self._is_running = True

            logger.info("Capture engine started successfully")

        except Exception as e:
            logger.error(f"Failed to start capture engine: {e}")
            await self.stop()
            raise

    async def stop(self) -> None:
        """Stop the capture engine and release the browser."""
        logger.info("Stopping capture engine")

        if self.browser_factory:
            await self.browser_factory.stop()
            self.browser_factory = None

        self._is_running = False
        self._semaphore = None

        logger.info("Capture engine stopped successfully")

    async def capture(self, request: CaptureRequest) -> BrowserResponse:
        """Run one capture request.

        Args:
            request: Validated capture request

        Returns:
            BrowserResponse with the requested artifacts

        Raises:
            RuntimeError: If the engine is not started
            CaptureTimeoutError: If the run exceeds ``request.timeout_seconds``
            NavigationError, CaptureError, ResizeError: From the page session
        """
        if not self._is_running or self._semaphore is None:
            raise RuntimeError("Capture engine not started. Call start() first.")

        async with self._semaphore:
            self.stats['captures_attempted'] += 1
            self.metrics.record_start()
            started = time.monotonic()

            try:
                response = await self._run_with_timeout(request)
            except CaptureTimeoutError:
                self.stats['captures_timeout'] += 1
                self.stats['captures_failed'] += 1
                self.metrics.record_failure(time.monotonic() - started)
                logger.warning(f"Capture timed out after {request.timeout_seconds}s: {request.target}")
                raise
            except Exception as e:
                self.stats['captures_failed'] += 1
                self.metrics.record_failure(time.monotonic() - started)
                logger.error(f"Capture failed for {request.target}: {e}")
                raise

            self.stats['captures_successful'] += 1
            self.metrics.record_success(time.monotonic() - started)
            return response

    async def _run_with_timeout(self, request: CaptureRequest) -> BrowserResponse:
        if request.timeout_seconds <= 0:
            return await self._run(request)
        try:
            return await asyncio.wait_for(self._run(request), timeout=request.timeout_seconds)
        except asyncio.TimeoutError:
            raise CaptureTimeoutError(request.timeout_seconds)

    async def _run(self, request: CaptureRequest) -> BrowserResponse:
        async with self.browser_factory.page() as page:
            session = PageSession(page, request, debug=self.config.debug)
            return await session.run()

    @asynccontextmanager
    async def session(self) -> AsyncGenerator['CaptureEngine', None]:
        """Context manager for engine lifecycle.

        Yields:
            Started capture engine that will be automatically stopped
        """
        try:
            await self.start()
            yield self
        finally:
            await self.stop()

    def get_stats(self) -> Dict[str, Any]:
        stats = self.stats.copy()
        if stats['captures_attempted'] > 0:
            stats['success_rate'] = (stats['captures_successful'] / stats['captures_attempted']) * 100
        else:
            stats['success_rate'] = 0

        if self.browser_factory:
            stats['browser_running'] = self.browser_factory.is_running
            stats['browser_contexts'] = self.browser_factory.context_count

        stats['is_running'] = self._is_running
        return stats

    @property
    def is_running(self) -> bool:
        """Check if engine is running."""
        return self._is_running

    def __repr__(self) -> str:
        stats = self.get_stats()
        return (
            f"CaptureEngine(running={self._is_running}, "
            f"attempted={stats['captures_attempted']}, "
            f"success_rate={stats['success_rate']:.1f}%)"
        )


async def execute_capture(
    request: CaptureRequest,
    config: Optional[CaptureEngineConfig] = None,
    metrics: Optional[CaptureMetrics] = None,
) -> BrowserResponse:
    """Run a single capture with a browser launched just for it.

    Args:
        request: Validated capture request
        config: Engine configuration (uses defaults if None)
        metrics: Counters to update

    Returns:
        BrowserResponse with the requested artifacts
    """
    engine = CaptureEngine(config, metrics=metrics)
    async with engine.session():
        return await engine.capture(request)
