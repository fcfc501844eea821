"""Queue-based feed of Playwright page events into an EventCorrelator.

Listeners registered with ``page.on`` only timestamp the event and put it
on an ``asyncio.Queue``. A single consumer task applies events to the
correlator in arrival order. ``close()`` removes every listener, enqueues
a sentinel and waits for the consumer to drain the queue, so no listener
outlives the page session.
"""

import asyncio
import logging
from typing import Any, Callable, List, Optional, Tuple

from playwright.async_api import ConsoleMessage, Error, Page, Request, Response

from ..models.capture import ConsoleRecord, utcnow
from .correlator import EventCorrelator
from .interception import log_request_failed, log_response

logger = logging.getLogger(__name__)

_CLOSE = object()


class PageEventFeed:
    """Subscribes to page events for one capture session."""

    def __init__(
        self,
        page: Page,
        correlator: EventCorrelator,
        capture_network: bool = False,
        capture_logs: bool = False,
        debug: bool = False,
    ):
        """Initialize the feed.

        Args:
            page: Playwright page to observe
            correlator: Destination for network and console events
            capture_network: Subscribe to request/response/requestfailed
            capture_logs: Subscribe to console, pageerror and CDP log entries
            debug: Trace responses and network failures to the debug logger
        """
        self.page = page
        self.correlator = correlator
        self.capture_network = capture_network
        self.capture_logs = capture_logs
        self.debug = debug

        self._queue: asyncio.Queue = asyncio.Queue()
        self._listeners: List[Tuple[str, Callable[..., None]]] = []
        self._consumer: Optional[asyncio.Task] = None
        self._cdp_session = None
        self._closed = False
        self._applied = 0

    def _subscribe(self, event: str, handler: Callable[..., None]) -> None:
        self.page.on(event, handler)
        self._listeners.append((event, handler))

    async def start(self) -> None:
        """Register listeners and start the consumer task."""
        if self.capture_network:
            self._subscribe("request", self._on_request)
            self._subscribe("response", self._on_response)
            self._subscribe("requestfailed", self._on_request_failed)

        if self.capture_logs:
            self._subscribe("console", self._on_console)
            self._subscribe("pageerror", self._on_page_error)
            await self._subscribe_log_entries()

        if self.debug:
            self._subscribe("response", log_response)
            self._subscribe("requestfailed", log_request_failed)

        self._consumer = asyncio.create_task(self._consume())
        logger.debug(f"Event feed started with {len(self._listeners)} listeners")

    async def _subscribe_log_entries(self) -> None:
        # Browser-level log entries are only reachable over CDP (Chromium).
        try:
            session = await self.page.context.new_cdp_session(self.page)
            await session.send("Log.enable")
        except Error as e:
            logger.debug(f"CDP log entries unavailable: {e}")
            return
        session.on("Log.entryAdded", self._on_log_entry)
        self._cdp_session = session

    def _enqueue(self, kind: str, payload: Any) -> None:
        if self._closed:
            return
        self._queue.put_nowait((kind, utcnow(), payload))

    def _on_request(self, request: Request) -> None:
        self._enqueue("request", request)

    def _on_response(self, response: Response) -> None:
        self._enqueue("response", response)

    def _on_request_failed(self, request: Request) -> None:
        self._enqueue("requestfailed", request)

    def _on_console(self, message: ConsoleMessage) -> None:
        self._enqueue("console", message)

    def _on_page_error(self, error: Error) -> None:
        self._enqueue("pageerror", error)

    def _on_log_entry(self, params: dict) -> None:
        self._enqueue("logentry", params)

    def _apply(self, kind: str, timestamp, payload: Any) -> None:
        if kind == "request":
            self.correlator.on_request_sent(
                str(id(payload)), payload.url, payload.method, payload.headers, timestamp
            )
        elif kind == "response":
            self.correlator.on_response_received(
                str(id(payload.request)), payload.status, payload.headers, timestamp
            )
        elif kind == "requestfailed":
            self.correlator.on_loading_failed(str(id(payload)), payload.failure, timestamp)
        elif kind == "console":
            self.correlator.add_console(ConsoleRecord.from_playwright_message(payload, timestamp))
        elif kind == "pageerror":
            self.correlator.add_console(ConsoleRecord.from_page_error(payload, timestamp))
        elif kind == "logentry":
            self.correlator.add_console(ConsoleRecord.from_log_entry(payload, timestamp))

    async def _consume(self) -> None:
        while True:
            item = await self._queue.get()
            if item is _CLOSE:
                break
            kind, timestamp, payload = item
            try:
                self._apply(kind, timestamp, payload)
                self._applied += 1
            except Exception as e:
                logger.error(f"Error applying {kind} event: {e}")

    async def close(self) -> None:
        """Remove listeners and drain events already queued."""
        if self._closed:
            return

        for event, handler in self._listeners:
            self.page.remove_listener(event, handler)
        self._listeners.clear()

        if self._cdp_session is not None:
            self._cdp_session.remove_listener("Log.entryAdded", self._on_log_entry)
            try:
                await self._cdp_session.detach()
            except Error as e:
                logger.debug(f"Failed to detach CDP session: {e}")
            self._cdp_session = None

        self._closed = True
        if self._consumer is not None:
            self._queue.put_nowait(_CLOSE)
            await self._consumer
            self._consumer = None

        logger.debug(f"Event feed closed after applying {self._applied} events")

    @property
    def closed(self) -> bool:
        return self._closed

    async def __aenter__(self) -> "PageEventFeed":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def __repr__(self) -> str:
        return (
            f"PageEventFeed(network={self.capture_network}, logs={self.capture_logs}, "
            f"listeners={len(self._listeners)}, closed={self._closed})"
        )
