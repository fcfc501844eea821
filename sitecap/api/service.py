"""Capture service shared by the HTTP routes.

CaptureService ties the capture engine to the context store, the request
history and the process metrics.
"""

import logging
import time
from typing import Optional, Protocol

from ..capture.engine import CaptureEngine
from ..config import SitecapSettings
from ..errors import ConfigurationError, SitecapError
from ..imaging.resize import parse_resize_spec
from ..metrics import CaptureMetrics
from ..models.capture import BrowserResponse, CaptureRequest, CookieParam, Viewport, utcnow
from ..store import (
    DEFAULT_CONTEXT,
    BrowserContextSettings,
    ContextStore,
    RequestHistory,
    RequestHistoryEntry,
)
from ..utils.params import (
    build_capture_request,
    parse_cookies_json,
    parse_domain_allowlist,
    parse_seconds,
    parse_viewport,
)
from .schemas import CaptureBody, ContextBody

logger = logging.getLogger(__name__)


class Engine(Protocol):
    """What the service needs from a capture engine."""

    is_running: bool

    async def start(self) -> None: ...

    async def stop(self) -> None: ...

    async def capture(self, request: CaptureRequest) -> BrowserResponse: ...


class ContextNotFoundError(SitecapError):
    """Raised when a named context does not exist."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"context not found: {name}")


class CaptureService:
    """Runs captures for the API and keeps contexts, history and metrics."""

    def __init__(
        self,
        settings: Optional[SitecapSettings] = None,
        engine: Optional[Engine] = None,
        metrics: Optional[CaptureMetrics] = None,
        debug: Optional[bool] = None,
    ):
        self.settings = (settings or SitecapSettings()).resolved()
        self.metrics = metrics or CaptureMetrics()
        self.engine = engine or CaptureEngine(
            self.settings.get_engine_config(debug=debug),
            metrics=self.metrics,
        )
        self.contexts = ContextStore(self.settings.defaults)
        self.history = RequestHistory()
        self.started_at = time.monotonic()

    async def start(self) -> None:
        await self.engine.start()

    async def stop(self) -> None:
        await self.engine.stop()

    @property
    def browser_running(self) -> bool:
        return bool(self.engine.is_running)

    @property
    def uptime_seconds(self) -> float:
        return time.monotonic() - self.started_at

    def quick_request(
        self,
        url: str,
        viewport: Optional[str] = None,
        resize: Optional[str] = None,
        timeout: Optional[str] = None,
        wait: Optional[str] = None,
        domains: Optional[str] = None,
        full_height: Optional[bool] = None,
        capture_screenshot: bool = True,
        capture_html: bool = False,
    ) -> CaptureRequest:
        """Request for the query-string endpoints, falling back to configured defaults."""
        defaults = self.settings.defaults
        return build_capture_request(
            url=url,
            viewport=viewport if viewport is not None else defaults.viewport,
            resize=resize if resize is not None else defaults.resize,
            timeout=timeout if timeout is not None else defaults.timeout,
            wait=wait if wait is not None else defaults.wait,
            domains=domains if domains is not None else defaults.domains,
            headers=defaults.headers,
            full_height=full_height if full_height is not None else defaults.full_height,
            capture_screenshot=capture_screenshot,
            capture_html=capture_html,
        )

    async def capture(self, request: CaptureRequest) -> BrowserResponse:
        return await self.engine.capture(request)

    def _context_or_raise(self, name: str) -> BrowserContextSettings:
        context = self.contexts.get(name)
        if context is None:
            raise ContextNotFoundError(name)
        return context

    def build_context_request(self, body: CaptureBody) -> CaptureRequest:
        """Merge a capture body over its context's defaults."""
        context = self._context_or_raise(body.context)

        if body.viewport is not None:
            width, height = parse_viewport(body.viewport)
            context.viewport = Viewport(width=width, height=height)
        if body.timeout is not None:
            context.timeout = parse_seconds(body.timeout, "timeout")
        if body.wait is not None:
            context.wait = parse_seconds(body.wait, "wait")
        if body.domains is not None:
            context.allow_list = list(parse_domain_allowlist(body.domains))
        if body.headers is not None:
            context.headers.update(body.headers)
        if body.cookies:
            merged = {c.key: c for c in context.cookies}
            merged.update((c.key, c) for c in parse_cookies_json(body.cookies))
            context.cookies = list(merged.values())
        if body.full_height is not None:
            context.full_height = body.full_height

        resize = parse_resize_spec(body.resize) if body.resize else None
        try:
            return context.to_capture_request(
                url=body.url,
                html=body.html,
                resize=resize,
                capture_screenshot=body.capture_screenshot,
                capture_html=body.capture_html,
                capture_cookies=body.capture_cookies,
                capture_network=body.capture_network,
                capture_logs=body.capture_logs,
            )
        except ValueError as e:
            raise ConfigurationError(str(e))

    async def run_in_context(self, body: CaptureBody) -> RequestHistoryEntry:
        """Capture within a named context and record the result.

        The history entry is stored whether the capture succeeds or not;
        failures are re-raised after recording.
        """
        request = self.build_context_request(body)

        started = utcnow()
        entry = RequestHistoryEntry(
            context_name=body.context,
            url=body.url,
            input_html=body.html,
            timestamp=started,
            request_type="capture_html" if body.html else "capture",
        )

        try:
            entry.response = await self.capture(request)
        except Exception as e:
            entry.error = str(e)
            raise
        finally:
            entry.duration_ms = int((utcnow() - started).total_seconds() * 1000)
            self.history.store(entry)
            self.contexts.record_request(body.context, entry.id)

        if body.merge_cookies and entry.response.cookies:
            cookies = [CookieParam.from_playwright(c) for c in entry.response.cookies]
            self.contexts.update_cookies(body.context, cookies, merge=True)
            logger.debug(f"Merged {len(cookies)} cookies into context {body.context}")

        return entry

    def put_context(self, name: str, body: ContextBody) -> BrowserContextSettings:
        """Create a context or update the fields set in ``body``."""
        context = self.contexts.get(name)
        if context is None:
            context = BrowserContextSettings.from_defaults(self.settings.defaults, name=name)

        if body.viewport is not None:
            width, height = parse_viewport(body.viewport)
            context.viewport = Viewport(width=width, height=height)
        if body.timeout is not None:
            context.timeout = parse_seconds(body.timeout, "timeout")
        if body.wait is not None:
            context.wait = parse_seconds(body.wait, "wait")
        if body.domains is not None:
            context.allow_list = list(parse_domain_allowlist(body.domains))
        if body.headers is not None:
            context.headers = dict(body.headers)
        if body.cookies is not None:
            context.cookies = list(parse_cookies_json(body.cookies))
        if body.full_height is not None:
            context.full_height = body.full_height

        return self.contexts.create_or_update(name, context)

    def delete_context(self, name: str) -> None:
        if name == DEFAULT_CONTEXT:
            raise ConfigurationError("the default context cannot be deleted")
        if not self.contexts.delete(name):
            raise ContextNotFoundError(name)

    def get_history_entry(self, request_id: str) -> Optional[RequestHistoryEntry]:
        return self.history.get(request_id)

