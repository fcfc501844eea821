"""Named browser contexts and request history for the HTTP API.

A browser context here is a named bundle of capture defaults (viewport,
timeout, allow-list, headers) plus cookies that persist between requests.
Reads return deep copies so a run in flight never sees a concurrent
update.
"""

import logging
import secrets
import threading
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, Field

from .config import DEFAULT_CONTEXT_TIMEOUT, DEFAULT_CONTEXT_VIEWPORT, CaptureDefaults
from .imaging.resize import ResizeSpec
from .models.capture import BrowserResponse, CaptureRequest, CookieParam, Viewport, utcnow
from .utils.params import parse_viewport

logger = logging.getLogger(__name__)

DEFAULT_CONTEXT = "default"


def generate_request_id() -> str:
    """Request id of the form ``YYYYmmddHHMMSS_<8 hex chars>``."""
    return f"{utcnow().strftime('%Y%m%d%H%M%S')}_{secrets.token_hex(4)}"


class BrowserContextSettings(BaseModel):
    """Persistent defaults and cookies for a named context."""

    name: str = Field(default=DEFAULT_CONTEXT)
    viewport: Viewport = Field(default_factory=lambda: Viewport(width=1366, height=854))
    timeout: int = Field(default=DEFAULT_CONTEXT_TIMEOUT, ge=0, le=300)
    wait: int = Field(default=0, ge=0, le=300)
    allow_list: List[str] = Field(default_factory=list)
    headers: Dict[str, str] = Field(default_factory=dict)
    cookies: List[CookieParam] = Field(default_factory=list)
    full_height: bool = False
    request_history: List[str] = Field(default_factory=list)
    last_request_id: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    last_used: datetime = Field(default_factory=utcnow)

    @classmethod
    def from_defaults(cls, defaults: CaptureDefaults, name: str = DEFAULT_CONTEXT) -> "BrowserContextSettings":
        """Build a context from configured capture defaults."""
        width, height = parse_viewport(defaults.viewport or DEFAULT_CONTEXT_VIEWPORT)
        return cls(
            name=name,
            viewport=Viewport(width=width, height=height),
            timeout=defaults.timeout or DEFAULT_CONTEXT_TIMEOUT,
            wait=defaults.wait,
            allow_list=list(defaults.domains),
            headers=dict(defaults.headers),
            full_height=defaults.full_height,
        )

    def to_capture_request(
        self,
        url: Optional[str] = None,
        html: Optional[str] = None,
        resize: Optional[ResizeSpec] = None,
        **flags: bool,
    ) -> CaptureRequest:
        """Build a CaptureRequest that inherits this context's defaults."""
        options: Dict[str, Any] = {'full_height': self.full_height}
        options.update(flags)
        return CaptureRequest(
            url=url,
            html=html,
            viewport=self.viewport,
            timeout_seconds=self.timeout,
            wait_seconds=self.wait,
            allow_list=tuple(self.allow_list),
            headers=dict(self.headers),
            cookies=tuple(self.cookies),
            resize=resize,
            **options,
        )

    def summary(self) -> Dict[str, Any]:
        return {
            'created_at': self.created_at,
            'last_used': self.last_used,
            'request_count': len(self.request_history),
            'viewport': self.viewport.model_dump(),
            'timeout': self.timeout,
            'domains': list(self.allow_list),
            'cookies': [c.model_dump(exclude_none=True) for c in self.cookies],
            'headers': dict(self.headers),
        }


class ContextStore:
    """Thread-safe map of named contexts with copy-on-read semantics."""

    def __init__(self, defaults: Optional[CaptureDefaults] = None):
        self._lock = threading.RLock()
        self._contexts: Dict[str, BrowserContextSettings] = {}
        self.create_or_update(
            DEFAULT_CONTEXT,
            BrowserContextSettings.from_defaults(defaults or CaptureDefaults()),
        )

    def create_or_update(self, name: str, settings: BrowserContextSettings) -> BrowserContextSettings:
        """Store ``settings`` under ``name``.

        Updating an existing context keeps its request history and
        creation time.
        """
        stored = settings.model_copy(deep=True)
        now = utcnow()
        with self._lock:
            existing = self._contexts.get(name)
            if existing is not None:
                stored.request_history = list(existing.request_history)
                stored.last_request_id = existing.last_request_id
                stored.created_at = existing.created_at
            else:
                stored.request_history = []
                stored.last_request_id = None
                stored.created_at = now
            stored.name = name
            stored.last_used = now
            self._contexts[name] = stored
            logger.debug(f"Context {'updated' if existing else 'created'}: {name}")
            return stored.model_copy(deep=True)

    def get(self, name: Optional[str] = None) -> Optional[BrowserContextSettings]:
        """Deep copy of a context, or None. An empty name means ``default``."""
        with self._lock:
            context = self._contexts.get(name or DEFAULT_CONTEXT)
            return context.model_copy(deep=True) if context is not None else None

    def list(self) -> Dict[str, Dict[str, Any]]:
        with self._lock:
            return {name: context.summary() for name, context in self._contexts.items()}

    def names(self) -> List[str]:
        with self._lock:
            return sorted(self._contexts)

    def delete(self, name: str) -> bool:
        with self._lock:
            if name in self._contexts:
                del self._contexts[name]
                logger.debug(f"Context deleted: {name}")
                return True
            return False

    def update_cookies(self, name: str, cookies: Iterable[CookieParam], merge: bool = True) -> bool:
        """Replace or merge a context's cookies.

        When merging, a new cookie replaces an existing one with the same
        name and domain.

        Returns:
            False if the context does not exist
        """
        cookies = list(cookies)
        with self._lock:
            context = self._contexts.get(name or DEFAULT_CONTEXT)
            if context is None:
                return False
            if merge and context.cookies:
                merged = {cookie.key: cookie for cookie in context.cookies}
                merged.update((cookie.key, cookie) for cookie in cookies)
                context.cookies = list(merged.values())
            else:
                context.cookies = cookies
            context.last_used = utcnow()
            return True

    def record_request(self, name: str, request_id: str) -> bool:
        with self._lock:
            context = self._contexts.get(name or DEFAULT_CONTEXT)
            if context is None:
                return False
            context.request_history.append(request_id)
            context.last_request_id = request_id
            context.last_used = utcnow()
            return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._contexts)


class RequestHistoryEntry(BaseModel):
    """One stored capture with its result or error."""

    id: str = Field(default_factory=generate_request_id)
    context_name: str = DEFAULT_CONTEXT
    url: Optional[str] = None
    input_html: Optional[str] = None
    timestamp: datetime = Field(default_factory=utcnow)
    duration_ms: int = 0
    request_type: str = "capture"
    response: Optional[BrowserResponse] = None
    error: Optional[str] = None

    def to_dict(
        self,
        include_html: bool = False,
        include_network: bool = False,
        include_console: bool = False,
    ) -> Dict[str, Any]:
        """JSON-friendly view of the entry.

        An entry with an error carries no response data.
        """
        data: Dict[str, Any] = {
            'id': self.id,
            'context_name': self.context_name,
            'url': self.url,
            'timestamp': self.timestamp.isoformat(),
            'duration': self.duration_ms,
            'request_type': self.request_type,
        }
        if self.input_html:
            data['input_html'] = self.input_html

        if self.error:
            data['error'] = self.error
            return data

        response = self.response
        if response is None:
            return data

        if response.cookies:
            data['set_cookies'] = response.cookies
        if response.content_type:
            data['content_type'] = response.content_type
        if include_html and response.html is not None:
            data['html'] = response.html
        if include_network:
            data['network_requests'] = [
                r.model_dump(mode='json') for r in response.network_requests or []
            ]
        if include_console:
            data['console_logs'] = [
                c.model_dump(mode='json') for c in response.console_logs or []
            ]
        return data


class RequestHistory:
    """Thread-safe store of RequestHistoryEntry records keyed by id."""

    def __init__(self):
        self._lock = threading.Lock()
        self._entries: Dict[str, RequestHistoryEntry] = {}

    def store(self, entry: RequestHistoryEntry) -> str:
        with self._lock:
            self._entries[entry.id] = entry
        return entry.id

    def get(self, request_id: str) -> Optional[RequestHistoryEntry]:
        with self._lock:
            return self._entries.get(request_id)

    def last_for_context(self, context_name: str, contexts: ContextStore) -> Optional[RequestHistoryEntry]:
        """Most recent entry recorded for a context."""
        context = contexts.get(context_name)
        if context is None or not context.last_request_id:
            return None
        return self.get(context.last_request_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
