"""Pydantic models for capture requests, captured artifacts and results.

This module defines the data exchanged between the capture orchestrator,
its observers and the outer layers (CLI, HTTP API, request history).
"""

import base64
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..imaging.resize import ResizeSpec


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


class Viewport(BaseModel):
    """Viewport dimensions; zero means "use the page default"."""

    model_config = ConfigDict(frozen=True)

    width: int = Field(default=0, ge=0, description="Viewport width in CSS pixels")
    height: int = Field(default=0, ge=0, description="Viewport height in CSS pixels")

    @property
    def is_set(self) -> bool:
        return self.width > 0 and self.height > 0

    def to_playwright(self) -> Dict[str, int]:
        return {"width": self.width, "height": self.height}


class LayoutMetrics(BaseModel):
    """Page layout measurements used for full-height sizing."""

    content_width: float = Field(default=0.0, description="Scrollable content width")
    content_height: float = Field(default=0.0, description="Scrollable content height")
    visual_client_width: Optional[float] = Field(default=None)
    visual_client_height: Optional[float] = Field(default=None)
    layout_client_width: Optional[int] = Field(default=None)
    layout_client_height: Optional[int] = Field(default=None)

    @classmethod
    def from_cdp(cls, metrics: Dict[str, Any]) -> "LayoutMetrics":
        """Build from a CDP ``Page.getLayoutMetrics`` result."""
        content = metrics.get("cssContentSize") or metrics.get("contentSize") or {}
        visual = metrics.get("cssVisualViewport") or {}
        layout = metrics.get("cssLayoutViewport") or {}
        return cls(
            content_width=content.get("width", 0.0),
            content_height=content.get("height", 0.0),
            visual_client_width=visual.get("clientWidth"),
            visual_client_height=visual.get("clientHeight"),
            layout_client_width=layout.get("clientWidth"),
            layout_client_height=layout.get("clientHeight"),
        )


class CookieParam(BaseModel):
    """Cookie to pre-seed into the browser context before navigation."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1, description="Cookie name")
    value: str = Field(default="", description="Cookie value")
    domain: Optional[str] = Field(default=None, description="Cookie domain")
    path: str = Field(default="/", description="Cookie path")
    url: Optional[str] = Field(default=None, description="URL the cookie is scoped to")
    expires: Optional[float] = Field(default=None, description="Expiry as Unix seconds")
    http_only: bool = Field(default=False, description="HttpOnly flag")
    secure: bool = Field(default=False, description="Secure flag")
    same_site: Optional[str] = Field(default=None, description="Strict, Lax or None")

    @field_validator("same_site")
    @classmethod
    def validate_same_site(cls, v):
        if v is None:
            return v
        normalized = {"strict": "Strict", "lax": "Lax", "none": "None"}.get(v.lower())
        if normalized is None:
            raise ValueError("same_site must be one of: Strict, Lax, None")
        return normalized

    @property
    def key(self) -> str:
        """Identity used when merging cookie sets."""
        return f"{self.name}|{self.domain or ''}"

    def to_playwright(self, default_url: Optional[str] = None) -> Dict[str, Any]:
        """Convert to the dict accepted by ``BrowserContext.add_cookies``.

        Playwright needs either ``url`` or ``domain`` + ``path``; cookies with
        neither are scoped to ``default_url``.
        """
        cookie: Dict[str, Any] = {"name": self.name, "value": self.value}
        if self.domain:
            cookie["domain"] = self.domain
            cookie["path"] = self.path
        elif self.url or default_url:
            cookie["url"] = self.url or default_url
        if self.expires is not None:
            cookie["expires"] = self.expires
        if self.http_only:
            cookie["httpOnly"] = True
        if self.secure:
            cookie["secure"] = True
        if self.same_site:
            cookie["sameSite"] = self.same_site
        return cookie

    @classmethod
    def from_playwright(cls, cookie: Dict[str, Any]) -> "CookieParam":
        """Create from a cookie dict returned by ``BrowserContext.cookies``."""
        expires = cookie.get("expires", -1)
        return cls(
            name=cookie.get("name", ""),
            value=cookie.get("value", ""),
            domain=cookie.get("domain") or None,
            path=cookie.get("path") or "/",
            expires=None if expires is None or expires < 0 else expires,
            http_only=cookie.get("httpOnly", False),
            secure=cookie.get("secure", False),
            same_site=cookie.get("sameSite"),
        )


class CaptureRequest(BaseModel):
    """Normalized, immutable input to one capture run."""

    model_config = ConfigDict(frozen=True)

    url: Optional[str] = Field(default=None, description="Target URL")
    html: Optional[str] = Field(default=None, description="Inline HTML document")

    viewport: Viewport = Field(default_factory=Viewport)
    timeout_seconds: int = Field(default=0, ge=0, description="Timeout budget, 0 = none")
    wait_seconds: int = Field(default=0, ge=0, description="Extra wait after load")

    allow_list: Tuple[str, ...] = Field(default=(), description="Allowed domain patterns")
    headers: Dict[str, str] = Field(default_factory=dict, description="Custom request headers")
    cookies: Tuple[CookieParam, ...] = Field(default=(), description="Cookies to pre-seed")

    capture_screenshot: bool = False
    capture_html: bool = False
    capture_cookies: bool = False
    capture_network: bool = False
    capture_logs: bool = False

    full_height: bool = Field(default=False, description="Grow viewport to page height")
    resize: Optional[ResizeSpec] = Field(default=None, description="Screenshot resize plan")

    @model_validator(mode="after")
    def check_target(self):
        if bool(self.url) == bool(self.html):
            raise ValueError("exactly one of url or html must be provided")
        return self

    @property
    def target(self) -> str:
        """Short description of the content source for logging."""
        return self.url or f"<inline html, {len(self.html or '')} chars>"


class TrackedRequest(BaseModel):
    """Network request reconstructed from request/response/failure events."""

    request_id: str = Field(exclude=True, description="Correlation key")
    url: str
    method: str
    request_headers: Dict[str, str] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utcnow, description="When the request was sent")
    status_code: Optional[int] = None
    response_headers: Dict[str, str] = Field(default_factory=dict)
    duration_ms: Optional[int] = None
    failed: bool = False
    error_text: Optional[str] = None


class ConsoleRecord(BaseModel):
    """Console message, log entry or uncaught exception from the page."""

    level: str
    message: str
    timestamp: datetime = Field(default_factory=utcnow)
    source: Optional[str] = None
    line: Optional[int] = None
    column: Optional[int] = None

    @classmethod
    def from_playwright_message(cls, message, timestamp: Optional[datetime] = None) -> "ConsoleRecord":
        """Create from a Playwright ``ConsoleMessage``."""
        location = message.location or {}
        return cls(
            level=message.type or "log",
            message=message.text,
            timestamp=timestamp or utcnow(),
            source=location.get("url") or None,
            line=location.get("lineNumber"),
            column=location.get("columnNumber"),
        )

    @classmethod
    def from_page_error(cls, error, timestamp: Optional[datetime] = None) -> "ConsoleRecord":
        """Create from an uncaught exception delivered by the ``pageerror`` event."""
        message = getattr(error, "stack", None) or getattr(error, "message", None) or str(error)
        return cls(
            level="error",
            message=message or "JavaScript Exception",
            timestamp=timestamp or utcnow(),
        )

    @classmethod
    def from_log_entry(cls, params: Dict[str, Any], timestamp: Optional[datetime] = None) -> "ConsoleRecord":
        """Create from a CDP ``Log.entryAdded`` event payload."""
        entry = params.get("entry") or {}
        return cls(
            level=entry.get("level", "info"),
            message=entry.get("text", ""),
            timestamp=timestamp or utcnow(),
            source=entry.get("url") or None,
            line=entry.get("lineNumber"),
        )


class BrowserResponse(BaseModel):
    """Result of one capture run.

    Only the artifacts requested by the CaptureRequest are populated; the
    rest stay None.
    """

    cookies: Optional[List[Dict[str, Any]]] = None
    html: Optional[str] = None
    screenshot: Optional[bytes] = None
    content_type: Optional[str] = None
    network_requests: Optional[List[TrackedRequest]] = None
    console_logs: Optional[List[ConsoleRecord]] = None

    def to_json_output(self) -> Dict[str, Any]:
        """JSON-friendly dict with a base64 screenshot and unset fields omitted."""
        output = self.model_dump(mode="json", exclude_none=True, exclude={"screenshot"})
        if self.screenshot is not None:
            output["screenshot"] = base64.b64encode(self.screenshot).decode("ascii")
        return output
