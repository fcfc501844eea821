"""Request and response schemas for the sitecap HTTP API."""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, model_validator

from ..models.capture import utcnow
from ..store import DEFAULT_CONTEXT


class CaptureBody(BaseModel):
    """Body of ``POST /capture``.

    Unset options fall back to the named context's defaults.
    """

    context: str = Field(default=DEFAULT_CONTEXT, description="Context to run in")
    url: Optional[str] = Field(default=None, description="URL to capture")
    html: Optional[str] = Field(default=None, description="Inline HTML to render")

    viewport: Optional[str] = Field(default=None, description="Viewport as WxH")
    resize: Optional[str] = Field(default=None, description="Screenshot resize specification")
    timeout: Optional[int] = Field(default=None, description="Timeout in seconds (0-300)")
    wait: Optional[int] = Field(default=None, description="Post-load wait in seconds (0-300)")
    domains: Optional[List[str]] = Field(default=None, description="Domain allow-list")
    headers: Optional[Dict[str, str]] = Field(default=None, description="Custom request headers")
    cookies: Optional[List[Dict[str, Any]]] = Field(default=None, description="Extra cookies to send")
    full_height: Optional[bool] = Field(default=None, description="Full-height screenshot")

    capture_screenshot: bool = True
    capture_html: bool = False
    capture_cookies: bool = True
    capture_network: bool = False
    capture_logs: bool = False
    merge_cookies: bool = Field(default=True, description="Merge returned cookies into the context")

    @model_validator(mode="after")
    def check_target(self):
        if bool(self.url) == bool(self.html):
            raise ValueError("exactly one of url or html must be provided")
        return self


class ContextBody(BaseModel):
    """Body of ``PUT /contexts/{name}``."""

    viewport: Optional[str] = Field(default=None, description="Default viewport as WxH")
    timeout: Optional[int] = Field(default=None, description="Default timeout in seconds")
    wait: Optional[int] = Field(default=None, description="Default wait in seconds")
    domains: Optional[List[str]] = Field(default=None, description="Domain allow-list")
    headers: Optional[Dict[str, str]] = Field(default=None, description="Custom request headers")
    cookies: Optional[List[Dict[str, Any]]] = Field(default=None, description="Cookies to persist")
    full_height: Optional[bool] = Field(default=None, description="Full-height screenshots")


class ErrorResponse(BaseModel):
    """Standard error response schema."""

    error: str = Field(..., description="Error code or type")
    message: str = Field(..., description="Human-readable error message")
    request_id: Optional[str] = Field(default=None, description="Request identifier")
    timestamp: datetime = Field(default_factory=utcnow, description="When the error occurred")


class HealthResponse(BaseModel):
    """Health check response schema."""

    status: Literal['healthy', 'degraded', 'unhealthy'] = Field(..., description="Overall status")
    version: str = Field(..., description="API version")
    timestamp: datetime = Field(default_factory=utcnow, description="Health check timestamp")
    browser_running: bool = Field(..., description="Whether the shared browser is up")
    contexts: int = Field(..., description="Number of configured contexts")
    uptime_seconds: float = Field(..., description="Seconds since startup")
