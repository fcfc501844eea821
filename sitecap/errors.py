"""Exception hierarchy for the sitecap capture pipeline.

Every failure surfaced by the core derives from SitecapError so callers
(CLI, HTTP API) can map them to exit codes and status codes in one place.
"""

from typing import Optional


class SitecapError(Exception):
    """Base class for all sitecap errors."""
    pass


class ConfigurationError(SitecapError):
    """Raised for malformed input detected before any browser interaction.

    Covers resize specifications, viewport/timeout strings, domain lists,
    header and cookie JSON.
    """
    pass


class NavigationError(SitecapError):
    """Raised when navigation or content loading fails."""
    pass


class CaptureTimeoutError(NavigationError):
    """Raised when a capture run exceeds its timeout budget."""

    def __init__(self, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(f"capture timed out after {timeout_seconds}s")


class CaptureError(SitecapError):
    """Raised when an artifact (screenshot, HTML, cookies) cannot be retrieved."""
    pass


class ResizeError(SitecapError):
    """Raised when post-processing of a captured screenshot fails.

    The screenshot itself was taken successfully; the raw bytes are kept on
    the exception so callers can still fall back to the unresized image.
    """

    def __init__(
        self,
        message: str,
        original_screenshot: Optional[bytes] = None,
        original_content_type: Optional[str] = None,
    ):
        super().__init__(message)
        self.original_screenshot = original_screenshot
        self.original_content_type = original_content_type
