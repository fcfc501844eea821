"""Capture data models package."""

from .capture import (
    BrowserResponse,
    CaptureRequest,
    ConsoleRecord,
    CookieParam,
    LayoutMetrics,
    TrackedRequest,
    Viewport,
)

__all__ = [
    'BrowserResponse',
    'CaptureRequest',
    'ConsoleRecord',
    'CookieParam',
    'LayoutMetrics',
    'TrackedRequest',
    'Viewport',
]
