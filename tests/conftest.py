"""Shared test fixtures and configuration for sitecap tests."""

import io
from typing import List

import pytest
from PIL import Image

from sitecap.models.capture import BrowserResponse, CaptureRequest


def make_image_bytes(width: int, height: int, image_format: str = "PNG", color=(200, 30, 30)) -> bytes:
    """Encode a solid-color image in memory."""
    mode = "RGB" if image_format == "JPEG" else "RGBA"
    fill = color if mode == "RGB" else color + (255,)
    image = Image.new(mode, (width, height), fill)
    buf = io.BytesIO()
    image.save(buf, format=image_format)
    return buf.getvalue()


class FakeEngine:
    """Stand-in for CaptureEngine that records requests instead of launching a browser."""

    def __init__(self, response: BrowserResponse = None, error: Exception = None):
        self.response = response or BrowserResponse(
            screenshot=make_image_bytes(4, 3),
            content_type="image/png",
            html="<html><body>ok</body></html>",
            cookies=[],
        )
        self.error = error
        self.requests: List[CaptureRequest] = []
        self.is_running = False

    async def start(self) -> None:
        self.is_running = True

    async def stop(self) -> None:
        self.is_running = False

    async def capture(self, request: CaptureRequest) -> BrowserResponse:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.response.model_copy()


@pytest.fixture
def png_1000x500():
    """PNG screenshot sized like a wide viewport."""
    return make_image_bytes(1000, 500)


@pytest.fixture
def fake_engine():
    """Fake engine returning a small PNG, HTML and no cookies."""
    return FakeEngine()


@pytest.fixture
def sample_request():
    """URL capture request with a screenshot only."""
    return CaptureRequest(url="https://example.com", capture_screenshot=True)


@pytest.fixture
def image_factory():
    """Factory encoding solid-color images of a given size and format."""
    return make_image_bytes
