"""Tests for the HTTP API endpoints."""

import base64

import pytest
from fastapi.testclient import TestClient

from sitecap.api.main import create_app
from sitecap.api.service import CaptureService
from sitecap.errors import CaptureError, CaptureTimeoutError, NavigationError
from sitecap.models.capture import BrowserResponse
from sitecap.store import DEFAULT_CONTEXT


@pytest.fixture
def service(fake_engine):
    """Capture service wired to the fake engine."""
    return CaptureService(engine=fake_engine)


@pytest.fixture
def client(service):
    """Test client with the app lifespan running."""
    with TestClient(create_app(service=service)) as test_client:
        yield test_client


class TestSystemEndpoints:
    """Tests for health and metrics."""

    def test_health_check(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["browser_running"] is True
        assert data["contexts"] == 1
        assert "version" in data
        assert "uptime_seconds" in data
        assert "X-Request-ID" in response.headers

    def test_metrics(self, client, service):
        service.metrics.record_start()
        service.metrics.record_success(0.5)

        response = client.get("/metrics")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert "sitecap_requests_total 1\n" in response.text
        assert "sitecap_duration_seconds_total 0.500000\n" in response.text


class TestQuickCapture:
    """Tests for the query-string capture endpoints."""

    def test_screenshot(self, client, fake_engine):
        response = client.get("/", params={
            "url": "https://example.com",
            "viewport": "800x600",
            "timeout": "10",
            "domains": "example.com,*.cdn.com",
            "full_height": "true",
        })

        assert response.status_code == 200
        assert response.headers["content-type"] == "image/png"
        assert response.content == fake_engine.response.screenshot

        [request] = fake_engine.requests
        assert request.url == "https://example.com"
        assert request.viewport.width == 800
        assert request.timeout_seconds == 10
        assert request.allow_list == ("example.com", "*.cdn.com")
        assert request.full_height is True
        assert request.capture_screenshot is True
        assert request.capture_html is False

    def test_screenshot_with_resize(self, client, fake_engine):
        client.get("/", params={"url": "https://example.com", "resize": "100x50!"})
        assert fake_engine.requests[0].resize is not None

    def test_missing_url(self, client):
        response = client.get("/")

        assert response.status_code == 400
        data = response.json()
        assert data["error"] == "invalid_parameters"
        assert "url" in data["message"]

    @pytest.mark.parametrize("params", [
        {"viewport": "wide"},
        {"timeout": "301"},
        {"wait": "-1"},
        {"resize": "abcxdef"},
        {"domains": "a.com/path"},
    ])
    def test_invalid_parameters(self, client, fake_engine, params):
        response = client.get("/", params={"url": "https://example.com", **params})

        assert response.status_code == 400
        assert fake_engine.requests == []

    def test_html(self, client, fake_engine):
        response = client.get("/html", params={"url": "https://example.com"})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert response.text == "<html><body>ok</body></html>"
        request = fake_engine.requests[0]
        assert request.capture_html is True
        assert request.capture_screenshot is False

    def test_timeout_maps_to_504(self, client, fake_engine):
        fake_engine.error = CaptureTimeoutError(5)

        response = client.get("/", params={"url": "https://slow.example"})

        assert response.status_code == 504
        assert response.json()["error"] == "capture_timeout"

    @pytest.mark.parametrize("error", [
        NavigationError("navigation failed: net::ERR_NAME_NOT_RESOLVED"),
        CaptureError("screenshot capture failed: Target closed"),
    ])
    def test_capture_failures_map_to_500(self, client, fake_engine, error):
        fake_engine.error = error

        response = client.get("/", params={"url": "https://example.com"})

        assert response.status_code == 500
        assert response.json()["message"] == str(error)


class TestContextCapture:
    """Tests for POST /capture and request history."""

    def test_capture_in_default_context(self, client, fake_engine):
        response = client.post("/capture", json={"url": "https://example.com", "capture_html": True})

        assert response.status_code == 200
        data = response.json()
        assert data["context_name"] == DEFAULT_CONTEXT
        assert base64.b64decode(data["screenshot"]) == fake_engine.response.screenshot
        assert data["html"] == "<html><body>ok</body></html>"

        request = fake_engine.requests[0]
        assert request.viewport.width == 1366
        assert request.viewport.height == 854
        assert request.timeout_seconds == 30

        history = client.get(f"/requests/{data['id']}", params={"include_html": True})
        assert history.status_code == 200
        assert history.json()["html"] == "<html><body>ok</body></html>"
        assert history.json()["url"] == "https://example.com"

    def test_body_overrides_context_defaults(self, client, fake_engine):
        client.post("/capture", json={
            "html": "<p>inline</p>",
            "viewport": "640x480",
            "timeout": 5,
            "domains": ["a.com"],
            "headers": {"X-Test": "1"},
            "cookies": [{"name": "sid", "value": "1", "domain": "a.com"}],
        })

        request = fake_engine.requests[0]
        assert request.html == "<p>inline</p>"
        assert request.viewport.width == 640
        assert request.timeout_seconds == 5
        assert request.allow_list == ("a.com",)
        assert request.headers == {"X-Test": "1"}
        assert request.cookies[0].name == "sid"

    def test_returned_cookies_merge_into_context(self, client, fake_engine):
        fake_engine.response = BrowserResponse(
            screenshot=b"png",
            content_type="image/png",
            cookies=[{"name": "sid", "value": "abc", "domain": "example.com", "path": "/",
                      "expires": -1, "httpOnly": True, "secure": False, "sameSite": "Lax"}],
        )

        client.post("/capture", json={"url": "https://example.com"})

        contexts = client.get("/contexts").json()["contexts"]
        cookies = contexts[DEFAULT_CONTEXT]["cookies"]
        assert [(c["name"], c["value"]) for c in cookies] == [("sid", "abc")]
        assert contexts[DEFAULT_CONTEXT]["request_count"] == 1

    def test_failed_capture_is_recorded(self, client, fake_engine, service):
        fake_engine.error = NavigationError("navigation failed: boom")

        response = client.post("/capture", json={"url": "https://example.com"})

        assert response.status_code == 500
        assert len(service.history) == 1
        context = service.contexts.get(DEFAULT_CONTEXT)
        entry = service.history.get(context.last_request_id)
        assert entry.error == "navigation failed: boom"

    def test_exactly_one_target_required(self, client):
        response = client.post("/capture", json={"url": "https://a.com", "html": "<p></p>"})
        assert response.status_code == 422

    def test_unknown_context(self, client):
        response = client.post("/capture", json={"context": "missing", "url": "https://a.com"})

        assert response.status_code == 404
        assert response.json()["error"] == "context_not_found"

    def test_unknown_request_id(self, client):
        response = client.get("/requests/20250101000000_00000000")

        assert response.status_code == 404
        assert response.json()["error"] == "http_404"


class TestContexts:
    """Tests for context management."""

    def test_create_update_delete(self, client):
        created = client.put("/contexts/shop", json={"viewport": "800x600", "timeout": 10, "domains": ["a.com"]})

        assert created.status_code == 200
        assert created.json()["name"] == "shop"
        assert created.json()["viewport"] == {"width": 800, "height": 600}

        updated = client.put("/contexts/shop", json={"timeout": 20})
        assert updated.json()["timeout"] == 20
        assert updated.json()["viewport"] == {"width": 800, "height": 600}

        assert set(client.get("/contexts").json()["contexts"]) == {DEFAULT_CONTEXT, "shop"}

        assert client.delete("/contexts/shop").status_code == 204
        assert client.delete("/contexts/shop").status_code == 404

    def test_capture_uses_named_context(self, client, fake_engine):
        client.put("/contexts/mobile", json={"viewport": "375x667", "full_height": True})

        client.post("/capture", json={"context": "mobile", "url": "https://example.com"})

        request = fake_engine.requests[0]
        assert request.viewport.width == 375
        assert request.full_height is True

    def test_invalid_context_body(self, client):
        response = client.put("/contexts/bad", json={"viewport": "huge"})
        assert response.status_code == 400

    def test_default_context_cannot_be_deleted(self, client):
        response = client.delete(f"/contexts/{DEFAULT_CONTEXT}")
        assert response.status_code == 400
