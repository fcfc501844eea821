"""Unit tests for the context store and request history."""

import re

from sitecap.config import CaptureDefaults
from sitecap.models.capture import BrowserResponse, ConsoleRecord, CookieParam, Viewport
from sitecap.store import (
    DEFAULT_CONTEXT,
    BrowserContextSettings,
    ContextStore,
    RequestHistory,
    RequestHistoryEntry,
    generate_request_id,
)


class TestBrowserContextSettings:
    """Tests for BrowserContextSettings."""

    def test_defaults(self):
        context = BrowserContextSettings()
        assert context.viewport == Viewport(width=1366, height=854)
        assert context.timeout == 30

    def test_from_capture_defaults(self):
        defaults = CaptureDefaults(viewport="800x600", timeout=10, domains=["a.com"], headers={"X": "1"})
        context = BrowserContextSettings.from_defaults(defaults, name="shop")

        assert context.name == "shop"
        assert context.viewport == Viewport(width=800, height=600)
        assert context.timeout == 10
        assert context.allow_list == ["a.com"]
        assert context.headers == {"X": "1"}

    def test_to_capture_request(self):
        context = BrowserContextSettings(
            allow_list=["a.com"],
            cookies=[CookieParam(name="sid", value="1")],
            full_height=True,
        )

        request = context.to_capture_request(url="https://a.com", capture_html=True)

        assert request.viewport == Viewport(width=1366, height=854)
        assert request.timeout_seconds == 30
        assert request.allow_list == ("a.com",)
        assert request.cookies[0].name == "sid"
        assert request.full_height is True
        assert request.capture_html is True


class TestContextStore:
    """Tests for ContextStore."""

    def test_default_context_exists(self):
        store = ContextStore()
        assert store.names() == [DEFAULT_CONTEXT]
        assert store.get() is not None
        assert store.get("").name == DEFAULT_CONTEXT

    def test_get_returns_copy(self):
        store = ContextStore()
        copy = store.get(DEFAULT_CONTEXT)
        copy.headers["X-Mutated"] = "1"
        copy.allow_list.append("evil.com")

        fresh = store.get(DEFAULT_CONTEXT)
        assert "X-Mutated" not in fresh.headers
        assert "evil.com" not in fresh.allow_list

    def test_update_preserves_history_and_created_at(self):
        store = ContextStore()
        store.create_or_update("shop", BrowserContextSettings(timeout=5))
        store.record_request("shop", "20250101000000_deadbeef")
        created = store.get("shop").created_at

        store.create_or_update("shop", BrowserContextSettings(timeout=60))

        updated = store.get("shop")
        assert updated.timeout == 60
        assert updated.request_history == ["20250101000000_deadbeef"]
        assert updated.last_request_id == "20250101000000_deadbeef"
        assert updated.created_at == created

    def test_delete(self):
        store = ContextStore()
        store.create_or_update("tmp", BrowserContextSettings())

        assert store.delete("tmp") is True
        assert store.delete("tmp") is False
        assert store.get("tmp") is None

    def test_update_cookies_merges_by_name_and_domain(self):
        store = ContextStore()
        store.update_cookies(DEFAULT_CONTEXT, [
            CookieParam(name="a", value="1", domain="x.com"),
            CookieParam(name="b", value="1", domain="x.com"),
        ], merge=False)

        store.update_cookies(DEFAULT_CONTEXT, [
            CookieParam(name="a", value="2", domain="x.com"),
            CookieParam(name="a", value="3", domain="y.com"),
        ])

        cookies = {c.key: c.value for c in store.get().cookies}
        assert cookies == {"a|x.com": "2", "b|x.com": "1", "a|y.com": "3"}

    def test_update_cookies_replaces_without_merge(self):
        store = ContextStore()
        store.update_cookies(DEFAULT_CONTEXT, [CookieParam(name="a", value="1")])
        store.update_cookies(DEFAULT_CONTEXT, [CookieParam(name="b", value="1")], merge=False)

        assert [c.name for c in store.get().cookies] == ["b"]

    def test_update_cookies_unknown_context(self):
        assert ContextStore().update_cookies("missing", []) is False

    def test_list_summaries(self):
        store = ContextStore()
        store.record_request(DEFAULT_CONTEXT, "id1")

        summary = store.list()[DEFAULT_CONTEXT]
        assert summary['request_count'] == 1
        assert summary['viewport'] == {'width': 1366, 'height': 854}


class TestRequestHistory:
    """Tests for RequestHistory and its entries."""

    def test_request_id_format(self):
        assert re.fullmatch(r"\d{14}_[0-9a-f]{8}", generate_request_id())

    def test_store_and_last_for_context(self):
        contexts = ContextStore()
        history = RequestHistory()
        entry = RequestHistoryEntry(url="https://a.com")

        history.store(entry)
        contexts.record_request(DEFAULT_CONTEXT, entry.id)

        assert history.get(entry.id) is entry
        assert history.last_for_context(DEFAULT_CONTEXT, contexts) is entry
        assert history.last_for_context("missing", contexts) is None
        assert len(history) == 1

    def test_to_dict_optional_sections(self):
        entry = RequestHistoryEntry(
            url="https://a.com",
            duration_ms=120,
            response=BrowserResponse(
                html="<html></html>",
                cookies=[{"name": "sid", "value": "1"}],
                content_type="image/png",
                console_logs=[ConsoleRecord(level="log", message="hi")],
                network_requests=[],
            ),
        )

        brief = entry.to_dict()
        assert brief['duration'] == 120
        assert brief['set_cookies'] == [{"name": "sid", "value": "1"}]
        assert brief['content_type'] == "image/png"
        assert "html" not in brief
        assert "console_logs" not in brief

        full = entry.to_dict(include_html=True, include_network=True, include_console=True)
        assert full['html'] == "<html></html>"
        assert full['network_requests'] == []
        assert full['console_logs'][0]['message'] == "hi"

    def test_to_dict_with_error(self):
        entry = RequestHistoryEntry(url="https://a.com", error="navigation failed: boom")

        data = entry.to_dict(include_html=True)

        assert data['error'] == "navigation failed: boom"
        assert "html" not in data
