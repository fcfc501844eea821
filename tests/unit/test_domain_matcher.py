"""Unit tests for domain allow-list matching."""

import pytest

from sitecap.utils.domain_matcher import extract_hostname, is_allowed, pattern_matches


class TestExtractHostname:
    """Tests for hostname extraction."""

    def test_lowercases_hostname(self):
        assert extract_hostname("https://WWW.Example.COM/path?q=1") == "www.example.com"

    def test_strips_port_and_credentials(self):
        assert extract_hostname("http://user:pw@api.example.com:8443/") == "api.example.com"

    def test_no_hostname(self):
        assert extract_hostname("data:text/html,hello") is None
        assert extract_hostname("not a url") is None

    def test_malformed_url(self):
        assert extract_hostname("http://[::1") is None


class TestIsAllowed:
    """Tests for allow-list decisions."""

    def test_empty_allow_list_allows_everything(self):
        assert is_allowed("https://anything.example", []) is True
        assert is_allowed("https://anything.example", None) is True

    @pytest.mark.parametrize("host,expected", [
        ("a.cdn.com", True),
        ("a.b.cdn.com", True),
        ("cdn.com", False),
        ("evilcdn.com", False),
    ])
    def test_wildcard_subdomain_pattern(self, host, expected):
        assert is_allowed(f"https://{host}/asset.js", ["*.cdn.com"]) is expected

    @pytest.mark.parametrize("host,expected", [
        ("example.com", True),
        ("x.example.com", True),
        ("notexample.com", False),
    ])
    def test_leading_dot_pattern(self, host, expected):
        assert is_allowed(f"https://{host}/", [".example.com"]) is expected

    def test_exact_pattern(self):
        assert is_allowed("https://example.com/", ["example.com"]) is True
        assert is_allowed("https://www.example.com/", ["example.com"]) is False

    def test_case_insensitive(self):
        assert is_allowed("https://A.CDN.com/", ["*.cdn.COM"]) is True

    def test_any_pattern_matches(self):
        patterns = ["static.example.org", "*.cdn.com"]
        assert is_allowed("https://x.cdn.com/", patterns) is True
        assert is_allowed("https://static.example.org/", patterns) is True
        assert is_allowed("https://other.net/", patterns) is False

    def test_unparseable_url_fails_closed(self):
        assert is_allowed("data:text/html,hi", ["*.cdn.com"]) is False

    def test_pattern_matches_expects_normalized_host(self):
        assert pattern_matches("*.Example.com", "www.example.com") is True
