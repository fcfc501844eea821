"""Sitecap utilities package."""

from .domain_matcher import extract_hostname, is_allowed
from .params import (
    build_capture_request,
    parse_cookies_json,
    parse_custom_headers,
    parse_domain_allowlist,
    parse_seconds,
    parse_viewport,
)

__all__ = [
    'extract_hostname',
    'is_allowed',
    'build_capture_request',
    'parse_cookies_json',
    'parse_custom_headers',
    'parse_domain_allowlist',
    'parse_seconds',
    'parse_viewport',
]
