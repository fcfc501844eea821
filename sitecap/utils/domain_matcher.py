"""Domain allow-list matching for outbound browser requests.

Patterns are either shell-style globs applied to the whole hostname
(``*.cdn.com``) or leading-dot suffixes (``.example.com``) that match the
bare domain and every subdomain. Hostnames and patterns are compared
lower-cased.
"""

from fnmatch import fnmatchcase
from typing import Optional, Sequence
from urllib.parse import urlparse


def extract_hostname(request_url: str) -> Optional[str]:
    """Return the lower-cased hostname of a URL, or None if it has none."""
    try:
        hostname = urlparse(request_url).hostname
    except ValueError:
        return None
    return hostname.lower() if hostname else None


def pattern_matches(pattern: str, hostname: str) -> bool:
    """Check a single allow-list pattern against an already-normalized hostname."""
    pattern = pattern.lower()

    if fnmatchcase(hostname, pattern):
        return True

    if pattern.startswith("."):
        return hostname == pattern[1:] or hostname.endswith(pattern)

    return False


def is_allowed(request_url: str, allow_list: Optional[Sequence[str]]) -> bool:
    """Decide whether ``request_url`` is permitted by ``allow_list``.

    Args:
        request_url: Absolute URL of the outbound request
        allow_list: Domain patterns; empty or None means no restriction

    Returns:
        True if the host matches any pattern (or no list is configured).
        Unparseable URLs are rejected.
    """
    if not allow_list:
        return True

    hostname = extract_hostname(request_url)
    if hostname is None:
        return False

    for pattern in allow_list:
        if pattern_matches(pattern, hostname):
            return True

    return False

