"""Request interception policy for a single capture session.

Every outbound request made by the page passes through an
InterceptionPolicy. It allows or blocks the request against the domain
allow-list, merges custom headers into it, and exempts the first request
of a URL capture (the document the caller asked for) from filtering.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Tuple, Union

from playwright.async_api import Response, Route

from ..utils.domain_matcher import is_allowed

logger = logging.getLogger(__name__)
debug_logger = logging.getLogger("sitecap.debug")

BLOCKED_BY_CLIENT = "blockedbyclient"

HeaderEntries = List[Tuple[str, str]]


@dataclass(frozen=True)
class Allow:
    """Continue the request.

    ``headers`` is the full header list to send, or None to continue the
    request unchanged.
    """
    headers: Optional[Tuple[Tuple[str, str], ...]] = None
    exempt_first: bool = False


@dataclass(frozen=True)
class Deny:
    """Fail the request with a network error reason."""
    reason: str = BLOCKED_BY_CLIENT


InterceptionDecision = Union[Allow, Deny]


def merge_headers(entries: Sequence[Tuple[str, str]], custom_headers: Mapping[str, str]) -> HeaderEntries:
    """Merge custom headers into existing header entries.

    Existing entries named like a custom header (case-insensitive) are
    dropped and the custom values appended. Repeated entries for other
    names are kept as they are.
    """
    overridden = {name.lower() for name in custom_headers}
    merged = [(name, value) for name, value in entries if name.lower() not in overridden]
    merged.extend(custom_headers.items())
    return merged


def collapse_headers(entries: Sequence[Tuple[str, str]]) -> Dict[str, str]:
    """Fold header entries into the single-valued dict Playwright accepts."""
    headers: Dict[str, str] = {}
    canonical: Dict[str, str] = {}
    for name, value in entries:
        key = name.lower()
        if key in canonical:
            first = canonical[key]
            headers[first] = f"{headers[first]}, {value}"
        else:
            canonical[key] = name
            headers[name] = value
    return headers


def interception_required(
    debug: bool,
    allow_list: Optional[Sequence[str]],
    custom_headers: Optional[Mapping[str, str]],
    capture_network: bool,
) -> bool:
    """Whether a capture run needs request routing installed at all."""
    return bool(debug or allow_list or custom_headers or capture_network)


class InterceptionPolicy:
    """Per-session allow/deny/header-injection state machine.

    The policy starts in the awaiting-first state when the first-request
    exemption is enabled and moves to steady on the first request it sees.
    The transition is a lock-guarded compare-and-swap so exactly one of
    several concurrently delivered requests is treated as the first.
    """

    def __init__(
        self,
        allow_list: Optional[Sequence[str]] = None,
        custom_headers: Optional[Mapping[str, str]] = None,
        permit_first_request: bool = False,
        debug: bool = False,
    ):
        """Initialize the policy.

        Args:
            allow_list: Domain patterns; empty means no filtering
            custom_headers: Headers injected into every request
            permit_first_request: Exempt the first request from filtering
            debug: Trace every decision to the ``sitecap.debug`` logger
        """
        self.allow_list = tuple(allow_list or ())
        self.custom_headers = dict(custom_headers or {})
        self.permit_first_request = permit_first_request
        self.debug = debug

        self._lock = threading.Lock()
        self._awaiting_first = permit_first_request
        self._stats = {'allowed': 0, 'denied': 0, 'first_exempt': 0}

    @property
    def state(self) -> str:
        with self._lock:
            return 'awaiting_first' if self._awaiting_first else 'steady'

    def _claim_first(self) -> bool:
        with self._lock:
            if self._awaiting_first:
                self._awaiting_first = False
                return True
            return False

    def _count(self, key: str) -> None:
        with self._lock:
            self._stats[key] += 1

    def _apply_headers(self, entries: Sequence[Tuple[str, str]]) -> Optional[Tuple[Tuple[str, str], ...]]:
        if not self.custom_headers:
            return None
        return tuple(merge_headers(entries, self.custom_headers))

    def decide(self, url: str, header_entries: Sequence[Tuple[str, str]] = ()) -> InterceptionDecision:
        """Decide what to do with one outbound request.

        Args:
            url: Request URL
            header_entries: Headers already on the request as (name, value) pairs

        Returns:
            Allow with the headers to send, or Deny with the failure reason
        """
        if self.debug:
            debug_logger.debug(f"Request: {url}")

        if self.permit_first_request and self._claim_first():
            self._count('first_exempt')
            if self.debug:
                debug_logger.debug(f"Allowed (first request): {url}")
                if self.custom_headers:
                    debug_logger.debug(f"Adding custom headers: {self.custom_headers}")
            return Allow(headers=self._apply_headers(header_entries), exempt_first=True)

        if self.allow_list and not is_allowed(url, self.allow_list):
            self._count('denied')
            if self.debug:
                debug_logger.debug(f"Blocked: {url}")
            return Deny()

        self._count('allowed')
        if self.debug and self.allow_list:
            debug_logger.debug(f"Allowed: {url}")
        return Allow(headers=self._apply_headers(header_entries))

    async def handle_route(self, route: Route) -> None:
        """Playwright route handler applying :meth:`decide` to a request."""
        request = route.request
        entries: HeaderEntries = []
        if self.custom_headers:
            entries = [(h['name'], h['value']) for h in await request.headers_array()]

        decision = self.decide(request.url, entries)

        if isinstance(decision, Deny):
            await route.abort(decision.reason)
        elif decision.headers is None:
            await route.continue_()
        else:
            await route.continue_(headers=collapse_headers(decision.headers))

    def get_stats(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._stats)

    def __repr__(self) -> str:
        return (
            f"InterceptionPolicy(allow_list={len(self.allow_list)}, "
            f"headers={len(self.custom_headers)}, state={self.state})"
        )


def log_response(response: Response) -> None:
    """Trace a response status to the debug logger."""
    debug_logger.debug(f"Response: {response.url} - Status: {response.status}")


def log_request_failed(request) -> None:
    """Trace a network failure to the debug logger."""
    debug_logger.debug(f"Network Error: {request.url} - {request.failure or 'unknown error'}")
