"""Parsing of user-supplied capture parameters.

The CLI, the HTTP API and the context store all accept the same string
forms (``1920x1080``, ``30``, ``a.com,*.cdn.com``, header JSON, cookie
JSON, resize specs). Everything here raises ConfigurationError before any
browser work starts.
"""

import json
import logging
import re
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from pydantic import ValidationError

from ..errors import ConfigurationError
from ..imaging.resize import ResizeSpec, parse_resize_spec
from ..models.capture import CaptureRequest, CookieParam, Viewport

_DIGITS = re.compile(r"[0-9]+")
_SIGNED_DIGITS = re.compile(r"-?[0-9]+")

logger = logging.getLogger(__name__)

MAX_SECONDS = 300

_SAME_SITE = {"strict": "Strict", "lax": "Lax", "none": "None"}


def parse_viewport(value: Optional[str]) -> Tuple[int, int]:
    """Parse ``WxH`` into a (width, height) tuple.

    An empty value means "page default" and yields (0, 0).

    Raises:
        ConfigurationError: If the format is wrong or a dimension is not positive
    """
    if not value:
        return 0, 0

    parts = value.split("x")
    if len(parts) != 2:
        raise ConfigurationError("invalid viewport format, expected WxH")

    dimensions = []
    for part, name in zip(parts, ("width", "height")):
        if not _DIGITS.fullmatch(part):
            raise ConfigurationError(f"invalid viewport {name}")
        number = int(part)
        if number <= 0:
            raise ConfigurationError(f"invalid viewport {name}")
        dimensions.append(number)

    return dimensions[0], dimensions[1]


def parse_seconds(value: Union[str, int, None], name: str = "timeout") -> int:
    """Parse a whole number of seconds in the range 0..300."""
    if value is None or value == "":
        return 0

    if isinstance(value, str) and not _SIGNED_DIGITS.fullmatch(value):
        raise ConfigurationError(f"invalid {name} value, must be a number")
    try:
        seconds = int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"invalid {name} value, must be a number")

    if seconds < 0:
        raise ConfigurationError(f"{name} cannot be negative")
    if seconds > MAX_SECONDS:
        raise ConfigurationError(f"{name} cannot exceed {MAX_SECONDS} seconds")

    return seconds


def _check_domain_pattern(pattern: str) -> None:
    if "/" in pattern or any(ch.isspace() for ch in pattern):
        raise ConfigurationError(f"invalid domain pattern: {pattern!r}")
    if pattern.count("[") != pattern.count("]"):
        raise ConfigurationError(f"unbalanced brackets in domain pattern: {pattern!r}")


def parse_domain_allowlist(value: Union[str, Sequence[str], None]) -> Tuple[str, ...]:
    """Split a comma-separated domain list, dropping blank entries."""
    if not value:
        return ()

    entries = value.split(",") if isinstance(value, str) else list(value)

    domains = []
    for entry in entries:
        entry = entry.strip()
        if not entry:
            continue
        _check_domain_pattern(entry)
        domains.append(entry)

    return tuple(domains)


def parse_custom_headers(value: Union[str, Mapping[str, Any], None]) -> Dict[str, str]:
    """Parse a JSON object of header names to values."""
    if not value:
        return {}

    if isinstance(value, str):
        try:
            headers = json.loads(value)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"invalid header JSON: {e}")
    else:
        headers = value

    if not isinstance(headers, dict):
        raise ConfigurationError("headers must be a JSON object")

    result = {}
    for name, header_value in headers.items():
        if not isinstance(header_value, str):
            raise ConfigurationError(f"header {name!r} must have a string value")
        result[str(name)] = header_value
    return result


def _cookie_from_mapping(data: Mapping[str, Any]) -> CookieParam:
    name = data.get("name")
    if not isinstance(name, str) or not name:
        raise ConfigurationError("cookie entries require a name")

    same_site = data.get("sameSite", data.get("same_site"))
    if isinstance(same_site, str):
        same_site = _SAME_SITE.get(same_site.lower())
    else:
        same_site = None

    expires = data.get("expires")
    try:
        return CookieParam(
            name=name,
            value=str(data.get("value", "")),
            domain=data.get("domain") or None,
            path=data.get("path") or "/",
            url=data.get("url") or None,
            expires=float(expires) if isinstance(expires, (int, float)) else None,
            http_only=bool(data.get("httpOnly", data.get("http_only", False))),
            secure=bool(data.get("secure", False)),
            same_site=same_site,
        )
    except ValidationError as e:
        raise ConfigurationError(f"invalid cookie {name!r}: {e}")


def parse_cookies_json(value: Union[str, List[Any], Mapping[str, Any], None]) -> Tuple[CookieParam, ...]:
    """Parse cookies from JSON text or already-decoded JSON data.

    Accepts a list of cookie objects or a single object. ``sameSite`` is
    normalized to Strict/Lax/None; unknown values are dropped.
    """
    if not value:
        return ()

    data = value
    if isinstance(value, str):
        try:
            data = json.loads(value)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"invalid cookie JSON: {e}")

    if isinstance(data, Mapping):
        data = [data]
    if not isinstance(data, list):
        raise ConfigurationError("cookies must be a JSON object or list of objects")

    cookies = []
    for entry in data:
        if not isinstance(entry, Mapping):
            raise ConfigurationError("cookie entries must be JSON objects")
        cookies.append(_cookie_from_mapping(entry))
    return tuple(cookies)


def build_capture_request(
    url: Optional[str] = None,
    html: Optional[str] = None,
    viewport: Optional[str] = None,
    resize: Optional[str] = None,
    timeout: Union[str, int, None] = None,
    wait: Union[str, int, None] = None,
    domains: Union[str, Sequence[str], None] = None,
    headers: Union[str, Mapping[str, Any], None] = None,
    cookies: Union[str, List[Any], Mapping[str, Any], None] = None,
    full_height: bool = False,
    capture_screenshot: bool = True,
    capture_html: bool = False,
    capture_cookies: bool = False,
    capture_network: bool = False,
    capture_logs: bool = False,
) -> CaptureRequest:
    """Build a validated CaptureRequest from raw string parameters.

    Raises:
        ConfigurationError: If any parameter is malformed
    """
    width, height = parse_viewport(viewport)
    resize_spec: Optional[ResizeSpec] = parse_resize_spec(resize) if resize else None

    try:
        request = CaptureRequest(
            url=url or None,
            html=html or None,
            viewport=Viewport(width=width, height=height),
            timeout_seconds=parse_seconds(timeout, "timeout"),
            wait_seconds=parse_seconds(wait, "wait"),
            allow_list=parse_domain_allowlist(domains),
            headers=parse_custom_headers(headers),
            cookies=parse_cookies_json(cookies),
            capture_screenshot=capture_screenshot,
            capture_html=capture_html,
            capture_cookies=capture_cookies,
            capture_network=capture_network,
            capture_logs=capture_logs,
            full_height=full_height,
            resize=resize_spec,
        )
    except ValidationError as e:
        raise ConfigurationError(_first_error_message(e))

    logger.debug(f"Built capture request for {request.target}")
    return request


def _first_error_message(error: ValidationError) -> str:
    errors = error.errors()
    if not errors:
        return str(error)
    message = errors[0].get("msg", str(error))
    # pydantic prefixes validator messages with "Value error, "
    return message.replace("Value error, ", "", 1)
