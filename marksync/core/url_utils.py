from __future__ import annotations

import logging
import re
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

DEFAULT_SCHEME = "https"

# RFC 3986 scheme followed by an authority marker
_SCHEME_PATTERN = re.compile(r"^[a-z][a-z0-9+.\-]*://", re.IGNORECASE)

_MAX_LOCATION_LENGTH = 2048


def has_scheme(location: str) -> bool:
    """Return True when the location already starts with ``scheme://``."""
    return bool(_SCHEME_PATTERN.match(location))


def normalize_location(location: str, default_scheme: str = DEFAULT_SCHEME) -> str:
    """Convert user-entered bookmark location text into canonical absolute form.

    - Surrounding whitespace is stripped
    - Empty input stays empty (validation rejects it later)
    - Locations that already carry a scheme are returned as-is
    - Anything else gets ``default_scheme://`` prepended

    Args:
        location: Raw text typed by the user
        default_scheme: Scheme to prepend when none is present

    Returns:
        Canonical location string

    """
    trimmed = (location or "").strip()
    if not trimmed:
        return trimmed
    if has_scheme(trimmed):
        return trimmed
    return f"{default_scheme}://{trimmed}"


def is_valid_location(location: str) -> bool:
    """Check that a normalized location is usable as a bookmark target.

    The location must have a scheme and a host, fit the RFC 2616 length limit
    and contain no whitespace or control characters.
    """
    if not location or len(location) > _MAX_LOCATION_LENGTH:
        return False
    if any(ch.isspace() or ord(ch) < 32 for ch in location):
        return False
    if not has_scheme(location):
        return False
    try:
        parsed = urlparse(location)
    except ValueError:
        logger.debug("location_parse_failed", extra={"location": location[:100]})
        return False
    return bool(parsed.netloc)


__all__ = ["DEFAULT_SCHEME", "has_scheme", "is_valid_location", "normalize_location"]
