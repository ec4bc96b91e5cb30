"""Field normalizers shared by the catalog import phases."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

DOCUMENTS_ROOT_URL = "https://developer.apple.com/library"
CONTENT_PATH = "prerelease/content"
CATALOG_DATE_FORMAT = "%Y-%m-%d"
CATALOG_TIMEZONE = ZoneInfo("America/Los_Angeles")

INT16_MIN = -(2**15)
INT16_MAX = 2**15 - 1

_INTEGER_RE = re.compile(r"[+-]?[0-9]+")


def decode_entities(name: str) -> str:
    """Decode the one HTML entity the catalog escapes in display names."""
    return name.replace("&amp;", "&")


def fits_int16(value: int) -> bool:
    return INT16_MIN <= value <= INT16_MAX


def try_parse_int16(text: str) -> int | None:
    """Parse a decimal string into an int16, or ``None`` when it can't.

    Only an optional sign followed by ASCII digits is accepted; values outside
    the int16 range are treated as unparsable.
    """
    if not _INTEGER_RE.fullmatch(text):
        return None
    value = int(text)
    return value if fits_int16(value) else None


def parse_int16(text: str, default: int) -> int:
    value = try_parse_int16(text)
    return default if value is None else value


def clamp_int16(value: int, default: int) -> int:
    return value if fits_int16(value) else default


def canonical_url(relative_path: str) -> str:
    """Build the absolute document URL from the catalog's relative path.

    >>> canonical_url("../foo/bar.html")
    'https://developer.apple.com/library/prerelease/content/foo/bar.html'
    """
    if relative_path.startswith("../"):
        relative_path = relative_path[3:]
    return f"{DOCUMENTS_ROOT_URL}/{CONTENT_PATH}/{relative_path}"


def parse_catalog_date(text: str) -> datetime | None:
    """Parse ``yyyy-MM-dd`` as midnight Pacific time, returned as a UTC instant."""
    try:
        naive = datetime.strptime(text, CATALOG_DATE_FORMAT)
    except ValueError:
        return None
    return naive.replace(tzinfo=CATALOG_TIMEZONE).astimezone(timezone.utc)
