"""
Conversion of every time representation the backend or the UI hands us into
one canonical local wall-clock string: ``YYYY-MM-DD HH:MM:SS``.

Three string shapes are accepted:

* bare ``HH:MM`` tokens, scoped to a reference date;
* local-naive ``YYYY-MM-DD[ T]HH:MM[:SS]`` strings;
* zoned strings ending in ``Z`` or ``+HH:MM`` / ``-HH:MM``.

Naive strings are never handed to a timezone-aware parser. Only the zoned
branch converts through a timezone, into the business timezone.
Invalid input yields ``""``.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta, timezone as dt_timezone
from zoneinfo import ZoneInfo

from booking_engine.core.config import settings

CANONICAL_FORMAT = "%Y-%m-%d %H:%M:%S"
INVALID = ""

_BARE_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})$")
_NAIVE_RE = re.compile(r"^(\d{4}-\d{2}-\d{2})[T ](\d{2}:\d{2})(:\d{2})?$")
_ZONED_RE = re.compile(r"([Zz]|[+\-]\d{2}:\d{2})$")

_EPOCH_MS_THRESHOLD = 1e12


def business_timezone() -> ZoneInfo:
    return ZoneInfo(settings.BUSINESS_TIMEZONE)


def local_now(timezone: ZoneInfo | None = None) -> datetime:
    """Naive wall-clock now in the business timezone."""
    tz = timezone or business_timezone()
    return datetime.now(tz).replace(tzinfo=None)


def format_canonical(value: datetime) -> str:
    return value.strftime(CANONICAL_FORMAT)


def normalize_timestamp(
    value: object,
    reference_date: date | str | None = None,
    timezone: ZoneInfo | None = None,
) -> str:
    if value is None or isinstance(value, bool):
        return INVALID

    if isinstance(value, datetime):
        if value.tzinfo is None:
            return format_canonical(value)
        return _from_aware(value, timezone)

    if isinstance(value, (int, float)):
        return _from_epoch(value, timezone)

    if not isinstance(value, str):
        return INVALID

    text = value.strip()
    if not text:
        return INVALID

    bare = _BARE_TIME_RE.match(text)
    if bare:
        return _from_bare_time(int(bare.group(1)), int(bare.group(2)), reference_date)

    naive = _NAIVE_RE.match(text)
    if naive:
        seconds = naive.group(3) or ":00"
        candidate = f"{naive.group(1)} {naive.group(2)}{seconds}"
        return candidate if parse_canonical(candidate) else INVALID

    if _ZONED_RE.search(text):
        try:
            parsed = datetime.fromisoformat(text[:-1] + "+00:00" if text[-1] in "Zz" else text)
        except ValueError:
            return INVALID
        if parsed.tzinfo is None:
            return INVALID
        return _from_aware(parsed, timezone)

    return INVALID


def parse_canonical(value: str) -> datetime | None:
    """Parse a canonical string into a naive datetime, or None."""
    try:
        return datetime.strptime(value, CANONICAL_FORMAT)
    except (TypeError, ValueError):
        return None


def to_zoned(canonical: str, timezone: ZoneInfo | None = None) -> str:
    """ISO string with the business timezone offset for a canonical wall-clock value."""
    parsed = parse_canonical(canonical)
    if parsed is None:
        return INVALID
    tz = timezone or business_timezone()
    return parsed.replace(tzinfo=tz).isoformat()


def add_minutes(canonical: str, minutes: int) -> str:
    parsed = parse_canonical(canonical)
    if parsed is None:
        return INVALID
    return format_canonical(parsed + timedelta(minutes=minutes))


def is_in_future(canonical: str, now: datetime) -> bool:
    """Strictly after ``now`` (naive wall clock). Invalid values are never in the future."""
    parsed = parse_canonical(canonical)
    if parsed is None:
        return False
    return parsed > now


def _from_bare_time(hour: int, minute: int, reference_date: date | str | None) -> str:
    if reference_date is None or hour > 23 or minute > 59:
        return INVALID
    if isinstance(reference_date, str):
        try:
            reference_date = date.fromisoformat(reference_date.strip())
        except ValueError:
            return INVALID
    return f"{reference_date.isoformat()} {hour:02d}:{minute:02d}:00"


def _from_aware(value: datetime, timezone: ZoneInfo | None) -> str:
    tz = timezone or business_timezone()
    return format_canonical(value.astimezone(tz))


def _from_epoch(value: int | float, timezone: ZoneInfo | None) -> str:
    seconds = value / 1000 if value > _EPOCH_MS_THRESHOLD else value
    try:
        aware = datetime.fromtimestamp(seconds, tz=dt_timezone.utc)
    except (OverflowError, OSError, ValueError):
        return INVALID
    return _from_aware(aware, timezone)
