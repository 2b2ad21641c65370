"""Pure date/time helpers - the single place where calendar math happens.

All conversions use local calendar fields; nothing is normalized to UTC.
Unparseable input returns None (or an empty string for formatters).
"""

import re
from datetime import date, datetime, time, timedelta

_YMD_PATTERN = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})")
_HHMM_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})")


def pad(n: int) -> str:
    return f"{n:02d}"


def format_ymd(d: date | datetime | str | None) -> str:
    """Format a date as YYYY-MM-DD using its local fields."""
    if not d:
        return ""
    if isinstance(d, str):
        parsed = parse_ymd(d)
        return format_ymd(parsed) if parsed else ""
    return f"{d.year}-{pad(d.month)}-{pad(d.day)}"


def parse_ymd(value: str | None) -> date | None:
    """Parse YYYY-MM-DD (trailing time ignored) into a date."""
    if not value:
        return None
    match = _YMD_PATTERN.match(str(value).strip())
    if not match:
        return None
    try:
        return date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
    except ValueError:
        return None


def parse_hhmm(value: str | None) -> time | None:
    """Parse HH:MM into a time."""
    if not value:
        return None
    match = _HHMM_PATTERN.match(str(value).strip())
    if not match:
        return None
    try:
        return time(int(match.group(1)), int(match.group(2)))
    except ValueError:
        return None


def format_hhmm(t: time | datetime | None) -> str:
    if t is None:
        return ""
    return f"{pad(t.hour)}:{pad(t.minute)}"


def to_minutes(value: str | time | None) -> int | None:
    """Minutes since midnight for HH:MM."""
    if isinstance(value, time):
        return value.hour * 60 + value.minute
    t = parse_hhmm(value)
    if t is None:
        return None
    return t.hour * 60 + t.minute


def from_minutes(minutes: int) -> str:
    """Inverse of to_minutes, e.g. 570 -> '09:30'."""
    return f"{pad(minutes // 60)}:{pad(minutes % 60)}"


def format_time12(value: str | time | None) -> str:
    """Format HH:MM for display, e.g. '13:05' -> '1:05 P.M.'."""
    if isinstance(value, time):
        value = format_hhmm(value)
    t = parse_hhmm(value)
    if t is None:
        return ""
    ampm = "P.M." if t.hour >= 12 else "A.M."
    h12 = 12 if t.hour % 12 == 0 else t.hour % 12
    return f"{h12}:{pad(t.minute)} {ampm}"


def combine_date_and_time(ymd: str | date | None, hhmm: str | None = None) -> datetime | None:
    """Combine a calendar day and HH:MM into a single local instant."""
    d = parse_ymd(ymd) if isinstance(ymd, str) else ymd
    if d is None:
        return None
    if not hhmm:
        return datetime.combine(d, time(0, 0))
    t = parse_hhmm(hhmm)
    if t is None:
        return None
    return datetime.combine(d, t)


def at_minutes(d: date, minutes: int) -> datetime:
    """Instant on day d, `minutes` after local midnight."""
    return datetime.combine(d, time(0, 0)) + timedelta(minutes=minutes)


def weekday_index(d: date) -> int:
    """Weekday as 0=Sunday..6=Saturday."""
    return (d.weekday() + 1) % 7


def minutes_between(a: datetime, b: datetime) -> float:
    """Signed minutes from a to b."""
    return (b - a).total_seconds() / 60


def hours_between(a: datetime, b: datetime) -> float:
    """Signed hours from a to b."""
    return (b - a).total_seconds() / 3600
