"""RFC 3339 timestamps as used by the itembase query vocabulary.

Filter parameters (``created_at_from`` and friends) are sent with
nanosecond-style precision: fractional seconds with trailing zeros trimmed and
``Z`` for UTC. Python datetimes carry microseconds, so parsing truncates any
digits beyond the sixth.
"""

import re
from datetime import datetime, timedelta, timezone

__all__ = ["EPOCH", "format_rfc3339_nano", "parse_rfc3339"]

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Python 3.10 datetime.fromisoformat rejects nanosecond fractions and the Z suffix
_RFC3339_RE = re.compile(
    r"^(?P<date>\d{4}-\d{2}-\d{2})[Tt ](?P<time>\d{2}:\d{2}:\d{2})"
    r"(?:\.(?P<fraction>\d+))?"
    r"(?P<offset>[Zz]|[+-]\d{2}:?\d{2})?$"
)


def format_rfc3339_nano(value: datetime) -> str:
    """Format a datetime as RFC 3339 with trimmed fractional seconds.

    Naive datetimes are taken to be UTC.

    Example:
        >>> format_rfc3339_nano(datetime(2024, 5, 1, 12, 0, 0, 120000, tzinfo=timezone.utc))
        '2024-05-01T12:00:00.12Z'
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)

    text = value.strftime("%Y-%m-%dT%H:%M:%S")
    if value.microsecond:
        text += "." + f"{value.microsecond:06d}".rstrip("0")

    offset = value.utcoffset() or timedelta(0)
    if offset == timedelta(0):
        return text + "Z"

    total_minutes = int(offset.total_seconds() // 60)
    sign = "+" if total_minutes >= 0 else "-"
    hours, minutes = divmod(abs(total_minutes), 60)
    return f"{text}{sign}{hours:02d}:{minutes:02d}"


def parse_rfc3339(value: str) -> datetime:
    """Parse an RFC 3339 timestamp into an aware datetime.

    Raises:
        ValueError: If the string is not an RFC 3339 timestamp.
        TypeError: If ``value`` is not a string.
    """
    if not isinstance(value, str):
        raise TypeError(f"expected an RFC 3339 string, got {type(value).__name__}")
    match = _RFC3339_RE.match(value.strip())
    if not match:
        raise ValueError(f"not an RFC 3339 timestamp: {value!r}")

    fraction = (match.group("fraction") or "")[:6].ljust(6, "0")
    offset = match.group("offset") or "Z"
    if offset in ("Z", "z"):
        tz = timezone.utc
    else:
        digits = offset[1:].replace(":", "")
        delta = timedelta(hours=int(digits[:2]), minutes=int(digits[2:]))
        tz = timezone(-delta if offset[0] == "-" else delta)

    parsed = datetime.strptime(
        f"{match.group('date')}T{match.group('time')}", "%Y-%m-%dT%H:%M:%S"
    )
    return parsed.replace(microsecond=int(fraction), tzinfo=tz)
