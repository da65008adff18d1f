"""Date helpers shared by the normalizer, the window filter and the stores.

Timed values are always compared as UTC instants truncated to the second,
all-day values as plain dates. Destinations store both as ISO 8601 strings.
"""
from datetime import date, datetime, timezone, tzinfo
from typing import Optional

from processor.models import DateValue

UTC = timezone.utc


def is_all_day(value: DateValue) -> bool:
    """Return True for a calendar date without a time component."""
    return isinstance(value, date) and not isinstance(value, datetime)


def to_utc(value: datetime, tz: tzinfo = UTC) -> datetime:
    """
    Convert a datetime to an aware UTC datetime without microseconds.

    Args:
        value: Aware or floating (naive) datetime
        tz: Timezone used to interpret floating datetimes

    Returns:
        Aware datetime in UTC
    """
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        value = value.replace(tzinfo=tz)
    return value.astimezone(UTC).replace(microsecond=0)


def normalize_value(value: Optional[DateValue], tz: tzinfo = UTC) -> Optional[DateValue]:
    if value is None or is_all_day(value):
        return value
    return to_utc(value, tz)


def format_date_value(value: Optional[DateValue]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat()


def parse_date_value(text: Optional[str]) -> Optional[DateValue]:
    """
    Parse an ISO 8601 date or date-time string read back from a destination.

    Args:
        text: String such as '2024-03-15' or '2024-03-15T09:00:00.000+00:00'

    Returns:
        date for date-only strings, UTC datetime otherwise, None for empty input

    Raises:
        ValueError: If the string is not ISO 8601
    """
    if not text:
        return None
    text = text.strip()
    if 'T' not in text:
        return date.fromisoformat(text)
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    return to_utc(datetime.fromisoformat(text))
