"""Time window filter applied to feed events before normalization."""
import logging
from datetime import datetime, timedelta, tzinfo
from typing import Iterable, List, Optional

from processor.dates import UTC, is_all_day, to_utc
from processor.models import RawEvent

logger = logging.getLogger(__name__)


def window_bounds(
    days_past: int,
    days_future: int,
    now: Optional[datetime] = None,
    tz: tzinfo = UTC
) -> tuple[datetime, datetime]:
    """
    Compute the inclusive [earliest, latest] window around now.

    Args:
        days_past: Days before now to include
        days_future: Days after now to include
        now: Reference instant (defaults to the current time)
        tz: Timezone for a naive reference instant

    Returns:
        Tuple of aware UTC datetimes (earliest, latest)

    Raises:
        ValueError: If a day count is negative
    """
    if days_past < 0 or days_future < 0:
        raise ValueError(
            f"Window bounds must be non-negative, got past={days_past} "
            f"future={days_future}"
        )
    now = to_utc(now or datetime.now(tz), tz)
    return now - timedelta(days=days_past), now + timedelta(days=days_future)


def filter_window(
    events: Iterable[RawEvent],
    days_past: int,
    days_future: int,
    now: Optional[datetime] = None,
    tz: tzinfo = UTC
) -> List[RawEvent]:
    """
    Keep events starting within [now - days_past, now + days_future].

    Both edges are inclusive. Timed events are compared as instants, all-day
    events by calendar date in the given timezone. Events with no start are
    malformed and dropped with a warning.

    Args:
        events: Raw events from the feed
        days_past: Days before now to include
        days_future: Days after now to include
        now: Reference instant (defaults to the current time)
        tz: Timezone for floating datetimes and all-day dates

    Returns:
        Events inside the window, in their original order
    """
    earliest, latest = window_bounds(days_past, days_future, now, tz)
    first_day = earliest.astimezone(tz).date()
    last_day = latest.astimezone(tz).date()

    kept = []
    for event in events:
        if event.start is None:
            logger.warning(f"Skipping malformed event {event.uid}: missing start")
            continue
        if is_all_day(event.start):
            inside = first_day <= event.start <= last_day
        else:
            inside = earliest <= to_utc(event.start, tz) <= latest
        if inside:
            kept.append(event)

    logger.info(
        f"Kept {len(kept)} events between {earliest.isoformat()} and "
        f"{latest.isoformat()}"
    )
    return kept
