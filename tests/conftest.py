"""
Shared pytest fixtures and event helpers.
"""
from datetime import datetime, timezone

import pytest

from processor.models import DestinationRow, NormalizedEvent, RawEvent
from sync.config import Settings

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_raw(uid, summary="Test Event", start=None, end=None, location=None):
    """Return a RawEvent starting at NOW unless told otherwise."""
    return RawEvent(
        uid=uid,
        summary=summary,
        start=start if start is not None else NOW,
        end=end,
        location=location,
    )


def make_event(identity, title="Test Event", start=None, end=None, location=None):
    return NormalizedEvent(
        identity=identity,
        title=title,
        start=start if start is not None else NOW,
        end=end,
        location=location,
    )


def make_row(handle, identity, title="Test Event", start=None, end=None, location=None):
    return DestinationRow(
        handle=handle,
        identity=identity,
        title=title,
        start=start if start is not None else NOW,
        end=end,
        location=location,
    )


def make_vevent(uid, summary="Test Event", dtstart="20260301T090000Z",
                dtend="20260301T091500Z", extra=()):
    """Return a VEVENT block with CRLF line endings."""
    lines = ["BEGIN:VEVENT", f"UID:{uid}", f"SUMMARY:{summary}"]
    if dtstart:
        lines.append(f"DTSTART:{dtstart}")
    if dtend:
        lines.append(f"DTEND:{dtend}")
    lines.append("DTSTAMP:20260224T000000Z")
    lines.extend(extra)
    lines.append("END:VEVENT")
    return "\r\n".join(lines) + "\r\n"


def make_calendar(*vevents):
    return (
        "BEGIN:VCALENDAR\r\nVERSION:2.0\r\nPRODID:-//test//notion-ics//EN\r\n"
        + "".join(vevents)
        + "END:VCALENDAR\r\n"
    )


@pytest.fixture
def settings():
    return Settings(
        ical_url="https://calendar.example.org/feed.ics",
        id_property="ICS UID",
        date_property="Date",
        location_property="Location",
        day_past=7,
        day_future=30,
        notion_token="secret_test",
        notion_calendar="Team calendar",
        max_concurrency=1,
    )
