"""Unit tests for EventNormalizer."""
from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from processor.errors import MalformedEvent
from processor.event_processor import EventNormalizer
from processor.models import RawEvent
from tests.conftest import NOW, make_raw


class TestEventNormalizer:
    """Test cases for EventNormalizer class."""

    def test_normalize_timed_event(self):
        normalizer = EventNormalizer()
        raw = make_raw(
            "evt-1",
            summary="Standup",
            start=datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc),
            end=datetime(2026, 3, 2, 9, 15, tzinfo=timezone.utc),
            location="Room 1",
        )

        event = normalizer.normalize(raw)

        assert event.identity == "evt-1"
        assert event.title == "Standup"
        assert event.start == datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)
        assert event.end == datetime(2026, 3, 2, 9, 15, tzinfo=timezone.utc)
        assert event.location == "Room 1"
        assert not event.all_day

    def test_timed_event_converted_to_utc(self):
        normalizer = EventNormalizer()
        paris = ZoneInfo("Europe/Paris")
        raw = make_raw("evt", start=datetime(2026, 3, 2, 10, 0, 30, 500, tzinfo=paris))

        event = normalizer.normalize(raw)

        assert event.start == datetime(2026, 3, 2, 9, 0, 30, tzinfo=timezone.utc)
        assert event.start.tzinfo == timezone.utc

    def test_floating_time_uses_normalizer_timezone(self):
        normalizer = EventNormalizer(tz=ZoneInfo("Europe/Paris"))
        raw = make_raw("evt", start=datetime(2026, 3, 2, 10, 0))

        event = normalizer.normalize(raw)

        assert event.start == datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)

    def test_all_day_end_becomes_inclusive(self):
        normalizer = EventNormalizer()
        raw = make_raw("trip", start=date(2026, 3, 2), end=date(2026, 3, 5))

        event = normalizer.normalize(raw)

        assert event.all_day
        assert event.start == date(2026, 3, 2)
        assert event.end == date(2026, 3, 4)

    def test_single_day_event_has_no_end(self):
        normalizer = EventNormalizer()
        raw = make_raw("holiday", start=date(2026, 3, 2), end=date(2026, 3, 3))

        assert normalizer.normalize(raw).end is None

    def test_missing_end_stays_empty(self):
        normalizer = EventNormalizer()

        assert normalizer.normalize(make_raw("evt", start=NOW)).end is None
        assert normalizer.normalize(make_raw("day", start=date(2026, 3, 2))).end is None

    def test_missing_uid_is_malformed(self):
        normalizer = EventNormalizer()

        with pytest.raises(MalformedEvent):
            normalizer.normalize(make_raw(None))
        with pytest.raises(MalformedEvent):
            normalizer.normalize(make_raw("   "))

    def test_missing_start_is_malformed(self):
        normalizer = EventNormalizer()
        raw = RawEvent(uid="evt", summary="No start", start=None, end=None)

        with pytest.raises(MalformedEvent) as exc_info:
            normalizer.normalize(raw)
        assert exc_info.value.uid == "evt"

    def test_mixed_date_and_time_is_malformed(self):
        normalizer = EventNormalizer()

        with pytest.raises(MalformedEvent):
            normalizer.normalize(make_raw("a", start=date(2026, 3, 2), end=NOW))
        with pytest.raises(MalformedEvent):
            normalizer.normalize(make_raw("b", start=NOW, end=date(2026, 3, 2)))

    def test_title_passed_through_unchanged(self):
        normalizer = EventNormalizer()
        long_title = "  Quarterly review " + "x" * 5000

        assert normalizer.normalize(make_raw("evt", summary=long_title)).title == long_title
        assert normalizer.normalize(make_raw("evt", summary=None)).title == ""

    def test_blank_location_is_absent(self):
        normalizer = EventNormalizer()

        assert normalizer.normalize(make_raw("evt", location="  ")).location is None
        assert normalizer.normalize(make_raw("evt", location=None)).location is None

    def test_identity_independent_of_other_fields(self):
        normalizer = EventNormalizer()
        first = normalizer.normalize(make_raw("stable", summary="Old title", start=NOW))
        second = normalizer.normalize(
            make_raw("stable", summary="New title", start=NOW + timedelta(days=1))
        )

        assert first.identity == second.identity == "stable"


class TestProcessEvents:
    """Test cases for EventNormalizer.process_events."""

    def test_malformed_events_are_dropped(self):
        normalizer = EventNormalizer()
        raws = [
            make_raw("good"),
            make_raw(None),
            RawEvent(uid="no-start", summary="x", start=None, end=None),
        ]

        events = normalizer.process_events(raws)

        assert [e.identity for e in events] == ["good"]
        assert normalizer.malformed_count == 2

    def test_duplicate_identity_last_occurrence_wins(self):
        normalizer = EventNormalizer()
        raws = [
            make_raw("dup", summary="First"),
            make_raw("other"),
            make_raw("dup", summary="Second"),
        ]

        events = normalizer.process_events(raws)

        assert [e.identity for e in events] == ["dup", "other"]
        assert events[0].title == "Second"
        assert normalizer.duplicate_count == 1

    def test_counters_reset_between_calls(self):
        normalizer = EventNormalizer()
        normalizer.process_events([make_raw(None)])

        normalizer.process_events([make_raw("ok")])

        assert normalizer.malformed_count == 0
