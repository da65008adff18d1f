"""Event normalizer mapping feed events to the destination's shape."""
import logging
from datetime import timedelta, tzinfo
from typing import Dict, List, Optional

from processor.dates import UTC, is_all_day, to_utc
from processor.errors import MalformedEvent
from processor.models import DateValue, NormalizedEvent, RawEvent

logger = logging.getLogger(__name__)


class EventNormalizer:
    """Normalizer for validating feed events and deriving their identity."""

    def __init__(self, tz: tzinfo = UTC):
        """
        Initialize the normalizer.

        Args:
            tz: Timezone used to interpret floating (naive) feed times
        """
        self.tz = tz
        self.malformed_count = 0
        self.duplicate_count = 0

    def process_events(self, raw_events: List[RawEvent]) -> List[NormalizedEvent]:
        """
        Normalize a sequence of raw events.

        Malformed events are dropped with a warning. When several events share
        an identity the last one wins, keeping the position of the first.

        Args:
            raw_events: Raw events from the feed

        Returns:
            List of NormalizedEvent objects with unique identities
        """
        self.malformed_count = 0
        self.duplicate_count = 0
        by_identity: Dict[str, NormalizedEvent] = {}

        for raw in raw_events:
            try:
                event = self.normalize(raw)
            except MalformedEvent as e:
                self.malformed_count += 1
                logger.warning(f"Dropping malformed event: {e}")
                continue

            if event.identity in by_identity:
                self.duplicate_count += 1
                logger.warning(
                    f"Feed contains identity '{event.identity}' more than once; "
                    f"keeping the last occurrence"
                )
            by_identity[event.identity] = event

        processed = list(by_identity.values())
        logger.info(
            f"Normalized {len(processed)} events out of {len(raw_events)} "
            f"({self.malformed_count} malformed)"
        )
        return processed

    def normalize(self, raw: RawEvent) -> NormalizedEvent:
        """
        Normalize a single raw event.

        Args:
            raw: Raw event from the feed

        Returns:
            NormalizedEvent

        Raises:
            MalformedEvent: If the uid or start is missing, or the start and
                end mix all-day and timed values
        """
        identity = (raw.uid or '').strip()
        if not identity:
            raise MalformedEvent(f"event '{raw.summary}' has no UID")
        if raw.start is None:
            raise MalformedEvent(f"event {identity} has no start", uid=identity)

        if is_all_day(raw.start):
            start, end = raw.start, self._all_day_end(identity, raw)
        else:
            start, end = to_utc(raw.start, self.tz), self._timed_end(identity, raw)

        location = raw.location if raw.location and raw.location.strip() else None

        return NormalizedEvent(
            identity=identity,
            title=raw.summary or '',
            start=start,
            end=end,
            location=location
        )

    def _all_day_end(self, identity: str, raw: RawEvent) -> Optional[DateValue]:
        # Feed end dates are exclusive, destination ranges are inclusive
        if raw.end is None:
            return None
        if not is_all_day(raw.end):
            raise MalformedEvent(
                f"event {identity} starts on a date but ends at a time", uid=identity
            )
        last_day = raw.end - timedelta(days=1)
        if last_day <= raw.start:
            return None
        return last_day

    def _timed_end(self, identity: str, raw: RawEvent) -> Optional[DateValue]:
        if raw.end is None:
            return None
        if is_all_day(raw.end):
            raise MalformedEvent(
                f"event {identity} starts at a time but ends on a date", uid=identity
            )
        return to_utc(raw.end, self.tz)
