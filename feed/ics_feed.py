"""Fetcher for public iCalendar (ICS) feeds."""
import logging
import time
from typing import List, Optional

import requests
from icalendar import Calendar

from processor.errors import FetchError
from processor.models import RawEvent

logger = logging.getLogger(__name__)


class IcsFeedFetcher:
    """Fetcher turning an ICS feed into raw events."""

    def __init__(self, timeout: int = 30, max_retries: int = 3, base_delay: float = 1.0):
        """
        Initialize the feed fetcher.

        Args:
            timeout: HTTP request timeout in seconds (default: 30)
            max_retries: Attempts before giving up (default: 3)
            base_delay: First retry delay in seconds, doubled on each retry
        """
        self.timeout = timeout
        self.max_retries = max_retries
        self.base_delay = base_delay

    def fetch(self, url: str) -> List[RawEvent]:
        """
        Fetch and parse the feed at the given address.

        Args:
            url: http(s) or webcal address of the feed

        Returns:
            List of RawEvent objects, one per VEVENT

        Raises:
            FetchError: If the feed cannot be downloaded or parsed
        """
        logger.info(f"Fetching calendar feed {url}")
        try:
            content = self._fetch_feed(url)
        except requests.RequestException as e:
            raise FetchError(f"Failed to fetch calendar feed {url}: {e}") from e

        events = self.parse(content)
        logger.info(f"Fetched {len(events)} events from calendar feed")
        return events

    def _fetch_feed(self, url: str) -> bytes:
        """
        Download the feed with retry logic.

        Raises:
            requests.RequestException: If all retry attempts fail
        """
        if url.startswith('webcal://'):
            url = 'https://' + url[len('webcal://'):]

        for attempt in range(self.max_retries):
            try:
                logger.info(f"Fetching calendar (attempt {attempt + 1}/{self.max_retries})")
                response = requests.get(url, timeout=self.timeout)
                response.raise_for_status()
                return response.content

            except requests.RequestException as e:
                if attempt < self.max_retries - 1:
                    delay = self.base_delay * (2 ** attempt)
                    logger.warning(
                        f"Request failed (attempt {attempt + 1}/{self.max_retries}): {e}. "
                        f"Retrying in {delay} seconds..."
                    )
                    time.sleep(delay)
                else:
                    logger.error(
                        f"All {self.max_retries} retry attempts failed. Last error: {e}"
                    )
                    raise

    def parse(self, content: bytes) -> List[RawEvent]:
        """
        Parse ICS content into raw events.

        Args:
            content: Raw ICS document

        Returns:
            List of RawEvent objects in feed order

        Raises:
            FetchError: If the document is not a valid calendar
        """
        try:
            calendar = Calendar.from_ical(content)
        except ValueError as e:
            raise FetchError(f"Failed to parse calendar feed: {e}") from e

        return [self._parse_component(component) for component in calendar.walk('VEVENT')]

    def _parse_component(self, component) -> RawEvent:
        uid = component.get('uid')
        summary = component.get('summary')
        location = component.get('location')

        start = self._decoded(component, 'dtstart')
        end = self._decoded(component, 'dtend')
        if end is None and start is not None:
            duration = self._decoded(component, 'duration')
            if duration is not None:
                end = start + duration

        return RawEvent(
            uid=str(uid) if uid is not None else None,
            summary=str(summary) if summary is not None else None,
            start=start,
            end=end,
            location=str(location) if location is not None else None
        )

    def _decoded(self, component, name: str) -> Optional[object]:
        if name not in component:
            return None
        try:
            return component.decoded(name)
        except (ValueError, KeyError) as e:
            # Unknown TZID or unparsable value
            logger.warning(f"Ignoring unreadable {name.upper()} on {component.get('uid')}: {e}")
            return None
