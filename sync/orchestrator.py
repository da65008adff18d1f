"""Single synchronization pass from the calendar feed to the destination."""
import logging
import threading
import time
from datetime import datetime
from typing import Optional

from feed.ics_feed import IcsFeedFetcher
from processor.action_executor import ActionExecutor
from processor.diff_engine import diff_events
from processor.errors import FetchError, ListError
from processor.event_processor import EventNormalizer
from processor.models import SyncSummary
from processor.row_index import build_row_index
from processor.window import filter_window
from storage.dynamodb_manager import DynamoDBManager
from storage.notion_client import NotionDatabaseClient
from sync.config import Settings

logger = logging.getLogger(__name__)


def build_fetcher(settings: Settings) -> IcsFeedFetcher:
    return IcsFeedFetcher(timeout=settings.request_timeout, max_retries=settings.max_retries)


def build_store(settings: Settings):
    """Create the destination store client selected by the settings."""
    if settings.backend == 'dynamodb':
        return DynamoDBManager(
            table_name=settings.dynamodb_table,
            id_attribute=settings.id_property,
            date_attribute=settings.date_property,
            location_attribute=settings.location_property,
            title_attribute=settings.title_property or 'title',
            key_attribute=settings.dynamodb_key
        )
    return NotionDatabaseClient(
        token=settings.notion_token,
        database_name=settings.notion_calendar,
        id_property=settings.id_property,
        date_property=settings.date_property,
        location_property=settings.location_property,
        title_property=settings.title_property,
        timeout=settings.request_timeout,
        max_retries=settings.max_retries
    )


def run_once(
    settings: Settings,
    dry_run: bool = False,
    *,
    fetcher=None,
    store=None,
    now: Optional[datetime] = None,
    cancel_event: Optional[threading.Event] = None
) -> SyncSummary:
    """
    Run one synchronization pass.

    Every pass fetches the feed and lists the destination afresh; nothing is
    carried over from earlier passes.

    Args:
        settings: Loaded configuration
        dry_run: Compute and report decisions without writing
        fetcher: Feed fetcher (built from settings when omitted)
        store: Destination store client (built from settings when omitted)
        now: Reference instant for the time window
        cancel_event: Set to stop starting new writes

    Returns:
        SyncSummary of the pass

    Raises:
        FetchError: If the feed cannot be read
        ListError: If the destination rows cannot be listed
    """
    start_time = time.time()
    fetcher = fetcher or build_fetcher(settings)
    store = store or build_store(settings)
    tz = settings.tzinfo

    logger.info("Fetching events from calendar")
    try:
        raw_events = fetcher.fetch(settings.ical_url)
    except FetchError:
        raise
    except Exception as e:
        raise FetchError(f"Failed to fetch calendar feed: {e}") from e

    missing_start = sum(1 for event in raw_events if event.start is None)
    in_window = filter_window(raw_events, settings.day_past, settings.day_future, now=now, tz=tz)

    logger.info("Normalizing events")
    normalizer = EventNormalizer(tz=tz)
    events = normalizer.process_events(in_window)

    logger.info("Listing destination rows")
    try:
        rows = store.list_rows()
    except ListError:
        raise
    except Exception as e:
        raise ListError(f"Failed to list destination rows: {e}") from e

    index = build_row_index(rows)
    decisions = diff_events(events, index, compare_location=store.has_location)

    executor = ActionExecutor(
        store,
        dry_run=dry_run,
        max_workers=settings.max_concurrency,
        cancel_event=cancel_event
    )
    summary = executor.execute(decisions)
    summary.malformed = normalizer.malformed_count + missing_start
    summary.duplicate_identities = [duplicate.identity for duplicate in index.duplicates]

    logger.info(
        "Sync pass completed",
        extra={
            'dry_run': dry_run,
            'raw_events_fetched': len(raw_events),
            'events_in_window': len(events),
            'duration_seconds': round(time.time() - start_time, 2),
            'events_created': summary.created,
            'events_updated': summary.updated,
            'events_skipped': summary.skipped,
            'events_failed': summary.failed,
            'events_cancelled': summary.cancelled
        }
    )
    return summary
