"""Action executor applying sync decisions to a destination store."""
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Tuple

from processor.errors import ApplyError
from processor.models import ApplyFailure, SyncAction, SyncDecision, SyncSummary

logger = logging.getLogger(__name__)

APPLIED = 'applied'
FAILED = 'failed'
CANCELLED = 'cancelled'


class ActionExecutor:
    """
    Apply create/update decisions, each one isolated from the others.

    The store must provide validate_row(event), create_row(event) -> handle
    and update_row(handle, event). Validation runs in dry-run mode too, so a
    dry run reports the failures a live run would catch before writing.
    """

    def __init__(
        self,
        store,
        dry_run: bool = False,
        max_workers: int = 1,
        cancel_event: Optional[threading.Event] = None
    ):
        """
        Initialize the executor.

        Args:
            store: Destination store client
            dry_run: Only log intended writes
            max_workers: Maximum concurrent writes (1 runs sequentially)
            cancel_event: When set, decisions not yet started are skipped
        """
        if max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {max_workers}")
        self.store = store
        self.dry_run = dry_run
        self.max_workers = max_workers
        self.cancel_event = cancel_event or threading.Event()

    def execute(self, decisions: List[SyncDecision]) -> SyncSummary:
        """
        Apply all decisions and summarize the outcome.

        Args:
            decisions: Decisions from the diff engine

        Returns:
            SyncSummary with per-action counts and failures
        """
        summary = SyncSummary()
        writes = []
        for decision in decisions:
            if decision.action is SyncAction.SKIP:
                summary.skipped += 1
                logger.debug(f"Unchanged event {decision.identity}")
            else:
                writes.append(decision)

        if self.max_workers == 1 or len(writes) <= 1:
            outcomes = [self._apply(decision) for decision in writes]
        else:
            with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                outcomes = list(pool.map(self._apply, writes))

        for decision, (status, error) in zip(writes, outcomes):
            if status == CANCELLED:
                summary.cancelled += 1
            elif status == FAILED:
                summary.failed += 1
                summary.failures.append(
                    ApplyFailure(decision.identity, decision.action, error)
                )
            elif decision.action is SyncAction.CREATE:
                summary.created += 1
            else:
                summary.updated += 1

        prefix = '[DRY RUN] ' if self.dry_run else ''
        logger.info(
            f"{prefix}Applied decisions: {summary.created} created, "
            f"{summary.updated} updated, {summary.skipped} skipped, "
            f"{summary.failed} failed, {summary.cancelled} cancelled"
        )
        return summary

    def _apply(self, decision: SyncDecision) -> Tuple[str, Optional[str]]:
        """
        Apply a single decision.

        Returns:
            Tuple of (status, error message)
        """
        if self.cancel_event.is_set():
            logger.info(f"Cancelled before {decision.action.value} of {decision.identity}")
            return CANCELLED, None

        event = decision.event
        try:
            self.store.validate_row(event)
            if self.dry_run:
                logger.info(
                    f"[DRY RUN] Would {decision.action.value.upper()} event "
                    f"{event.identity}: {event.title}"
                )
            elif decision.action is SyncAction.CREATE:
                logger.info(f"Creating event {event.identity}: {event.title}")
                handle = self.store.create_row(event)
                logger.debug(f"Created row {handle} for {event.identity}")
            else:
                logger.info(f"Updating event {event.identity}: {event.title}")
                self.store.update_row(decision.handle, event)
        except ApplyError as e:
            logger.error(f"Failed to {decision.action.value} event {event.identity}: {e}")
            return FAILED, str(e)
        except Exception as e:
            logger.error(
                f"Unexpected error during {decision.action.value} of event "
                f"{event.identity}: {e}",
                exc_info=True
            )
            return FAILED, f"{type(e).__name__}: {e}"

        return APPLIED, None
