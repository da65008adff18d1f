"""Recurring execution of sync passes on a cron schedule."""
import logging
import signal
import threading
from datetime import datetime

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger

from processor.errors import ConfigError, PassError
from sync.config import Settings
from sync.orchestrator import run_once

logger = logging.getLogger(__name__)


class SyncScheduler:
    """Runs one pass per cron tick until interrupted."""

    def __init__(self, settings: Settings, cron: str, dry_run: bool = False, runner=run_once):
        """
        Initialize the scheduler.

        Args:
            settings: Loaded configuration
            cron: Five-field crontab expression, e.g. '*/15 * * * *'
            dry_run: Run every pass in dry-run mode
            runner: Callable running a single pass

        Raises:
            ConfigError: If the cron expression is invalid
        """
        self.settings = settings
        self.dry_run = dry_run
        self.runner = runner
        self.cancel_event = threading.Event()
        try:
            self.trigger = CronTrigger.from_crontab(cron, timezone=settings.tzinfo)
        except ValueError as e:
            raise ConfigError(f"Invalid schedule '{cron}': {e}") from e
        self.scheduler = BlockingScheduler(timezone=settings.tzinfo)

    def run_pass(self) -> None:
        """Run one pass; failures are logged and left for the next tick."""
        if self.cancel_event.is_set():
            return
        try:
            summary = self.runner(
                self.settings,
                self.dry_run,
                cancel_event=self.cancel_event
            )
        except PassError as e:
            logger.error(f"Sync pass failed, will retry on next schedule: {e}")
            return
        except Exception as e:
            logger.error(f"Unexpected error during sync pass: {e}", exc_info=True)
            return

        if summary.failures:
            for failure in summary.failures:
                logger.warning(
                    f"Could not {failure.action.value} event {failure.identity}: {failure.error}"
                )

    def stop(self, signum=None, frame=None) -> None:
        """Finish in-flight writes, skip the rest and stop scheduling."""
        logger.info("Shutdown requested, finishing in-flight writes")
        self.cancel_event.set()
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)

    def start(self, run_immediately: bool = True) -> None:
        """Block running passes until SIGINT or SIGTERM."""
        job_options = {}
        if run_immediately:
            job_options['next_run_time'] = datetime.now(self.settings.tzinfo)

        self.scheduler.add_job(
            self.run_pass,
            self.trigger,
            id='calendar_sync',
            max_instances=1,
            coalesce=True,
            **job_options
        )

        signal.signal(signal.SIGINT, self.stop)
        signal.signal(signal.SIGTERM, self.stop)

        logger.info(f"Scheduler started with trigger {self.trigger}")
        self.scheduler.start()
        logger.info("Scheduler stopped")
