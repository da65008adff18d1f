"""Command-line entry point: sync a public ICS feed into a database."""
import argparse
import json
import logging
import signal
import threading
from pathlib import Path
from typing import List, Optional

from processor.errors import ConfigError, PassError
from sync.config import load_settings
from sync.logging_config import setup_logging
from sync.orchestrator import run_once
from sync.scheduler import SyncScheduler

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog='notion-ics',
        description="One-way synchronization from a public ICS calendar to a database"
    )
    parser.add_argument("--config", type=Path, default=None,
                        help="TOML settings file (default: ./settings.toml)")
    parser.add_argument("--dry-run", action="store_true",
                        help="Show actions without modifying the database")
    parser.add_argument("--schedule", default=None, metavar="CRON",
                        help="Run on a crontab schedule, e.g. '*/15 * * * *', instead of once")
    parser.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING or ERROR")
    parser.add_argument("--log-format", choices=("json", "text"), default="text")
    return parser.parse_args(argv)


def _install_stop_handlers(cancel_event: threading.Event) -> dict:
    """Route SIGINT and SIGTERM to the cancel event; returns the previous handlers."""
    def request_stop(signum, frame):
        logger.info("Shutdown requested, finishing in-flight writes")
        cancel_event.set()

    previous = {}
    for signum in (signal.SIGINT, signal.SIGTERM):
        previous[signum] = signal.getsignal(signum)
        signal.signal(signum, request_stop)
    return previous


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(args.log_level or 'INFO', args.log_format)

    try:
        settings = load_settings(args.config)
    except ConfigError as e:
        logger.error(f"Invalid configuration: {e}")
        return EXIT_CONFIG

    if args.log_level is None:
        setup_logging(settings.log_level, args.log_format)

    cron = args.schedule or settings.schedule
    if cron:
        try:
            scheduler = SyncScheduler(settings, cron, dry_run=args.dry_run)
        except ConfigError as e:
            logger.error(str(e))
            return EXIT_CONFIG
        scheduler.start()
        return EXIT_OK

    cancel_event = threading.Event()
    previous_handlers = _install_stop_handlers(cancel_event)
    try:
        summary = run_once(settings, dry_run=args.dry_run, cancel_event=cancel_event)
    except PassError as e:
        logger.error(f"Sync failed: {e}")
        return EXIT_FAILED
    finally:
        for signum, handler in previous_handlers.items():
            if handler is not None:
                signal.signal(signum, handler)

    print(json.dumps(summary.to_dict(), indent=2))
    return EXIT_OK if summary.ok else EXIT_FAILED


if __name__ == "__main__":
    raise SystemExit(main())
