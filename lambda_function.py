"""AWS Lambda handler running one calendar sync pass per invocation."""
import json
import logging
import os
import time
from typing import Any, Dict

from processor.errors import ConfigError, FetchError, ListError
from sync.config import load_settings
from sync.logging_config import setup_logging
from sync.orchestrator import run_once


def _response(status_code: int, body: Dict[str, Any]) -> Dict[str, Any]:
    return {'statusCode': status_code, 'body': json.dumps(body)}


def _is_true(value: Any) -> bool:
    return str(value).lower() == 'true'


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Main Lambda handler function for the calendar sync.

    Args:
        event: EventBridge event payload; {"dry_run": true} forces a dry run
        context: Lambda context object

    Returns:
        Response dict with statusCode and summary statistics
    """
    setup_logging(os.environ.get('LOG_LEVEL', 'INFO'))
    logger = logging.getLogger(__name__)

    start_time = time.time()
    dry_run = _is_true((event or {}).get('dry_run')) or _is_true(
        os.environ.get('NOTION_ICS_DRY_RUN', 'false')
    )
    logger.info("Lambda execution started", extra={'dry_run': dry_run})

    def failure(status_code: int, message: str, error: Exception, **fields) -> Dict[str, Any]:
        duration = time.time() - start_time
        logger.error(
            f"{message}: {error}",
            extra={'error_type': type(error).__name__},
            exc_info=True
        )
        return _response(status_code, {
            'message': message,
            'error': str(error),
            'error_type': type(error).__name__,
            'duration_seconds': round(duration, 2),
            **fields
        })

    try:
        settings = load_settings()
    except ConfigError as e:
        return failure(500, 'Invalid configuration', e)

    try:
        summary = run_once(settings, dry_run=dry_run)
    except FetchError as e:
        return failure(502, 'Failed to fetch calendar events', e)
    except ListError as e:
        return failure(502, 'Failed to list destination rows', e,
                       note='No rows were modified')
    except Exception as e:
        return failure(500, 'Sync failed', e)

    duration = time.time() - start_time
    logger.info(
        "Lambda execution completed successfully",
        extra={
            'duration_seconds': round(duration, 2),
            'events_created': summary.created,
            'events_updated': summary.updated,
            'events_failed': summary.failed
        }
    )

    return _response(200, {
        'message': 'Sync completed successfully',
        'dry_run': dry_run,
        'statistics': {
            'events_created': summary.created,
            'events_updated': summary.updated,
            'events_skipped': summary.skipped,
            'events_failed': summary.failed,
            'events_cancelled': summary.cancelled,
            'events_malformed': summary.malformed,
            'duration_seconds': round(duration, 2)
        },
        'failures': summary.to_dict()['failures'],
        'duplicate_identities': summary.duplicate_identities
    })
