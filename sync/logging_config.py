"""Logging setup shared by the CLI and the Lambda handler."""
import json
import logging

# Attributes every LogRecord carries; anything else came in through `extra`
_RECORD_ATTRIBUTES = set(vars(logging.LogRecord('', 0, '', 0, '', None, None))) | {
    'message', 'asctime', 'taskName'
}


class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        for key, value in vars(record).items():
            if key not in _RECORD_ATTRIBUTES and key not in log_data:
                log_data[key] = value

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(log_level: str = 'INFO', log_format: str = 'json') -> None:
    """
    Configure the root logger.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: 'json' for structured output, 'text' for plain lines
    """
    root_logger = logging.getLogger()

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    if log_format == 'text':
        handler.setFormatter(
            logging.Formatter('%(asctime)s [%(levelname)s] %(name)s: %(message)s')
        )
    else:
        handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    # Keep HTTP client chatter out of INFO output
    for noisy in ('urllib3', 'botocore', 'boto3'):
        logging.getLogger(noisy).setLevel(logging.WARNING)
