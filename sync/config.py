"""Settings loaded from a TOML file and NOTION_ICS_* environment variables."""
import logging
import os
import tomllib
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Mapping, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from processor.errors import ConfigError

logger = logging.getLogger(__name__)

ENV_PREFIX = 'NOTION_ICS_'
DEFAULT_CONFIG = Path('settings.toml')
BACKENDS = ('notion', 'dynamodb')


@dataclass
class Settings:
    """Configuration for a synchronization pass."""
    ical_url: str
    id_property: str
    date_property: str
    day_past: int = 30
    day_future: int = 90
    backend: str = 'notion'
    notion_token: Optional[str] = None
    notion_calendar: Optional[str] = None
    location_property: Optional[str] = None
    title_property: Optional[str] = None
    dynamodb_table: Optional[str] = None
    dynamodb_key: str = 'row_id'
    timezone: str = 'UTC'
    max_concurrency: int = 3
    request_timeout: int = 30
    max_retries: int = 3
    schedule: Optional[str] = None
    log_level: str = 'INFO'

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    def validate(self) -> None:
        """
        Check cross-field constraints.

        Raises:
            ConfigError: If a value is out of range or a backend setting is missing
        """
        if self.backend not in BACKENDS:
            raise ConfigError(f"backend must be one of {', '.join(BACKENDS)}, got '{self.backend}'")
        if self.backend == 'notion' and not (self.notion_token and self.notion_calendar):
            raise ConfigError("notion_token and notion_calendar are required for the notion backend")
        if self.backend == 'dynamodb' and not self.dynamodb_table:
            raise ConfigError("dynamodb_table is required for the dynamodb backend")
        if self.day_past < 0 or self.day_future < 0:
            raise ConfigError("day_past and day_future must be non-negative")
        if self.max_concurrency < 1:
            raise ConfigError("max_concurrency must be at least 1")
        if self.max_retries < 1:
            raise ConfigError("max_retries must be at least 1")
        try:
            self.tzinfo
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ConfigError(f"Unknown timezone '{self.timezone}'") from e


def load_settings(
    path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None
) -> Settings:
    """
    Load settings from a TOML file overlaid with environment variables.

    The file is optional unless a path is given explicitly. Each setting can
    be overridden by NOTION_ICS_<NAME>, e.g. NOTION_ICS_NOTION_TOKEN.

    Args:
        path: TOML file (defaults to NOTION_ICS_CONFIG or ./settings.toml)
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Validated Settings

    Raises:
        ConfigError: If the file is unreadable or a setting is missing or invalid
    """
    environ = os.environ if environ is None else environ
    explicit = path is not None or f'{ENV_PREFIX}CONFIG' in environ
    path = Path(path or environ.get(f'{ENV_PREFIX}CONFIG', DEFAULT_CONFIG))

    values = {}
    if path.exists():
        logger.info(f"Reading configuration from {path}")
        try:
            with open(path, 'rb') as f:
                values.update(tomllib.load(f))
        except (OSError, tomllib.TOMLDecodeError) as e:
            raise ConfigError(f"Cannot read configuration file {path}: {e}") from e
    elif explicit:
        raise ConfigError(f"Configuration file {path} does not exist")

    known = {f.name: f for f in fields(Settings)}
    for name in known:
        env_value = environ.get(ENV_PREFIX + name.upper())
        if env_value is not None:
            values[name] = env_value

    unknown = set(values) - set(known)
    if unknown:
        logger.warning(f"Ignoring unknown settings: {', '.join(sorted(unknown))}")

    kwargs = {}
    for name, value in values.items():
        if name not in known:
            continue
        kwargs[name] = _coerce(name, value, known[name].type)

    missing = [
        name for name in ('ical_url', 'id_property', 'date_property')
        if not kwargs.get(name)
    ]
    if missing:
        raise ConfigError(f"Missing required settings: {', '.join(missing)}")

    settings = Settings(**kwargs)
    settings.validate()
    return settings


def _coerce(name: str, value, field_type):
    if field_type is int:
        try:
            return int(value)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Setting {name} must be an integer, got {value!r}") from e
    if value is None or value == '':
        return None if field_type is not str else ''
    return str(value)
