"""Exceptions raised while synchronizing a calendar feed."""
from typing import Optional


class SyncError(Exception):
    """Base exception for calendar sync errors."""


class ConfigError(SyncError):
    """Configuration is missing or invalid."""


class MalformedEvent(SyncError):
    """A feed event lacks the fields needed to sync it."""

    def __init__(self, message: str, uid: Optional[str] = None):
        super().__init__(message)
        self.uid = uid


class ApplyError(SyncError):
    """A single create or update was rejected by the destination."""

    def __init__(self, message: str, identity: Optional[str] = None):
        super().__init__(message)
        self.identity = identity


class PassError(SyncError):
    """A failure that aborts the whole synchronization pass."""


class FetchError(PassError):
    """The calendar feed could not be fetched or parsed."""


class ListError(PassError):
    """The destination rows could not be listed."""
