"""Data models for calendar reconciliation."""
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import List, Optional, Union

DateValue = Union[date, datetime]


@dataclass
class RawEvent:
    """Event as read from the calendar feed."""
    uid: Optional[str]
    summary: Optional[str]
    start: Optional[DateValue]
    end: Optional[DateValue]
    location: Optional[str] = None


@dataclass(frozen=True)
class NormalizedEvent:
    """Event in the shape written to the destination."""
    identity: str
    title: str
    start: DateValue
    end: Optional[DateValue]
    location: Optional[str]

    @property
    def all_day(self) -> bool:
        return not isinstance(self.start, datetime)


@dataclass(frozen=True)
class DestinationRow:
    """Existing row as listed from the destination store."""
    handle: str
    identity: Optional[str]
    title: str
    start: Optional[DateValue]
    end: Optional[DateValue]
    location: Optional[str]


@dataclass(frozen=True)
class DuplicateIdentity:
    """Two destination rows resolving to the same identity."""
    identity: str
    kept_handle: str
    ignored_handle: str


class SyncAction(str, Enum):
    CREATE = 'create'
    UPDATE = 'update'
    SKIP = 'skip'


@dataclass(frozen=True)
class SyncDecision:
    """What to do with one normalized event."""
    action: SyncAction
    event: NormalizedEvent
    handle: Optional[str] = None

    @classmethod
    def create(cls, event: NormalizedEvent) -> 'SyncDecision':
        return cls(SyncAction.CREATE, event)

    @classmethod
    def update(cls, handle: str, event: NormalizedEvent) -> 'SyncDecision':
        return cls(SyncAction.UPDATE, event, handle)

    @classmethod
    def skip(cls, handle: str, event: NormalizedEvent) -> 'SyncDecision':
        return cls(SyncAction.SKIP, event, handle)

    @property
    def identity(self) -> str:
        return self.event.identity


@dataclass(frozen=True)
class ApplyFailure:
    """A create or update that could not be applied."""
    identity: str
    action: SyncAction
    error: str


@dataclass
class SyncSummary:
    """Result of one synchronization pass."""
    created: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    failures: List[ApplyFailure] = field(default_factory=list)
    cancelled: int = 0
    malformed: int = 0
    duplicate_identities: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.failed == 0 and self.cancelled == 0

    def to_dict(self) -> dict:
        return {
            'created': self.created,
            'updated': self.updated,
            'skipped': self.skipped,
            'failed': self.failed,
            'cancelled': self.cancelled,
            'malformed': self.malformed,
            'duplicate_identities': list(self.duplicate_identities),
            'failures': [
                {
                    'identity': failure.identity,
                    'action': failure.action.value,
                    'error': failure.error,
                }
                for failure in self.failures
            ],
        }
