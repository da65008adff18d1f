"""Diff engine deciding which destination writes a pass needs."""
import logging
from typing import Iterable, List, Optional

from processor.dates import normalize_value
from processor.models import (
    DestinationRow,
    NormalizedEvent,
    SyncAction,
    SyncDecision,
)
from processor.row_index import RowIndex

logger = logging.getLogger(__name__)


def diff_events(
    events: Iterable[NormalizedEvent],
    index: RowIndex,
    compare_location: bool = True
) -> List[SyncDecision]:
    """
    Classify each event as create, update or skip.

    Decisions come out in the order of the input events. Indexed rows with no
    matching event get no decision at all, so nothing is ever deleted.

    Args:
        events: Normalized in-window events
        index: Identity index of the destination rows
        compare_location: False when the destination has no location field

    Returns:
        One SyncDecision per event
    """
    decisions = []

    for event in events:
        row = index.get(event.identity)
        if row is None:
            decisions.append(SyncDecision.create(event))
        elif row_matches(event, row, compare_location):
            decisions.append(SyncDecision.skip(row.handle, event))
        else:
            decisions.append(SyncDecision.update(row.handle, event))

    counts = {action: 0 for action in SyncAction}
    for decision in decisions:
        counts[decision.action] += 1
    logger.info(
        f"Sync plan: {counts[SyncAction.CREATE]} to create, "
        f"{counts[SyncAction.UPDATE]} to update, "
        f"{counts[SyncAction.SKIP]} unchanged"
    )
    return decisions


def row_matches(
    event: NormalizedEvent,
    row: DestinationRow,
    compare_location: bool = True
) -> bool:
    """
    Compare an event with its destination row field by field.

    Args:
        event: Normalized event
        row: Indexed destination row
        compare_location: Whether the location field takes part

    Returns:
        True only if every compared field is equal
    """
    if (event.title or '') != (row.title or ''):
        return False
    if normalize_value(event.start) != normalize_value(row.start):
        return False
    if normalize_value(event.end) != normalize_value(row.end):
        return False
    if compare_location and _blank_to_none(event.location) != _blank_to_none(row.location):
        return False
    return True


def _blank_to_none(text: Optional[str]) -> Optional[str]:
    if text is None or not text.strip():
        return None
    return text
