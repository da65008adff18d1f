"""Index of destination rows keyed by identity."""
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from processor.models import DestinationRow, DuplicateIdentity

logger = logging.getLogger(__name__)


@dataclass
class RowIndex:
    """Identity to row mapping built once per pass."""
    rows: Dict[str, DestinationRow] = field(default_factory=dict)
    duplicates: List[DuplicateIdentity] = field(default_factory=list)
    unkeyed: int = 0

    def get(self, identity: str) -> Optional[DestinationRow]:
        return self.rows.get(identity)

    def __contains__(self, identity: str) -> bool:
        return identity in self.rows

    def __len__(self) -> int:
        return len(self.rows)


def build_row_index(rows: Iterable[DestinationRow]) -> RowIndex:
    """
    Build the identity index from a full destination listing.

    Rows without an identity are left out and so never touched. When two rows
    share an identity the first one listed is kept and the other is reported
    as a duplicate; nothing is repaired.

    Args:
        rows: Destination rows as listed by the store

    Returns:
        RowIndex
    """
    index = RowIndex()

    for row in rows:
        identity = (row.identity or '').strip()
        if not identity:
            index.unkeyed += 1
            continue

        kept = index.rows.get(identity)
        if kept is not None:
            duplicate = DuplicateIdentity(identity, kept.handle, row.handle)
            index.duplicates.append(duplicate)
            logger.warning(
                f"Destination rows {kept.handle} and {row.handle} share identity "
                f"'{identity}'; only {kept.handle} will be synced"
            )
            continue

        index.rows[identity] = row

    logger.info(
        f"Indexed {len(index.rows)} destination rows "
        f"({index.unkeyed} without identity, {len(index.duplicates)} duplicates)"
    )
    return index
