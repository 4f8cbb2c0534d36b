"""
Meta-session grouping.

Imports are grouped into "meta-sessions" so that recordings separated by up
to the merge gap (one hour by default) are reconciled together, even when
only part of the group overlaps an existing day.
"""

import logging

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from functools import reduce

from nocturne.constants import DEFAULT_MERGE_GAP
from nocturne.models.unified import ImportBatch

logger = logging.getLogger(__name__)


@dataclass
class MetaSession:
    """A run of temporally-adjacent import batches."""

    start_time: datetime
    end_time: datetime
    items: list[ImportBatch] = field(default_factory=list)

    @classmethod
    def from_batch(cls, batch: ImportBatch) -> "MetaSession":
        return cls(start_time=batch.start_time, end_time=batch.end_time, items=[batch])

    def can_merge(self, batch: ImportBatch, merge_gap: timedelta) -> bool:
        """
        Return True if ``batch`` is close enough to join this group.

        Batches arrive sorted by start time, so only the gap after the
        group's current end needs checking.
        """
        return batch.start_time - self.end_time <= merge_gap

    def add(self, batch: ImportBatch) -> None:
        self.items.append(batch)
        self.start_time = min(self.start_time, batch.start_time)
        self.end_time = max(self.end_time, batch.end_time)

    def __len__(self) -> int:
        return len(self.items)


def _fold_batch(
    groups: list[MetaSession], batch: ImportBatch, merge_gap: timedelta
) -> list[MetaSession]:
    current = groups[-1] if groups else None
    if current is None or not current.can_merge(batch, merge_gap):
        groups.append(MetaSession.from_batch(batch))
    else:
        current.add(batch)
    return groups


def group_batches(
    batches: list[ImportBatch], merge_gap: timedelta = DEFAULT_MERGE_GAP
) -> list[MetaSession]:
    """
    Group import batches into meta-sessions.

    Batches are stably sorted by start time (identical start times keep
    their input order) and folded left into groups: a batch starting more
    than ``merge_gap`` after the current group's end opens a new group.

    Args:
        batches: Decoded import batches, in any order
        merge_gap: Maximum gap between a group's end and the next batch

    Returns:
        Meta-sessions ordered by start time
    """
    ordered = sorted(batches, key=lambda b: b.start_time)
    groups = reduce(
        lambda acc, batch: _fold_batch(acc, batch, merge_gap),
        ordered,
        [],
    )
    logger.debug(
        f"Grouped {len(ordered)} import batches into {len(groups)} meta-sessions"
    )
    return groups
