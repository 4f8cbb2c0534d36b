"""
Session matching: overlap and duplicate detection.

All intervals are half-open ``[start, end)``: two sessions that merely touch
(one ends exactly when the other starts) do not overlap.
"""

from collections.abc import Callable, Iterable
from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol, TypeVar

from nocturne.models.day import DailyReport
from nocturne.models.unified import Session

if TYPE_CHECKING:
    from nocturne.reconcile.grouping import MetaSession

T = TypeVar("T")


class TimeRange(Protocol):
    """Anything with a start and end time."""

    @property
    def start_time(self) -> datetime: ...

    @property
    def end_time(self) -> datetime: ...


def times_overlap(a: TimeRange, b: TimeRange) -> bool:
    """Return True if the half-open intervals of ``a`` and ``b`` intersect."""
    return a.start_time < b.end_time and b.start_time < a.end_time


def is_duplicate(existing: Session, incoming: Session) -> bool:
    """
    Decide whether two sessions represent the same real-world recording.

    Sessions from the same kind of source that overlap in time are treated
    as the same recording, no matter which file they were decoded from.
    """
    return (
        times_overlap(existing, incoming)
        and existing.source_type == incoming.source_type
    )


def has_duplicate(day: DailyReport, incoming: Session) -> bool:
    """Return True if the day already holds an equivalent session."""
    return any(is_duplicate(existing, incoming) for existing in day.sessions)


def can_merge_with(meta_session: "MetaSession", day: DailyReport) -> bool:
    """
    Decide whether a meta-session is worth inspecting for a day.

    A day without sessions has no recording range and never matches.
    """
    start = day.recording_start_time
    end = day.recording_end_time
    if start is None or end is None:
        return False
    return meta_session.start_time < end and start < meta_session.end_time


def find_first(
    items: Iterable[T],
    predicate: Callable[[T], bool],
    key: Callable[[T], Any],
) -> T | None:
    """
    Return the matching item with the smallest key.

    Ties go to the item encountered first.
    """
    best: T | None = None
    for item in items:
        if not predicate(item):
            continue
        if best is None or key(item) < key(best):
            best = item
    return best


def find_last_by_key(
    items: Iterable[T],
    predicate: Callable[[T], bool],
    key: Callable[[T], Any],
) -> T | None:
    """
    Return the matching item with the largest key.

    Ties go to the item encountered first.
    """
    best: T | None = None
    for item in items:
        if not predicate(item):
            continue
        if best is None or key(item) > key(best):
            best = item
    return best
