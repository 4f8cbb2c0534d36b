"""
Import reconciliation engine.

Groups imported batches into meta-sessions, merges them into existing
daily reports without duplicating sessions, and commits the whole import
inside a single transaction.
"""

from nocturne.reconcile.coordinator import ImportCoordinator, ImportResult
from nocturne.reconcile.day_reconciler import DayMergeResult, DayReconciler
from nocturne.reconcile.grouping import MetaSession, group_batches
from nocturne.reconcile.matcher import can_merge_with, is_duplicate, times_overlap
from nocturne.reconcile.splicer import (
    FillerPolicy,
    SpliceDirection,
    SpliceResult,
    splice_signal,
)

__all__ = [
    "DayMergeResult",
    "DayReconciler",
    "FillerPolicy",
    "ImportCoordinator",
    "ImportResult",
    "MetaSession",
    "SpliceDirection",
    "SpliceResult",
    "can_merge_with",
    "group_batches",
    "is_duplicate",
    "splice_signal",
    "times_overlap",
]
