"""
nocturne: multi-source sleep therapy import reconciliation

Merges pulse-oximetry exports and health-API sleep data into the daily
timeline recorded by a CPAP device, without duplicating sessions.
"""

from nocturne.reconcile.coordinator import ImportCoordinator, ImportResult
from nocturne.reconcile.grouping import MetaSession, group_batches

__all__ = [
    "ImportCoordinator",
    "ImportResult",
    "MetaSession",
    "group_batches",
]
