"""Domain models shared by decoders, the reconciliation engine and storage."""

from nocturne.models.day import DailyReport
from nocturne.models.unified import (
    ImportBatch,
    ReportedEvent,
    Session,
    Signal,
    SignalStatistics,
)

__all__ = [
    "DailyReport",
    "ImportBatch",
    "ReportedEvent",
    "Session",
    "Signal",
    "SignalStatistics",
]
