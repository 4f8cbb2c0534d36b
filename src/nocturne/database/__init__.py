"""Database layer for nocturne."""

from nocturne.database.repository import SqlDayRepository

__all__ = [
    "SqlDayRepository",
]
