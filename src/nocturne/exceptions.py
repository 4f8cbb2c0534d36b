"""Exception hierarchy for nocturne."""

from datetime import date
from pathlib import Path


class NocturneError(Exception):
    """Base exception for all nocturne errors."""


class DecodeFailure(NocturneError):
    """
    A single input could not be decoded into an ImportBatch.

    Non-fatal: the caller skips the input and continues the run.
    """

    def __init__(self, message: str, source: str | Path | None = None):
        super().__init__(message)
        self.source = str(source) if source is not None else None


class StoreFailure(NocturneError):
    """A load, save or transaction operation against the store failed."""

    def __init__(self, message: str, day_date: date | None = None):
        super().__init__(message)
        self.day_date = day_date


class InvariantViolation(NocturneError):
    """Internal consistency check failed; indicates a programming error."""


class ImportCancelled(NocturneError):
    """The caller cancelled an import between two days."""
