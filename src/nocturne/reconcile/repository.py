"""Persistent store interface consumed by the reconciliation engine."""

from collections.abc import Generator
from contextlib import contextmanager
from datetime import date
from typing import Protocol, TypeVar

from nocturne.models.day import DailyReport


class DayRepository(Protocol):
    """
    Load/save access to daily reports plus transaction primitives.

    The engine never queries the store for anything else.
    """

    def load_day(self, profile_id: int, day_date: date) -> DailyReport | None: ...

    def save_day(self, profile_id: int, day: DailyReport) -> None: ...

    def get_most_recent_stored_date(self, profile_id: int) -> date | None: ...

    def begin(self) -> None: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...


R = TypeVar("R", bound=DayRepository)


@contextmanager
def transaction(repository: R) -> Generator[R]:
    """
    Provide a transactional scope around repository operations.

    Usage:
        with transaction(repository) as repo:
            repo.save_day(profile_id, day)
            # Commits on success, rolls back on any error

    Yields:
        The repository, inside an open transaction.
    """
    repository.begin()
    try:
        yield repository
        repository.commit()
    except BaseException:
        repository.rollback()
        raise
