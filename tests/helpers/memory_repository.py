"""In-memory DayRepository for exercising the engine without a database."""

from datetime import date

from nocturne.exceptions import StoreFailure
from nocturne.models.day import DailyReport


class MemoryDayRepository:
    """
    Stores daily reports in a dict, with snapshot-based transactions.

    Records every save so tests can assert on how many writes a run made.
    ``fail_on`` makes save_day raise StoreFailure for that date.
    """

    def __init__(self, days: list[DailyReport] | None = None):
        self._days: dict[tuple[int, date], DailyReport] = {}
        self._snapshot: dict[tuple[int, date], DailyReport] | None = None
        self.saves: list[date] = []
        self.fail_on: date | None = None
        self.commits = 0
        self.rollbacks = 0
        for day in days or []:
            self.put(1, day)

    def put(self, profile_id: int, day: DailyReport) -> None:
        self._days[(profile_id, day.report_date)] = day.model_copy(deep=True)

    def get(self, profile_id: int, day_date: date) -> DailyReport | None:
        return self._days.get((profile_id, day_date))

    def begin(self) -> None:
        if self._snapshot is not None:
            raise StoreFailure("A transaction is already active")
        self._snapshot = {k: v.model_copy(deep=True) for k, v in self._days.items()}

    def commit(self) -> None:
        self._snapshot = None
        self.commits += 1

    def rollback(self) -> None:
        if self._snapshot is not None:
            self._days = self._snapshot
            self._snapshot = None
        self.rollbacks += 1

    def load_day(self, profile_id: int, day_date: date) -> DailyReport | None:
        day = self._days.get((profile_id, day_date))
        return day.model_copy(deep=True) if day is not None else None

    def save_day(self, profile_id: int, day: DailyReport) -> None:
        if day.report_date == self.fail_on:
            raise StoreFailure(f"Simulated failure saving {day.report_date}")
        self.saves.append(day.report_date)
        self.put(profile_id, day)

    def get_most_recent_stored_date(self, profile_id: int) -> date | None:
        dates = [
            d
            for (pid, d), day in self._days.items()
            if pid == profile_id and day.sessions
        ]
        return max(dates) if dates else None
