"""
Import transaction coordinator.

Drives day-by-day reconciliation over the date range touched by an import,
inside one transaction: either every affected day is saved or none is.
"""

import logging

from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass, field
from datetime import date, timedelta

from nocturne.constants import DATE_RANGE_PADDING, DEFAULT_MERGE_GAP
from nocturne.exceptions import DecodeFailure, ImportCancelled
from nocturne.models.day import DailyReport
from nocturne.models.unified import ImportBatch
from nocturne.reconcile.day_reconciler import DayMergeResult, DayReconciler
from nocturne.reconcile.grouping import MetaSession, group_batches
from nocturne.reconcile.matcher import can_merge_with
from nocturne.reconcile.repository import DayRepository, transaction

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], None]
CancelCheck = Callable[[], bool]


@dataclass
class ImportResult:
    """Outcome of one import run."""

    updated_dates: list[date] = field(default_factory=list)
    merges: list[DayMergeResult] = field(default_factory=list)
    diagnostics: list[DecodeFailure] = field(default_factory=list)

    @property
    def days_updated(self) -> int:
        return len(self.updated_dates)

    @property
    def most_recent_date(self) -> date | None:
        """Latest date whose report received new data, or None."""
        return max(self.updated_dates) if self.updated_dates else None

    def summary(self) -> str:
        if not self.updated_dates:
            return "Nothing new to import"
        noun = "day" if self.days_updated == 1 else "days"
        return f"{self.days_updated} {noun} updated"


def import_date_range(meta_sessions: Sequence[MetaSession]) -> tuple[date, date]:
    """
    Return the inclusive date range to reconcile.

    Spans every meta-session, padded by one day on each side so sessions
    crossing midnight are caught on either report.
    """
    min_date = min(m.start_time.date() for m in meta_sessions) - DATE_RANGE_PADDING
    max_date = max(m.end_time.date() for m in meta_sessions) + DATE_RANGE_PADDING
    return min_date, max_date


def iter_dates(start: date, end: date) -> Iterator[date]:
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


class ImportCoordinator:
    """Runs a complete import against a DayRepository."""

    def __init__(
        self,
        repository: DayRepository,
        profile_id: int,
        reconciler: DayReconciler | None = None,
        merge_gap: timedelta = DEFAULT_MERGE_GAP,
        progress: ProgressCallback | None = None,
        should_cancel: CancelCheck | None = None,
    ):
        """
        Initialize coordinator.

        Args:
            repository: Store holding the daily reports
            profile_id: Profile whose reports are reconciled
            reconciler: Day reconciler (default filler policy if omitted)
            merge_gap: Maximum gap between batches of one meta-session
            progress: Called with a short message for each processed date
            should_cancel: Polled between days; returning True aborts the run
        """
        self.repository = repository
        self.profile_id = profile_id
        self.reconciler = reconciler or DayReconciler()
        self.merge_gap = merge_gap
        self.progress = progress
        self.should_cancel = should_cancel

    def import_batches(
        self,
        batches: Sequence[ImportBatch],
        diagnostics: Sequence[DecodeFailure] = (),
    ) -> ImportResult:
        """
        Group decoded batches into meta-sessions and reconcile them.

        Args:
            batches: Successfully decoded import batches
            diagnostics: Decode failures to carry through to the result

        Returns:
            ImportResult describing the updated days
        """
        meta_sessions = group_batches(list(batches), self.merge_gap)
        return self.reconcile(meta_sessions, diagnostics)

    def reconcile(
        self,
        meta_sessions: Sequence[MetaSession],
        diagnostics: Sequence[DecodeFailure] = (),
    ) -> ImportResult:
        """
        Merge meta-sessions into every existing day they overlap.

        Days are processed in ascending date order inside one transaction.
        Dates without a stored report are skipped; reconciliation never
        creates a report. Any exception rolls back every day of the run
        and is re-raised.

        Raises:
            StoreFailure: If the repository fails to load or save a day
            ImportCancelled: If ``should_cancel`` returned True between days
        """
        result = ImportResult(diagnostics=list(diagnostics))
        if not meta_sessions:
            logger.info("No import data to reconcile")
            return result

        min_date, max_date = import_date_range(meta_sessions)
        logger.info(
            f"Reconciling {len(meta_sessions)} meta-sessions over "
            f"{min_date} - {max_date}"
        )

        try:
            with transaction(self.repository) as repo:
                for day_date in iter_dates(min_date, max_date):
                    self._check_cancelled(day_date)
                    self._notify(
                        f"Merging sessions and events for {day_date:%A, %B %d, %Y}"
                    )

                    day = repo.load_day(self.profile_id, day_date)
                    if day is None:
                        continue

                    merge = self._reconcile_day(day, meta_sessions)
                    if merge is None or not merge.modified:
                        continue

                    repo.save_day(self.profile_id, day)
                    result.updated_dates.append(day_date)
                    result.merges.append(merge)
        except Exception:
            logger.error(
                f"Import failed, rolled back {len(result.updated_dates)} day(s)"
            )
            raise

        logger.info(result.summary())
        return result

    def store_device_days(self, days: Sequence[DailyReport]) -> date | None:
        """
        Persist daily reports produced by a device loader.

        This is the device-recorded import path: the loader builds complete
        reports, so they are saved as-is inside one transaction.

        Returns:
            Most recent stored date after the import, or None if there was
            nothing to store
        """
        if not days:
            return None

        with transaction(self.repository) as repo:
            for day in days:
                self._notify(f"Saving {day.report_date:%A, %B %d, %Y}")
                repo.save_day(self.profile_id, day)
            most_recent = repo.get_most_recent_stored_date(self.profile_id)

        logger.info(f"Stored {len(days)} device day(s), most recent {most_recent}")
        return most_recent

    def _reconcile_day(
        self, day: DailyReport, meta_sessions: Sequence[MetaSession]
    ) -> DayMergeResult | None:
        candidates = [m for m in meta_sessions if can_merge_with(m, day)]
        if not candidates:
            return None
        return self.reconciler.merge(day, candidates)

    def _check_cancelled(self, day_date: date) -> None:
        if self.should_cancel is not None and self.should_cancel():
            logger.warning(f"Import cancelled before {day_date}")
            raise ImportCancelled(f"Import cancelled before {day_date}")

    def _notify(self, message: str) -> None:
        if self.progress is not None:
            self.progress(message)
