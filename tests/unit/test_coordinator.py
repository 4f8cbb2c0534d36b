"""Tests for the import transaction coordinator against an in-memory store."""

from datetime import date, datetime, timedelta

import pytest

from nocturne.constants import SignalNames, SourceType
from nocturne.exceptions import DecodeFailure, ImportCancelled, StoreFailure
from nocturne.reconcile.coordinator import ImportCoordinator, import_date_range
from nocturne.reconcile.grouping import group_batches
from tests.helpers.builders import (
    device_session,
    make_batch,
    make_day,
    night,
    oximetry_session,
    sleep_stage_session,
)
from tests.helpers.memory_repository import MemoryDayRepository

pytestmark = pytest.mark.business_logic

JAN_1 = date(2024, 1, 1)
JAN_2 = date(2024, 1, 2)
JAN_3 = date(2024, 1, 3)


def device_day(day: date):
    start, end = night(day)
    return make_day(day, [device_session(start, end)])


def oximetry_batch(day: date, source: str = "oximeter.csv"):
    start, end = night(day)
    return make_batch([oximetry_session(start, end)], source=source)


class TestImportDateRange:
    def test_range_is_padded_by_one_day(self):
        start, end = night(JAN_1)
        meta = group_batches([make_batch([oximetry_session(start, end)])])

        assert import_date_range(meta) == (date(2023, 12, 31), JAN_3)


class TestImportCoordinator:
    def test_device_night_with_sleep_stages(self):
        repo = MemoryDayRepository([device_day(JAN_1)])
        batch = make_batch(
            [
                sleep_stage_session(
                    datetime(2024, 1, 1, 22, 10), datetime(2024, 1, 2, 5, 50)
                )
            ]
        )

        result = ImportCoordinator(repo, profile_id=1).import_batches([batch])

        assert repo.saves == [JAN_1]
        assert result.updated_dates == [JAN_1]
        assert result.most_recent_date == JAN_1
        stored = repo.get(1, JAN_1)
        health = [s for s in stored.sessions if s.source_type == SourceType.HEALTH_API]
        stages = health[0].signals[SignalNames.SLEEP_STAGES]
        assert health[0].start_time == datetime(2024, 1, 1, 22, 0)
        assert health[0].end_time == datetime(2024, 1, 2, 6, 0)
        assert stages.sample_count == 8 * 3600

    def test_second_import_performs_no_save(self):
        repo = MemoryDayRepository([device_day(JAN_1)])
        coordinator = ImportCoordinator(repo, profile_id=1)

        coordinator.import_batches([oximetry_batch(JAN_1)])
        repo.saves.clear()
        result = coordinator.import_batches([oximetry_batch(JAN_1, "copy.csv")])

        assert repo.saves == []
        assert result.updated_dates == []
        assert result.most_recent_date is None
        assert result.summary() == "Nothing new to import"

    def test_missing_days_are_never_created(self):
        repo = MemoryDayRepository()

        result = ImportCoordinator(repo, profile_id=1).import_batches(
            [oximetry_batch(JAN_1)]
        )

        assert result.updated_dates == []
        assert repo.get(1, JAN_1) is None

    def test_days_processed_in_ascending_order(self):
        repo = MemoryDayRepository([device_day(d) for d in (JAN_3, JAN_1, JAN_2)])
        batches = [oximetry_batch(d) for d in (JAN_2, JAN_3, JAN_1)]

        result = ImportCoordinator(repo, profile_id=1).import_batches(batches)

        assert repo.saves == [JAN_1, JAN_2, JAN_3]
        assert result.summary() == "3 days updated"
        assert repo.commits == 1

    def test_failed_save_rolls_back_every_day(self):
        repo = MemoryDayRepository([device_day(d) for d in (JAN_1, JAN_2, JAN_3)])
        repo.fail_on = JAN_2
        batches = [oximetry_batch(d) for d in (JAN_1, JAN_2, JAN_3)]

        with pytest.raises(StoreFailure):
            ImportCoordinator(repo, profile_id=1).import_batches(batches)

        assert repo.rollbacks == 1
        assert repo.commits == 0
        for day in (JAN_1, JAN_2, JAN_3):
            assert len(repo.get(1, day).sessions) == 1

    def test_cancellation_between_days(self):
        repo = MemoryDayRepository([device_day(d) for d in (JAN_1, JAN_2)])
        batches = [oximetry_batch(d) for d in (JAN_1, JAN_2)]
        checks = []

        def should_cancel():
            checks.append(True)
            return len(checks) > 2

        coordinator = ImportCoordinator(repo, profile_id=1, should_cancel=should_cancel)
        with pytest.raises(ImportCancelled):
            coordinator.import_batches(batches)

        assert repo.rollbacks == 1
        assert len(repo.get(1, JAN_1).sessions) == 1

    def test_progress_reported_per_date(self):
        repo = MemoryDayRepository([device_day(JAN_1)])
        messages = []

        ImportCoordinator(repo, profile_id=1, progress=messages.append).import_batches(
            [oximetry_batch(JAN_1)]
        )

        # Dec 31 through Jan 3
        assert len(messages) == 4
        assert "Monday, January 01, 2024" in messages[1]

    def test_diagnostics_are_carried_through(self):
        repo = MemoryDayRepository([device_day(JAN_1)])
        failure = DecodeFailure("unreadable", "bad.csv")

        result = ImportCoordinator(repo, profile_id=1).import_batches(
            [oximetry_batch(JAN_1)], [failure]
        )

        assert result.diagnostics == [failure]

    def test_empty_import(self):
        repo = MemoryDayRepository([device_day(JAN_1)])

        result = ImportCoordinator(repo, profile_id=1).import_batches([])

        assert result.updated_dates == []
        assert repo.commits == 0

    def test_small_merge_gap_keeps_nights_apart(self):
        repo = MemoryDayRepository([device_day(JAN_1)])
        start, end = night(JAN_1)
        early = make_batch([oximetry_session(start, start + timedelta(hours=1))])
        late = make_batch([oximetry_session(end - timedelta(hours=1), end)])

        coordinator = ImportCoordinator(
            repo, profile_id=1, merge_gap=timedelta(minutes=5)
        )
        result = coordinator.import_batches([early, late])

        assert len(result.merges[0].added_sessions) == 2


class TestStoreDeviceDays:
    def test_saves_every_day_and_returns_most_recent(self):
        repo = MemoryDayRepository()
        days = [device_day(JAN_2), device_day(JAN_1)]

        most_recent = ImportCoordinator(repo, profile_id=1).store_device_days(days)

        assert most_recent == JAN_2
        assert sorted(repo.saves) == [JAN_1, JAN_2]
        assert repo.commits == 1

    def test_nothing_to_store(self):
        repo = MemoryDayRepository()
        assert ImportCoordinator(repo, profile_id=1).store_device_days([]) is None
        assert repo.commits == 0
