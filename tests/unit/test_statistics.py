"""Tests for day-level signal statistics."""

from datetime import date, datetime

import numpy as np
import pytest

from nocturne.analysis.statistics import calculate_signal_statistics
from nocturne.constants import SignalNames
from nocturne.models.unified import Signal
from tests.helpers.builders import make_day, oximetry_session

START = datetime(2024, 1, 1, 22, 0)


def spo2(values) -> Signal:
    return Signal(
        name=SignalNames.SPO2, start_time=START, frequency=1.0, samples=values, unit="%"
    )


class TestCalculateSignalStatistics:
    def test_basic_statistics(self):
        stats = calculate_signal_statistics(SignalNames.SPO2, [spo2([90.0, 95.0, 97.0])])

        assert stats.minimum == 90.0
        assert stats.maximum == 97.0
        assert stats.median == 95.0
        assert stats.average == pytest.approx(94.0)
        assert stats.sample_count == 3
        assert stats.unit == "%"

    def test_combines_signals_from_several_sessions(self):
        stats = calculate_signal_statistics(
            SignalNames.SPO2, [spo2([90.0, 92.0]), spo2([98.0])]
        )
        assert stats.sample_count == 3
        assert stats.maximum == 98.0

    def test_nan_samples_are_ignored(self):
        stats = calculate_signal_statistics(
            SignalNames.SPO2, [spo2(np.array([np.nan, 93.0, np.nan, 95.0]))]
        )
        assert stats.sample_count == 2
        assert stats.average == pytest.approx(94.0)

    def test_no_signals_returns_none(self):
        assert calculate_signal_statistics(SignalNames.SPO2, []) is None

    def test_only_nan_returns_none(self):
        signal = spo2(np.array([np.nan, np.nan]))
        assert calculate_signal_statistics(SignalNames.SPO2, [signal]) is None

    def test_percentiles_are_ordered(self):
        stats = calculate_signal_statistics(
            SignalNames.SPO2, [spo2(np.linspace(85, 100, 1000))]
        )
        assert stats.median <= stats.percentile_95 <= stats.percentile_995
        assert stats.percentile_995 <= stats.maximum


class TestDailyReportStatistics:
    def test_update_replaces_existing_entry(self):
        day = make_day(
            date(2024, 1, 1),
            [oximetry_session(START, datetime(2024, 1, 2, 6), spo2=94.0)],
        )
        day.update_signal_statistics(SignalNames.SPO2)
        day.sessions[0].signals[SignalNames.SPO2].samples[:] = 90.0

        day.update_signal_statistics(SignalNames.SPO2)

        assert len(day.statistics) == 1
        assert day.get_statistics(SignalNames.SPO2).average == pytest.approx(90.0)

    def test_update_removes_entry_when_signal_missing(self):
        day = make_day(date(2024, 1, 1), [oximetry_session(START, datetime(2024, 1, 2))])
        day.update_signal_statistics(SignalNames.SPO2)
        day.sessions.clear()

        day.update_signal_statistics(SignalNames.SPO2)

        assert day.get_statistics(SignalNames.SPO2) is None
