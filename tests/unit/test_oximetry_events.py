"""Tests for oximetry event generation."""

from datetime import datetime, timedelta

import numpy as np
import pytest

from nocturne.constants import (
    EVENT_TYPE_BRADYCARDIA,
    EVENT_TYPE_DESATURATION,
    EVENT_TYPE_HYPOXEMIA,
    EVENT_TYPE_TACHYCARDIA,
    SignalNames,
)
from nocturne.importers.oximetry_events import (
    OximetryEventConfig,
    find_runs,
    generate_pulse_events,
    generate_spo2_events,
    running_baseline,
)
from nocturne.models.unified import Signal

START = datetime(2024, 1, 1, 23, 0)

pytestmark = pytest.mark.business_logic


def signal(name: str, values) -> Signal:
    return Signal(
        name=name,
        start_time=START,
        frequency=1.0,
        samples=np.asarray(values, dtype=np.float32),
    )


class TestFindRuns:
    def test_runs(self):
        mask = np.array([False, True, True, False, True])
        assert find_runs(mask) == [(1, 3), (4, 5)]

    def test_empty_and_all_false(self):
        assert find_runs(np.array([], dtype=bool)) == []
        assert find_runs(np.zeros(5, dtype=bool)) == []


class TestRunningBaseline:
    def test_uses_preceding_window_only(self):
        values = np.array([90.0, 95.0, 80.0, 85.0])
        baseline = running_baseline(values, window=2)
        assert baseline.tolist() == [90.0, 90.0, 95.0, 95.0]

    def test_nan_only_window_is_negative_infinity(self):
        values = np.array([np.nan, np.nan, 90.0])
        baseline = running_baseline(values, window=2)
        assert np.isneginf(baseline[:3]).all()


class TestSpo2Events:
    def test_desaturation_detected(self):
        values = [96.0] * 200 + [92.0] * 20 + [96.0] * 100

        events = generate_spo2_events(
            signal(SignalNames.SPO2, values), OximetryEventConfig()
        )

        assert [e.event_type for e in events] == [EVENT_TYPE_DESATURATION]
        assert events[0].start_time == START + timedelta(seconds=200)
        assert events[0].duration_seconds == pytest.approx(20.0)

    def test_short_dip_ignored(self):
        values = [96.0] * 200 + [92.0] * 5 + [96.0] * 100

        events = generate_spo2_events(
            signal(SignalNames.SPO2, values), OximetryEventConfig()
        )

        assert events == []

    def test_sustained_hypoxemia(self):
        values = [90.0] * 60 + [86.0] * 90 + [90.0] * 60

        events = generate_spo2_events(
            signal(SignalNames.SPO2, values),
            OximetryEventConfig(desaturation_drop=10.0),
        )

        assert [e.event_type for e in events] == [EVENT_TYPE_HYPOXEMIA]
        assert events[0].duration_seconds == pytest.approx(90.0)

    def test_nan_samples_never_trigger_events(self):
        values = [96.0] * 100 + [np.nan] * 100

        events = generate_spo2_events(
            signal(SignalNames.SPO2, values), OximetryEventConfig()
        )

        assert events == []


class TestPulseEvents:
    def test_tachycardia_and_bradycardia(self):
        values = [70.0] * 30 + [110.0] * 15 + [70.0] * 30 + [45.0] * 12 + [70.0] * 30

        events = generate_pulse_events(
            signal(SignalNames.PULSE, values), OximetryEventConfig()
        )

        assert [e.event_type for e in events] == [
            EVENT_TYPE_TACHYCARDIA,
            EVENT_TYPE_BRADYCARDIA,
        ]
        assert events[0].start_time == START + timedelta(seconds=30)
        assert events[1].duration_seconds == pytest.approx(12.0)
