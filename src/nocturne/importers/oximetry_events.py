"""
Event generation for pulse-oximetry recordings.

Oximeter exports carry only raw SpO2 and pulse samples, so reportable
events (desaturations, hypoxemia, abnormal pulse) are derived here before
the batch is handed to the reconciliation engine.
"""

from datetime import timedelta

import numpy as np

from numpy.lib.stride_tricks import sliding_window_view
from pydantic import BaseModel, Field

from nocturne.constants import (
    EVENT_TYPE_BRADYCARDIA,
    EVENT_TYPE_DESATURATION,
    EVENT_TYPE_HYPOXEMIA,
    EVENT_TYPE_TACHYCARDIA,
    SourceType,
)
from nocturne.models.unified import ReportedEvent, Signal


class OximetryEventConfig(BaseModel):
    """Thresholds used when generating oximetry events."""

    desaturation_drop: float = Field(
        default=3.0, gt=0, description="Drop below baseline counted as desaturation (%)"
    )
    desaturation_min_seconds: float = Field(default=10.0, ge=0)
    baseline_window_seconds: float = Field(
        default=120.0, gt=0, description="Window for the running SpO2 baseline"
    )
    hypoxemia_threshold: float = Field(default=88.0, description="SpO2 (%)")
    hypoxemia_min_seconds: float = Field(default=60.0, ge=0)
    tachycardia_threshold: float = Field(default=100.0, description="Pulse (bpm)")
    bradycardia_threshold: float = Field(default=50.0, description="Pulse (bpm)")
    pulse_min_seconds: float = Field(default=10.0, ge=0)


def find_runs(mask: np.ndarray) -> list[tuple[int, int]]:
    """Return ``[start, end)`` index pairs of consecutive True values."""
    if mask.size == 0 or not mask.any():
        return []
    padded = np.concatenate([[0], mask.astype(np.int8), [0]])
    edges = np.diff(padded)
    starts = np.flatnonzero(edges == 1)
    ends = np.flatnonzero(edges == -1)
    return list(zip(starts.tolist(), ends.tolist(), strict=True))


def running_baseline(values: np.ndarray, window: int) -> np.ndarray:
    """
    Maximum of the ``window`` samples preceding each sample.

    The first sample is repeated to fill the window at the start of the
    recording. Windows holding only NaN yield -inf.
    """
    filled = np.where(np.isnan(values), -np.inf, values)
    padded = np.concatenate([np.full(window, filled[0]), filled])
    return sliding_window_view(padded[:-1], window).max(axis=1)


def _events_from_mask(
    signal: Signal, mask: np.ndarray, event_type: str, min_seconds: float
) -> list[ReportedEvent]:
    interval = signal.sample_interval
    events = []
    for start, end in find_runs(mask):
        duration = (end - start) * interval
        if duration < min_seconds:
            continue
        events.append(
            ReportedEvent(
                event_type=event_type,
                start_time=signal.start_time + timedelta(seconds=start * interval),
                duration_seconds=duration,
                source_type=SourceType.PULSE_OXIMETRY,
            )
        )
    return events


def generate_spo2_events(
    signal: Signal, config: OximetryEventConfig
) -> list[ReportedEvent]:
    """Detect desaturation and hypoxemia events in an SpO2 signal."""
    values = np.asarray(signal.samples, dtype=np.float64)
    if values.size == 0:
        return []

    window = max(1, round(config.baseline_window_seconds * signal.frequency))
    baseline = running_baseline(values, window)
    valid = ~np.isnan(values) & np.isfinite(baseline)

    with np.errstate(invalid="ignore"):
        desaturated = valid & (values <= baseline - config.desaturation_drop)
        hypoxemic = ~np.isnan(values) & (values < config.hypoxemia_threshold)

    return _events_from_mask(
        signal, desaturated, EVENT_TYPE_DESATURATION, config.desaturation_min_seconds
    ) + _events_from_mask(
        signal, hypoxemic, EVENT_TYPE_HYPOXEMIA, config.hypoxemia_min_seconds
    )


def generate_pulse_events(
    signal: Signal, config: OximetryEventConfig
) -> list[ReportedEvent]:
    """Detect tachycardia and bradycardia events in a pulse signal."""
    values = np.asarray(signal.samples, dtype=np.float64)
    present = ~np.isnan(values)

    with np.errstate(invalid="ignore"):
        fast = present & (values > config.tachycardia_threshold)
        slow = present & (values < config.bradycardia_threshold)

    return _events_from_mask(
        signal, fast, EVENT_TYPE_TACHYCARDIA, config.pulse_min_seconds
    ) + _events_from_mask(
        signal, slow, EVENT_TYPE_BRADYCARDIA, config.pulse_min_seconds
    )
