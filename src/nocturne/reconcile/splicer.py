"""
Signal splicing: extend a signal's sample buffer to a target boundary.

Health trackers usually start recording a sleep session only once they
detect sleep. When a CPAP or oximetry session shows the user was already
in bed, the sleep-stage signal is padded out to that session's boundaries
with a filler value ("awake"), so the time spent awake is accounted for.

Splicing only touches the Signal. The owning Session recomputes its own
bounds from its signals afterwards (Session.recompute_bounds).
"""

import logging
import math

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum

import numpy as np

from nocturne.constants import DEFAULT_FILLER_VALUES, SPLICE_SAMPLE_EPSILON
from nocturne.exceptions import InvariantViolation
from nocturne.models.unified import Signal

logger = logging.getLogger(__name__)

# Absorbs microsecond rounding in timedelta arithmetic
_BOUNDS_TOLERANCE = timedelta(milliseconds=1)


class SpliceDirection(str, Enum):
    """Which end of the signal is extended."""

    EXTEND_START = "extend_start"
    EXTEND_END = "extend_end"


@dataclass(frozen=True)
class SpliceResult:
    """Outcome of a single splice operation."""

    direction: SpliceDirection
    samples_added: int
    start_time: datetime
    end_time: datetime

    @property
    def changed(self) -> bool:
        return self.samples_added > 0


@dataclass
class FillerPolicy:
    """
    Filler value used for each signal kind when splicing.

    Supplied by the caller (usually built from configuration); the splicer
    itself never assumes a value.
    """

    values: dict[str, float] = field(
        default_factory=lambda: dict(DEFAULT_FILLER_VALUES)
    )

    def filler_for(self, signal_name: str) -> float:
        try:
            return self.values[signal_name]
        except KeyError:
            raise KeyError(
                f"No filler value configured for signal '{signal_name}'"
            ) from None

    def supports(self, signal_name: str) -> bool:
        return signal_name in self.values


def samples_to_prepend(signal: Signal, target: datetime) -> int:
    """Number of whole samples that fit between ``target`` and the signal start."""
    gap = (signal.start_time - target).total_seconds()
    return math.floor(gap / signal.sample_interval + SPLICE_SAMPLE_EPSILON)


def samples_to_append(signal: Signal, target: datetime) -> int:
    """Number of samples needed to reach or pass ``target`` from the signal end."""
    gap = (target - signal.end_time).total_seconds()
    return math.ceil(gap / signal.sample_interval - SPLICE_SAMPLE_EPSILON)


def splice_signal(
    signal: Signal,
    target: datetime,
    direction: SpliceDirection,
    filler: float,
) -> SpliceResult:
    """
    Extend a signal so that it reaches ``target`` in the given direction.

    Extending the start prepends ``floor(gap / interval)`` filler samples and
    moves the start back by that many intervals (the signal never starts
    before ``target``). Extending the end appends ``ceil(gap / interval)``
    filler samples (the signal ends at or after ``target``). A signal is never
    shortened: a non-positive sample count leaves it untouched.

    Args:
        signal: Signal to modify in place
        target: Boundary time to extend towards
        direction: Which end to extend
        filler: Value of the inserted samples

    Returns:
        SpliceResult describing the number of samples added and the new bounds

    Raises:
        InvariantViolation: If the resulting sample count or bounds are
            inconsistent with the computed extension
    """
    old_count = signal.sample_count
    old_start = signal.start_time
    old_end = signal.end_time

    if direction is SpliceDirection.EXTEND_START:
        n = samples_to_prepend(signal, target)
    else:
        n = samples_to_append(signal, target)

    if n <= 0:
        return SpliceResult(direction, 0, old_start, old_end)

    padding = np.full(n, filler, dtype=np.float32)

    if direction is SpliceDirection.EXTEND_START:
        signal.samples = np.concatenate([padding, signal.samples])
        signal.start_time = old_start - timedelta(seconds=n * signal.sample_interval)
    else:
        signal.samples = np.concatenate([signal.samples, padding])

    if signal.sample_count != old_count + n:
        raise InvariantViolation(
            f"Signal {signal.name} has {signal.sample_count} samples after "
            f"splicing, expected {old_count + n}"
        )
    if (
        signal.start_time > old_start + _BOUNDS_TOLERANCE
        or signal.end_time < old_end - _BOUNDS_TOLERANCE
    ):
        raise InvariantViolation(f"Splicing shrank signal {signal.name}")

    logger.debug(
        f"Spliced {n} samples onto {signal.name} ({direction.value}), "
        f"now {signal.start_time} - {signal.end_time}"
    )
    return SpliceResult(direction, n, signal.start_time, signal.end_time)
