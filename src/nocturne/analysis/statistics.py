"""Statistical calculations for signals merged into a day."""

import logging

from collections.abc import Iterable

import numpy as np

from nocturne.models.unified import Signal, SignalStatistics

logger = logging.getLogger(__name__)


def calculate_signal_statistics(
    signal_name: str, signals: Iterable[Signal]
) -> SignalStatistics | None:
    """
    Calculate aggregate statistics over every sample of the given signals.

    NaN samples (gaps reported by the device) are ignored.

    Args:
        signal_name: Name reported on the resulting statistics
        signals: Signals contributing samples, typically one per session

    Returns:
        SignalStatistics, or None if there are no valid samples
    """
    signals = list(signals)
    arrays = [np.asarray(s.samples, dtype=np.float64) for s in signals]
    if not arrays:
        return None

    values = np.concatenate(arrays)
    values = values[~np.isnan(values)]
    if values.size == 0:
        logger.debug(f"No valid samples for {signal_name}, skipping statistics")
        return None

    return SignalStatistics(
        signal_name=signal_name,
        unit=signals[0].unit,
        minimum=float(np.min(values)),
        maximum=float(np.max(values)),
        average=float(np.mean(values)),
        median=float(np.median(values)),
        percentile_95=float(np.percentile(values, 95)),
        percentile_995=float(np.percentile(values, 99.5)),
        sample_count=int(values.size),
    )
