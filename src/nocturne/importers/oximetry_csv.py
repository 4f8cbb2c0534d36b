"""
Pulse-oximeter CSV export decoder.

Reads the per-sample CSV exports written by wrist/ring oximeters (Viatom,
Wellue, Checkme and similar): one row per sample with a timestamp, SpO2,
pulse rate and optionally a motion value. Samples are placed on a uniform
grid derived from the median timestamp spacing; missing rows and invalid
readings become NaN.
"""

import csv
import logging

from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

import numpy as np

from pydantic import BaseModel, Field

from nocturne.constants import SignalNames, SourceType
from nocturne.exceptions import DecodeFailure
from nocturne.importers.base import BatchDecoder, DecoderMetadata
from nocturne.importers.oximetry_events import (
    OximetryEventConfig,
    generate_pulse_events,
    generate_spo2_events,
)
from nocturne.models.unified import ImportBatch, Session, Signal

logger = logging.getLogger(__name__)

TIME_COLUMNS = ("time", "timestamp", "date time", "datetime")
SPO2_COLUMNS = ("oxygen level", "spo2", "spo2(%)", "spo2 (%)")
PULSE_COLUMNS = ("pulse rate", "pulse", "pr", "pr(bpm)", "pulse rate(bpm)")
MOTION_COLUMNS = ("motion", "movement")

TIMESTAMP_FORMATS = (
    "%H:%M:%S %b %d, %Y",
    "%I:%M:%S %p %b %d, %Y",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M:%S",
    "%d/%m/%Y %H:%M:%S",
)

# Readings outside these ranges are sensor dropouts (e.g. 255 or "--")
SPO2_VALID_RANGE = (50.0, 100.0)
PULSE_VALID_RANGE = (20.0, 250.0)


class OximetryImportOptions(BaseModel):
    """Adjustments applied while decoding an oximetry export."""

    calibration_adjust: float = Field(
        default=0.0, description="Added to every SpO2 reading (%)"
    )
    time_adjust_seconds: float = Field(
        default=0.0, description="Shift applied to every timestamp (s)"
    )
    events: OximetryEventConfig = Field(default_factory=OximetryEventConfig)


def parse_timestamp(value: str) -> datetime:
    """
    Parse an export timestamp in any of the supported formats.

    Raises:
        ValueError: If no format matches
    """
    value = value.strip()
    for fmt in TIMESTAMP_FORMATS:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    raise ValueError(f"Unrecognized timestamp '{value}'")


def _parse_reading(value: str | None, valid_range: tuple[float, float]) -> float:
    try:
        reading = float(value) if value is not None else np.nan
    except ValueError:
        return np.nan
    low, high = valid_range
    return reading if low <= reading <= high else np.nan


def _find_column(fieldnames: list[str], candidates: tuple[str, ...]) -> str | None:
    normalized = {name.strip().lower(): name for name in fieldnames}
    for candidate in candidates:
        if candidate in normalized:
            return normalized[candidate]
    return None


class OximetryCsvDecoder(BatchDecoder):
    """Decoder for pulse-oximeter CSV exports."""

    def get_metadata(self) -> DecoderMetadata:
        return DecoderMetadata(
            decoder_id="oximetry_csv",
            decoder_version="1.0.0",
            friendly_name="Pulse Oximeter CSV",
            source_type=SourceType.PULSE_OXIMETRY,
            filename_pattern=r"\.csv$",
            file_type_filters=["*.csv"],
            description="Per-sample SpO2/pulse CSV exports from wrist and ring oximeters",
        )

    def decode(self, path: Path, options: Any | None = None) -> ImportBatch:
        opts = options if isinstance(options, OximetryImportOptions) else None
        opts = opts or OximetryImportOptions()

        fieldnames, rows = self._read_rows(path)
        times, columns = self._extract_columns(path, fieldnames, rows)
        frequency, grid_index = self._sample_grid(path, times)

        shift = timedelta(seconds=opts.time_adjust_seconds)
        start_time = times[0] + shift
        size = int(grid_index[-1]) + 1

        spo2 = self._to_grid(columns["spo2"], grid_index, size)
        spo2 = spo2 + opts.calibration_adjust
        pulse = self._to_grid(columns["pulse"], grid_index, size)

        signals = {
            SignalNames.SPO2: self._signal(
                SignalNames.SPO2, start_time, frequency, spo2, "%"
            ),
            SignalNames.PULSE: self._signal(
                SignalNames.PULSE, start_time, frequency, pulse, "bpm"
            ),
        }
        if columns.get("motion") is not None:
            motion = self._to_grid(columns["motion"], grid_index, size)
            signals[SignalNames.MOVEMENT] = self._signal(
                SignalNames.MOVEMENT, start_time, frequency, motion, ""
            )

        session = Session(
            source_type=SourceType.PULSE_OXIMETRY,
            source_id=path.name,
            start_time=start_time,
            end_time=max(s.end_time for s in signals.values()),
            signals=signals,
        )
        events = generate_spo2_events(signals[SignalNames.SPO2], opts.events)
        events += generate_pulse_events(signals[SignalNames.PULSE], opts.events)
        events.sort(key=lambda e: e.start_time)

        logger.info(
            f"Decoded {path.name}: {size} samples at {frequency:g} Hz "
            f"({session.start_time} - {session.end_time}), {len(events)} events"
        )
        return ImportBatch(
            source=path.name,
            source_type=SourceType.PULSE_OXIMETRY,
            sessions=[session],
            events=events,
        )

    @staticmethod
    def _read_rows(path: Path) -> tuple[list[str], list[dict[str, str]]]:
        try:
            with open(path, newline="", encoding="utf-8-sig") as f:
                reader = csv.DictReader(f)
                rows = list(reader)
                fieldnames = list(reader.fieldnames or [])
        except (OSError, UnicodeDecodeError, csv.Error) as e:
            raise DecodeFailure(f"Cannot read {path.name}: {e}", path) from e

        if not fieldnames or not rows:
            raise DecodeFailure(f"{path.name} contains no samples", path)

        # DictReader keys surplus fields under None and fills short rows with None
        for number, row in enumerate(rows, start=1):
            if None in row or None in row.values():
                raise DecodeFailure(
                    f"{path.name} row {number}: expected {len(fieldnames)} fields",
                    path,
                )
        return fieldnames, rows

    @staticmethod
    def _extract_columns(
        path: Path, fieldnames: list[str], rows: list[dict[str, str]]
    ) -> tuple[list[datetime], dict[str, np.ndarray | None]]:
        time_col = _find_column(fieldnames, TIME_COLUMNS)
        spo2_col = _find_column(fieldnames, SPO2_COLUMNS)
        pulse_col = _find_column(fieldnames, PULSE_COLUMNS)
        motion_col = _find_column(fieldnames, MOTION_COLUMNS)

        missing = [
            label
            for label, col in (
                ("time", time_col),
                ("SpO2", spo2_col),
                ("pulse", pulse_col),
            )
            if col is None
        ]
        if missing:
            raise DecodeFailure(
                f"{path.name} is missing required columns: {', '.join(missing)}", path
            )

        try:
            times = [parse_timestamp(row[time_col]) for row in rows]
        except ValueError as e:
            raise DecodeFailure(f"{path.name}: {e}", path) from e

        columns: dict[str, np.ndarray | None] = {
            "spo2": np.array(
                [_parse_reading(r[spo2_col], SPO2_VALID_RANGE) for r in rows]
            ),
            "pulse": np.array(
                [_parse_reading(r[pulse_col], PULSE_VALID_RANGE) for r in rows]
            ),
            "motion": None,
        }
        if motion_col is not None:
            columns["motion"] = np.array(
                [_parse_reading(r[motion_col], (0.0, float("inf"))) for r in rows]
            )
        return times, columns

    @staticmethod
    def _sample_grid(path: Path, times: list[datetime]) -> tuple[float, np.ndarray]:
        """Return (frequency, grid index of every row)."""
        offsets = np.array([(t - times[0]).total_seconds() for t in times])
        if len(offsets) < 2:
            raise DecodeFailure(f"{path.name} needs at least two samples", path)
        if np.any(np.diff(offsets) <= 0):
            raise DecodeFailure(f"{path.name} timestamps are not increasing", path)

        interval = float(np.median(np.diff(offsets)))
        grid_index = np.rint(offsets / interval).astype(np.int64)
        return 1.0 / interval, grid_index

    @staticmethod
    def _to_grid(values: np.ndarray, grid_index: np.ndarray, size: int) -> np.ndarray:
        grid = np.full(size, np.nan)
        grid[grid_index] = values
        return grid

    @staticmethod
    def _signal(
        name: str, start: datetime, frequency: float, samples: np.ndarray, unit: str
    ) -> Signal:
        finite = samples[~np.isnan(samples)]
        return Signal(
            name=name,
            start_time=start,
            frequency=frequency,
            samples=samples,
            unit=unit,
            min_value=float(finite.min()) if finite.size else None,
            max_value=float(finite.max()) if finite.size else None,
        )
