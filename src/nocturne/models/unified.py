"""
Unified Data Model for imported sleep data

Every decoder converts its native format into these structures before the
reconciliation engine sees it, and the storage layer converts database rows
back into them. The engine never deals with a source-specific format.

Times are naive local datetimes, matching the way the recording devices
report them.
"""

from datetime import datetime, timedelta
from typing import Any

import numpy as np

from pydantic import BaseModel, ConfigDict, Field, model_validator

from nocturne.constants import SourceType


class Signal(BaseModel):
    """
    A uniformly-sampled time series owned by a single Session.

    The end time is derived from the start time, the frequency and the
    number of samples, so ``end_time == start_time + sample_count / frequency``
    always holds.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str = Field(description="Signal name (see SignalNames)")
    start_time: datetime = Field(description="Timestamp of the first sample")
    frequency: float = Field(gt=0, description="Sampling frequency (Hz)")
    samples: list[float] | np.ndarray = Field(description="Sample values")
    unit: str = Field(default="", description="Units (e.g., '%', 'bpm')")

    min_value: float | None = Field(default=None, description="Declared minimum")
    max_value: float | None = Field(default=None, description="Declared maximum")

    @model_validator(mode="after")
    def convert_to_numpy(self) -> "Signal":
        """Convert sample lists to float32 numpy arrays."""
        if isinstance(self.samples, list):
            self.samples = np.array(self.samples, dtype=np.float32)
        elif self.samples.dtype != np.float32:
            self.samples = self.samples.astype(np.float32)
        return self

    @property
    def sample_interval(self) -> float:
        """Seconds between two consecutive samples."""
        return 1.0 / self.frequency

    @property
    def sample_count(self) -> int:
        return len(self.samples)

    @property
    def duration_seconds(self) -> float:
        return self.sample_count * self.sample_interval

    @property
    def end_time(self) -> datetime:
        return self.start_time + timedelta(seconds=self.duration_seconds)

    def __repr__(self) -> str:
        return (
            f"<Signal(name={self.name}, start={self.start_time}, "
            f"hz={self.frequency}, samples={self.sample_count})>"
        )


class Session(BaseModel):
    """A recorded interval of device or sensor activity."""

    source_type: SourceType = Field(description="Where the session was recorded")
    source_id: str = Field(
        default="", description="Identifier of the originating file or device"
    )
    start_time: datetime = Field(description="Session start time")
    end_time: datetime = Field(description="Session end time")
    signals: dict[str, Signal] = Field(
        default_factory=dict, description="Signals keyed by name"
    )

    @model_validator(mode="after")
    def check_time_range(self) -> "Session":
        if self.end_time < self.start_time:
            raise ValueError(
                f"Session ends ({self.end_time}) before it starts ({self.start_time})"
            )
        return self

    @property
    def duration_seconds(self) -> float:
        return (self.end_time - self.start_time).total_seconds()

    def get_signal(self, name: str) -> Signal | None:
        return self.signals.get(name)

    def recompute_bounds(self) -> None:
        """
        Widen the session so that it covers every signal it owns.

        A session is never shorter than its signals; it is never narrowed.
        """
        if not self.signals:
            return
        self.start_time = min(
            [self.start_time, *(s.start_time for s in self.signals.values())]
        )
        self.end_time = max(
            [self.end_time, *(s.end_time for s in self.signals.values())]
        )


class ReportedEvent(BaseModel):
    """A reported occurrence (desaturation, pulse change, etc.)."""

    event_type: str = Field(description="Event type name")
    start_time: datetime = Field(description="Event start time")
    duration_seconds: float = Field(default=0.0, ge=0, description="Duration (s)")
    source_type: SourceType | None = Field(
        default=None, description="Source of the session that reported the event"
    )

    @property
    def end_time(self) -> datetime:
        return self.start_time + timedelta(seconds=self.duration_seconds)


class SignalStatistics(BaseModel):
    """Aggregate statistics for one signal across a day's sessions."""

    signal_name: str
    unit: str = ""
    minimum: float | None = None
    maximum: float | None = None
    average: float | None = None
    median: float | None = None
    percentile_95: float | None = None
    percentile_995: float | None = None
    sample_count: int = Field(default=0, ge=0)


class ImportBatch(BaseModel):
    """
    One decoded unit of imported data (typically one file or API payload).

    Immutable once produced. When no explicit range is given the batch spans
    its sessions.
    """

    model_config = ConfigDict(frozen=True)

    source: str = Field(description="Identifier of the input that was decoded")
    source_type: SourceType = Field(description="Source type of the sessions")
    start_time: datetime
    end_time: datetime
    sessions: list[Session] = Field(default_factory=list)
    events: list[ReportedEvent] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def derive_time_range(cls, data: Any) -> Any:
        """Fill start_time/end_time from the sessions when they are omitted."""
        if not isinstance(data, dict):
            return data
        if data.get("start_time") is not None and data.get("end_time") is not None:
            return data

        sessions = data.get("sessions") or []
        starts = [_field(s, "start_time") for s in sessions]
        ends = [_field(s, "end_time") for s in sessions]
        if not starts:
            raise ValueError("ImportBatch needs a time range or at least one session")

        data = dict(data)
        data.setdefault("start_time", None)
        data.setdefault("end_time", None)
        if data["start_time"] is None:
            data["start_time"] = min(starts)
        if data["end_time"] is None:
            data["end_time"] = max(ends)
        return data

    @model_validator(mode="after")
    def check_time_range(self) -> "ImportBatch":
        if self.end_time < self.start_time:
            raise ValueError(f"ImportBatch {self.source} ends before it starts")
        return self


def _field(obj: Any, name: str) -> Any:
    if isinstance(obj, dict):
        return obj[name]
    return getattr(obj, name)
