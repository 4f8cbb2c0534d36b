"""
Health-API sleep session decoder.

Reads one sleep session per JSON file, in the shape returned by the
fitness REST API's sessions and sleep-segment endpoints:

    {
        "id": "1672610400000-sleep",
        "startTimeMillis": 1672610400000,
        "endTimeMillis": 1672639200000,
        "segments": [
            {"startTimeMillis": ..., "endTimeMillis": ..., "sleepStage": 4},
            ...
        ]
    }

Segments are resampled into a Sleep Stages signal of fixed-length epochs.
Time not covered by any segment is recorded as awake.
"""

import json
import logging
import math

from datetime import datetime
from pathlib import Path
from typing import Any

import numpy as np

from pydantic import BaseModel, Field, ValidationError

from nocturne.constants import (
    MILLISECONDS_PER_SECOND,
    SignalNames,
    SleepStage,
    SourceType,
)
from nocturne.exceptions import DecodeFailure
from nocturne.importers.base import BatchDecoder, DecoderMetadata
from nocturne.models.unified import ImportBatch, Session, Signal

logger = logging.getLogger(__name__)

EPOCH_SECONDS = 30
MAX_SESSION_HOURS = 48

# API sleepStage codes
API_STAGE_MAP = {
    1: SleepStage.AWAKE,
    2: SleepStage.LIGHT,  # "sleeping", unclassified
    3: SleepStage.AWAKE,  # out of bed
    4: SleepStage.LIGHT,
    5: SleepStage.DEEP,
    6: SleepStage.REM,
}


class SleepSegmentPayload(BaseModel):
    start_millis: int = Field(alias="startTimeMillis")
    end_millis: int = Field(alias="endTimeMillis")
    sleep_stage: int = Field(alias="sleepStage")


class SleepSessionPayload(BaseModel):
    id: str = ""
    start_millis: int = Field(alias="startTimeMillis")
    end_millis: int = Field(alias="endTimeMillis")
    segments: list[SleepSegmentPayload] = Field(default_factory=list)


def from_millis(value: int) -> datetime:
    """Convert epoch milliseconds to a naive local datetime."""
    return datetime.fromtimestamp(value / MILLISECONDS_PER_SECOND)


def stage_epochs(payload: SleepSessionPayload) -> np.ndarray:
    """
    Resample sleep segments into one stage value per epoch.

    Each segment claims every epoch it overlaps; later segments win where
    two segments share an epoch.
    """
    duration = (payload.end_millis - payload.start_millis) / MILLISECONDS_PER_SECOND
    count = max(1, math.ceil(duration / EPOCH_SECONDS))
    epochs = np.full(count, float(SleepStage.AWAKE))

    for segment in sorted(payload.segments, key=lambda s: s.start_millis):
        stage = API_STAGE_MAP.get(segment.sleep_stage)
        if stage is None:
            logger.debug(f"Ignoring segment with unknown stage {segment.sleep_stage}")
            continue
        begin = (segment.start_millis - payload.start_millis) / MILLISECONDS_PER_SECOND
        end = (segment.end_millis - payload.start_millis) / MILLISECONDS_PER_SECOND
        first = max(0, math.floor(begin / EPOCH_SECONDS))
        last = min(count, math.ceil(end / EPOCH_SECONDS))
        epochs[first:last] = float(stage)

    return epochs


class HealthApiSleepDecoder(BatchDecoder):
    """Decoder for sleep sessions fetched from the health API."""

    def get_metadata(self) -> DecoderMetadata:
        return DecoderMetadata(
            decoder_id="health_api_json",
            decoder_version="1.0.0",
            friendly_name="Health API Sleep Session",
            source_type=SourceType.HEALTH_API,
            filename_pattern=r"\.json$",
            file_type_filters=["*.json"],
            description="Sleep sessions with sleep-stage segments",
        )

    def decode(self, path: Path, options: Any | None = None) -> ImportBatch:
        payload = self._load_payload(path)
        if payload.end_millis <= payload.start_millis:
            raise DecodeFailure(f"{path.name}: session has no duration", path)

        duration = payload.end_millis - payload.start_millis
        if duration > MAX_SESSION_HOURS * 3600 * MILLISECONDS_PER_SECOND:
            raise DecodeFailure(
                f"{path.name}: session spans more than {MAX_SESSION_HOURS} hours", path
            )

        # Out-of-range epoch values fail inside datetime and numpy, not pydantic
        try:
            start_time = from_millis(payload.start_millis)
            signal = Signal(
                name=SignalNames.SLEEP_STAGES,
                start_time=start_time,
                frequency=1.0 / EPOCH_SECONDS,
                samples=stage_epochs(payload),
                min_value=float(min(SleepStage)),
                max_value=float(max(SleepStage)),
            )
            session = Session(
                source_type=SourceType.HEALTH_API,
                source_id=payload.id or path.name,
                start_time=start_time,
                end_time=from_millis(payload.end_millis),
                signals={signal.name: signal},
            )
        except (ValueError, OverflowError, OSError) as e:
            raise DecodeFailure(f"{path.name}: invalid session times: {e}", path) from e
        session.recompute_bounds()

        logger.info(
            f"Decoded {path.name}: {len(payload.segments)} segments, "
            f"{signal.sample_count} epochs ({session.start_time} - {session.end_time})"
        )
        return ImportBatch(
            source=path.name,
            source_type=SourceType.HEALTH_API,
            sessions=[session],
        )

    @staticmethod
    def _load_payload(path: Path) -> SleepSessionPayload:
        try:
            with open(path, encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise DecodeFailure(f"Cannot read {path.name}: {e}", path) from e

        try:
            return SleepSessionPayload.model_validate(raw)
        except ValidationError as e:
            raise DecodeFailure(f"{path.name} is not a sleep session: {e}", path) from e
