"""Tests for the health-API sleep session decoder."""

import json

from datetime import datetime, timedelta

import pytest

from nocturne.constants import SignalNames, SleepStage, SourceType
from nocturne.exceptions import DecodeFailure
from nocturne.importers.health_api import (
    EPOCH_SECONDS,
    HealthApiSleepDecoder,
    SleepSessionPayload,
    stage_epochs,
)

pytestmark = pytest.mark.decoder

START = datetime(2024, 1, 1, 22, 10)


def millis(dt: datetime) -> int:
    return int(dt.timestamp() * 1000)


def segment(offset_minutes: float, minutes: float, stage: int) -> dict:
    begin = START + timedelta(minutes=offset_minutes)
    return {
        "startTimeMillis": millis(begin),
        "endTimeMillis": millis(begin + timedelta(minutes=minutes)),
        "sleepStage": stage,
    }


def payload(minutes: float = 60, segments: list[dict] | None = None) -> dict:
    return {
        "id": "sleep-1",
        "startTimeMillis": millis(START),
        "endTimeMillis": millis(START + timedelta(minutes=minutes)),
        "segments": segments or [],
    }


@pytest.fixture
def decoder():
    return HealthApiSleepDecoder()


class TestStageEpochs:
    def test_segments_map_to_stages(self):
        data = payload(
            minutes=4,
            segments=[segment(0, 1, 4), segment(1, 1, 5), segment(2, 1, 6)],
        )

        epochs = stage_epochs(SleepSessionPayload.model_validate(data))

        assert epochs.tolist() == [
            SleepStage.LIGHT,
            SleepStage.LIGHT,
            SleepStage.DEEP,
            SleepStage.DEEP,
            SleepStage.REM,
            SleepStage.REM,
            SleepStage.AWAKE,
            SleepStage.AWAKE,
        ]

    def test_uncovered_time_is_awake(self):
        epochs = stage_epochs(SleepSessionPayload.model_validate(payload(minutes=2)))
        assert epochs.tolist() == [SleepStage.AWAKE] * 4

    def test_out_of_bed_and_unclassified(self):
        data = payload(minutes=1, segments=[segment(0, 0.5, 2), segment(0.5, 0.5, 3)])

        epochs = stage_epochs(SleepSessionPayload.model_validate(data))

        assert epochs.tolist() == [SleepStage.LIGHT, SleepStage.AWAKE]

    def test_unknown_stage_ignored(self):
        data = payload(minutes=1, segments=[segment(0, 1, 99)])

        epochs = stage_epochs(SleepSessionPayload.model_validate(data))

        assert epochs.tolist() == [SleepStage.AWAKE] * 2


class TestDecode:
    def test_decodes_session(self, decoder, tmp_path):
        path = tmp_path / "sleep.json"
        path.write_text(json.dumps(payload(minutes=60, segments=[segment(0, 60, 4)])))

        batch = decoder.decode(path)

        assert batch.source_type == SourceType.HEALTH_API
        session = batch.sessions[0]
        assert session.source_id == "sleep-1"
        assert session.start_time == START
        assert session.end_time == START + timedelta(minutes=60)
        stages = session.signals[SignalNames.SLEEP_STAGES]
        assert stages.frequency == pytest.approx(1 / EPOCH_SECONDS)
        assert stages.sample_count == 120
        assert batch.events == []

    def test_invalid_json(self, decoder, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json")

        with pytest.raises(DecodeFailure, match="Cannot read"):
            decoder.decode(path)

    def test_missing_fields(self, decoder, tmp_path):
        path = tmp_path / "other.json"
        path.write_text(json.dumps({"id": "x"}))

        with pytest.raises(DecodeFailure, match="not a sleep session"):
            decoder.decode(path)

    def test_zero_duration(self, decoder, tmp_path):
        path = tmp_path / "empty.json"
        path.write_text(json.dumps(payload(minutes=0)))

        with pytest.raises(DecodeFailure, match="no duration"):
            decoder.decode(path)

    def test_out_of_range_timestamp(self, decoder, tmp_path):
        path = tmp_path / "future.json"
        path.write_text(
            json.dumps(
                {"startTimeMillis": 10**17, "endTimeMillis": 10**17 + 60_000}
            )
        )

        with pytest.raises(DecodeFailure, match="invalid session times"):
            decoder.decode(path)

    def test_implausibly_long_session(self, decoder, tmp_path):
        path = tmp_path / "week.json"
        path.write_text(json.dumps(payload(minutes=7 * 24 * 60)))

        with pytest.raises(DecodeFailure, match="more than 48 hours"):
            decoder.decode(path)
