"""
Device day loader.

Reads daily reports that a device loader has already assembled (one JSON
document per file holding a report or a list of reports) so they can seed the
store. Oximetry and sleep-stage imports only ever merge into days that exist,
so this is how days get created.
"""

import json
import logging

from collections.abc import Iterable
from datetime import date
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from nocturne.exceptions import DecodeFailure
from nocturne.models.day import DailyReport

logger = logging.getLogger(__name__)

_REPORTS = TypeAdapter(DailyReport | list[DailyReport])


def load_device_days(path: Path) -> list[DailyReport]:
    """
    Load the daily reports stored in one file.

    Sessions and events are put in time order and day-level statistics are
    recalculated for every signal the sessions carry, so files never have to
    ship statistics of their own.

    Raises:
        DecodeFailure: If the file cannot be read or holds no valid reports
    """
    try:
        with open(path, encoding="utf-8") as f:
            raw = json.load(f)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise DecodeFailure(f"Cannot read {path.name}: {e}", path) from e

    try:
        loaded = _REPORTS.validate_python(raw)
    except ValidationError as e:
        raise DecodeFailure(f"{path.name} is not a daily report: {e}", path) from e

    days = loaded if isinstance(loaded, list) else [loaded]
    if not days:
        raise DecodeFailure(f"{path.name} contains no daily reports", path)

    for day in days:
        day.statistics = []
        day.sessions.sort(key=lambda s: s.start_time)
        day.sort_events()
        for name in sorted(day.signal_names()):
            day.update_signal_statistics(name)

    logger.info(f"Loaded {len(days)} device day(s) from {path.name}")
    return days


def load_all_device_days(
    paths: Iterable[Path],
) -> tuple[list[DailyReport], list[DecodeFailure]]:
    """
    Load several files, isolating failures per file.

    A date present in more than one file keeps the report read last.

    Returns:
        Tuple of (reports ordered by date, load failures)
    """
    by_date: dict[date, DailyReport] = {}
    failures: list[DecodeFailure] = []

    for path in paths:
        path = Path(path)
        try:
            days = load_device_days(path)
        except DecodeFailure as e:
            logger.warning(f"Skipping {path.name}: {e}")
            failures.append(e)
            continue
        for day in days:
            if day.report_date in by_date:
                logger.warning(f"{path.name} replaces {day.report_date}")
            by_date[day.report_date] = day

    return [by_date[d] for d in sorted(by_date)], failures
