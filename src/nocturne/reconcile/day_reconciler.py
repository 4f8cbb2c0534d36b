"""
Day reconciliation: merge candidate meta-sessions into one daily report.

The reconciler works on the in-memory DailyReport it is handed and never
touches storage; the coordinator decides whether to save the result.
"""

import logging

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date

from nocturne.constants import (
    ANCHOR_SOURCE_TYPES,
    PHYSIOLOGICAL_SIGNALS,
    SignalNames,
)
from nocturne.models.day import DailyReport
from nocturne.models.unified import ImportBatch, ReportedEvent, Session
from nocturne.reconcile.grouping import MetaSession
from nocturne.reconcile.matcher import find_first, find_last_by_key, has_duplicate
from nocturne.reconcile.splicer import (
    FillerPolicy,
    SpliceDirection,
    SpliceResult,
    splice_signal,
)

logger = logging.getLogger(__name__)


@dataclass
class DayMergeResult:
    """What a single day's reconciliation pass changed."""

    report_date: date
    added_sessions: list[Session] = field(default_factory=list)
    added_events: list[ReportedEvent] = field(default_factory=list)
    splices: list[SpliceResult] = field(default_factory=list)
    recomputed_signals: list[str] = field(default_factory=list)

    @property
    def modified(self) -> bool:
        return bool(self.added_sessions)


class DayReconciler:
    """Merges imported sessions and events into an existing daily report."""

    def __init__(self, filler_policy: FillerPolicy | None = None):
        """
        Initialize reconciler.

        Args:
            filler_policy: Filler values used when splicing signals. Defaults
                to the built-in policy (sleep stages padded with "awake").
        """
        self.filler_policy = filler_policy or FillerPolicy()

    def merge(
        self, day: DailyReport, meta_sessions: Iterable[MetaSession]
    ) -> DayMergeResult:
        """
        Merge every non-duplicate session of the candidate meta-sessions.

        Incoming sessions are copied before they are spliced or attached, so
        the import batches are left untouched and can be reconciled against
        several days.

        Args:
            day: Daily report to mutate in place
            meta_sessions: Meta-sessions overlapping the day's recording range

        Returns:
            DayMergeResult; ``modified`` is False when nothing was added
        """
        result = DayMergeResult(report_date=day.report_date)

        for meta_session in meta_sessions:
            for batch in meta_session.items:
                for session in batch.sessions:
                    self._merge_session(day, batch, session, result)

        if result.modified:
            result.recomputed_signals = self._refresh_statistics(day, result)
            day.sort_events()
            logger.info(
                f"Merged {len(result.added_sessions)} sessions and "
                f"{len(result.added_events)} events into {day.report_date}"
            )
        else:
            logger.debug(f"No new sessions for {day.report_date}")

        return result

    def _merge_session(
        self,
        day: DailyReport,
        batch: ImportBatch,
        session: Session,
        result: DayMergeResult,
    ) -> None:
        if has_duplicate(day, session):
            logger.debug(
                f"Skipping {session.source_type.value} session from {batch.source} "
                f"at {session.start_time}: already present"
            )
            return

        incoming = session.model_copy(deep=True)
        original_start = incoming.start_time
        original_end = incoming.end_time

        result.splices.extend(self.align_sleep_stages(day, incoming))
        day.add_session(incoming)

        events = [
            event.model_copy()
            for event in batch.events
            if original_start <= event.start_time < original_end
        ]
        day.events.extend(events)

        result.added_sessions.append(incoming)
        result.added_events.extend(events)

    def align_sleep_stages(
        self, day: DailyReport, session: Session
    ) -> list[SpliceResult]:
        """
        Pad a session's sleep-stage signal out to overlapping anchor sessions.

        The backward anchor is the earliest-starting CPAP or oximetry session
        that strictly contains the signal's start; the forward anchor is the
        latest-ending one that strictly contains the signal's end. Each found
        anchor extends the signal with "awake" samples, then the session's
        bounds are widened to cover the signal.

        Args:
            day: Daily report holding the candidate anchor sessions
            session: Incoming session (modified in place)

        Returns:
            The splices that added samples
        """
        signal = session.get_signal(SignalNames.SLEEP_STAGES)
        if signal is None:
            return []

        filler = self.filler_policy.filler_for(signal.name)
        anchors = [s for s in day.sessions if s.source_type in ANCHOR_SOURCE_TYPES]
        splices: list[SpliceResult] = []

        signal_start = signal.start_time
        backward = find_first(
            anchors,
            lambda s: s.start_time < signal_start < s.end_time,
            key=lambda s: s.start_time,
        )
        if backward is not None:
            splices.append(
                splice_signal(
                    signal, backward.start_time, SpliceDirection.EXTEND_START, filler
                )
            )

        signal_end = signal.end_time
        forward = find_last_by_key(
            anchors,
            lambda s: s.start_time < signal_end < s.end_time,
            key=lambda s: s.end_time,
        )
        if forward is not None:
            splices.append(
                splice_signal(
                    signal, forward.end_time, SpliceDirection.EXTEND_END, filler
                )
            )

        session.recompute_bounds()
        return [s for s in splices if s.changed]

    @staticmethod
    def _refresh_statistics(day: DailyReport, result: DayMergeResult) -> list[str]:
        names = set(PHYSIOLOGICAL_SIGNALS)
        for session in result.added_sessions:
            names.update(session.signals)

        recomputed = sorted(names)
        for name in recomputed:
            day.update_signal_statistics(name)
        return recomputed
