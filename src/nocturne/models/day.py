"""Daily report model: the unit of persistence."""

import logging

from datetime import date, datetime

from pydantic import BaseModel, Field

from nocturne.analysis.statistics import calculate_signal_statistics
from nocturne.models.unified import ReportedEvent, Session, SignalStatistics

logger = logging.getLogger(__name__)


class DailyReport(BaseModel):
    """
    All sessions and events recorded for one calendar date.

    Recording start and end are derived from the sessions rather than stored
    independently, so they can never disagree with the session list.
    """

    report_date: date = Field(description="Calendar date of the report")
    sessions: list[Session] = Field(default_factory=list)
    events: list[ReportedEvent] = Field(default_factory=list)
    statistics: list[SignalStatistics] = Field(default_factory=list)

    @property
    def recording_start_time(self) -> datetime | None:
        if not self.sessions:
            return None
        return min(s.start_time for s in self.sessions)

    @property
    def recording_end_time(self) -> datetime | None:
        if not self.sessions:
            return None
        return max(s.end_time for s in self.sessions)

    @property
    def total_time_seconds(self) -> float:
        return sum(s.duration_seconds for s in self.sessions)

    @property
    def has_data(self) -> bool:
        return bool(self.sessions)

    def add_session(self, session: Session) -> None:
        """Add a session, keeping the session list ordered by start time."""
        self.sessions.append(session)
        self.sessions.sort(key=lambda s: s.start_time)

    def sort_events(self) -> None:
        self.events.sort(key=lambda e: e.start_time)

    def signal_names(self) -> set[str]:
        return {name for s in self.sessions for name in s.signals}

    def get_statistics(self, signal_name: str) -> SignalStatistics | None:
        for stats in self.statistics:
            if stats.signal_name == signal_name:
                return stats
        return None

    def update_signal_statistics(self, signal_name: str) -> None:
        """
        Recalculate the day-level statistics for one signal.

        Replaces any existing entry; removes it when no session carries the
        signal any more.
        """
        signals = [
            s.signals[signal_name] for s in self.sessions if signal_name in s.signals
        ]
        stats = calculate_signal_statistics(signal_name, signals)

        self.statistics = [
            s for s in self.statistics if s.signal_name != signal_name
        ]
        if stats is not None:
            self.statistics.append(stats)
            self.statistics.sort(key=lambda s: s.signal_name)

        logger.debug(f"Updated {signal_name} statistics for {self.report_date}")
