"""
SQLAlchemy-backed DayRepository.

Converts between ORM rows and DailyReport domain models. Every report
handed out by load_day is a detached in-memory copy: mutating it has no
effect on the database until save_day is called, and a rollback discards
whatever was saved during the transaction.
"""

import logging

from datetime import date

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session as DBSession
from sqlalchemy.orm import sessionmaker

from nocturne.constants import SECONDS_PER_HOUR, SourceType
from nocturne.database import models
from nocturne.database.session import get_session_factory
from nocturne.exceptions import StoreFailure
from nocturne.models.day import DailyReport
from nocturne.models.unified import ReportedEvent, Session, Signal, SignalStatistics

logger = logging.getLogger(__name__)


class SqlDayRepository:
    """Stores daily reports in the nocturne SQLite database."""

    def __init__(self, session_factory: sessionmaker[DBSession] | None = None):
        """
        Initialize repository.

        Args:
            session_factory: Factory for database sessions. Defaults to the
                factory configured by init_database().
        """
        self._session_factory = session_factory
        self._db: DBSession | None = None

    @property
    def in_transaction(self) -> bool:
        return self._db is not None

    def begin(self) -> None:
        if self._db is not None:
            raise StoreFailure("A transaction is already active")
        factory = self._session_factory or get_session_factory()
        self._db = factory()
        logger.debug("Began import transaction")

    def commit(self) -> None:
        db = self._require_session()
        try:
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise StoreFailure(f"Failed to commit import: {e}") from e
        finally:
            db.close()
            self._db = None
        logger.debug("Committed import transaction")

    def rollback(self) -> None:
        if self._db is None:
            return
        try:
            self._db.rollback()
        finally:
            self._db.close()
            self._db = None
        logger.info("Rolled back import transaction")

    def load_day(self, profile_id: int, day_date: date) -> DailyReport | None:
        db = self._require_session()
        try:
            row = db.execute(
                select(models.Day).filter_by(profile_id=profile_id, date=day_date)
            ).scalar_one_or_none()
            if row is None:
                return None
            return self._to_report(row)
        except SQLAlchemyError as e:
            raise StoreFailure(f"Failed to load {day_date}: {e}", day_date) from e

    def save_day(self, profile_id: int, day: DailyReport) -> None:
        """
        Write a daily report, replacing the stored sessions, events and
        statistics for that date. Creates the day row if needed.
        """
        db = self._require_session()
        try:
            row = db.execute(
                select(models.Day).filter_by(
                    profile_id=profile_id, date=day.report_date
                )
            ).scalar_one_or_none()
            if row is None:
                row = models.Day(profile_id=profile_id, date=day.report_date)
                db.add(row)
            else:
                # Flush the removals first so replacement rows cannot collide
                # with the unique constraints of the rows they replace
                row.sessions.clear()
                row.events.clear()
                row.statistics.clear()
                db.flush()

            row.recording_start = day.recording_start_time
            row.recording_end = day.recording_end_time
            row.session_count = len(day.sessions)
            row.total_hours = day.total_time_seconds / SECONDS_PER_HOUR
            row.sessions = [self._session_row(s) for s in day.sessions]
            row.events = [self._event_row(e) for e in day.events]
            row.statistics = [self._statistic_row(s) for s in day.statistics]
            db.flush()
        except SQLAlchemyError as e:
            raise StoreFailure(
                f"Failed to save {day.report_date}: {e}", day.report_date
            ) from e

        logger.debug(
            f"Saved {day.report_date} ({len(day.sessions)} sessions, "
            f"{len(day.events)} events)"
        )

    def get_most_recent_stored_date(self, profile_id: int) -> date | None:
        db = self._require_session()
        try:
            return db.execute(
                select(func.max(models.Day.date)).where(
                    models.Day.profile_id == profile_id,
                    models.Day.session_count > 0,
                )
            ).scalar_one_or_none()
        except SQLAlchemyError as e:
            raise StoreFailure(f"Failed to query most recent date: {e}") from e

    def _require_session(self) -> DBSession:
        if self._db is None:
            raise StoreFailure("No active transaction. Call begin() first.")
        return self._db

    @staticmethod
    def _to_report(row: models.Day) -> DailyReport:
        sessions = [
            Session(
                source_type=SourceType(s.source_type),
                source_id=s.source_id,
                start_time=s.start_time,
                end_time=s.end_time,
                signals={
                    sig.name: Signal(
                        name=sig.name,
                        start_time=sig.start_time,
                        frequency=sig.frequency,
                        samples=sig.samples,
                        unit=sig.unit or "",
                        min_value=sig.min_value,
                        max_value=sig.max_value,
                    )
                    for sig in s.signals
                },
            )
            for s in row.sessions
        ]
        events = [
            ReportedEvent(
                event_type=e.event_type,
                start_time=e.start_time,
                duration_seconds=e.duration_seconds,
                source_type=SourceType(e.source_type) if e.source_type else None,
            )
            for e in row.events
        ]
        statistics = [
            SignalStatistics(
                signal_name=st.signal_name,
                unit=st.unit or "",
                minimum=st.minimum,
                maximum=st.maximum,
                average=st.average,
                median=st.median,
                percentile_95=st.percentile_95,
                percentile_995=st.percentile_995,
                sample_count=st.sample_count,
            )
            for st in row.statistics
        ]
        return DailyReport(
            report_date=row.date,
            sessions=sessions,
            events=events,
            statistics=statistics,
        )

    @staticmethod
    def _session_row(session: Session) -> models.Session:
        return models.Session(
            source_type=session.source_type.value,
            source_id=session.source_id,
            start_time=session.start_time,
            end_time=session.end_time,
            duration_seconds=session.duration_seconds,
            signals=[
                models.Signal(
                    name=sig.name,
                    start_time=sig.start_time,
                    frequency=sig.frequency,
                    unit=sig.unit,
                    min_value=sig.min_value,
                    max_value=sig.max_value,
                    sample_count=sig.sample_count,
                    samples=sig.samples,
                )
                for sig in session.signals.values()
            ],
        )

    @staticmethod
    def _event_row(event: ReportedEvent) -> models.Event:
        return models.Event(
            event_type=event.event_type,
            source_type=event.source_type.value if event.source_type else None,
            start_time=event.start_time,
            duration_seconds=event.duration_seconds,
        )

    @staticmethod
    def _statistic_row(stats: SignalStatistics) -> models.SignalStatistic:
        return models.SignalStatistic(
            signal_name=stats.signal_name,
            unit=stats.unit,
            minimum=stats.minimum,
            maximum=stats.maximum,
            average=stats.average,
            median=stats.median,
            percentile_95=stats.percentile_95,
            percentile_995=stats.percentile_995,
            sample_count=stats.sample_count,
        )
