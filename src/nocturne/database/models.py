"""
SQLAlchemy ORM models for the nocturne database.

Defines the persisted form of daily reports:
- Profiles and their daily reports
- Sessions with their sampled signals
- Reported events and per-signal day statistics
"""

from datetime import UTC, date, datetime
from typing import Any

import numpy as np

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from nocturne.database.types import SampleArray, ValidatedJSONWithDefault


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models."""

    pass


def utc_now() -> datetime:
    """Return current UTC timestamp for database defaults."""
    return datetime.now(UTC)


class Profile(Base):
    """User profile owning a set of daily reports."""

    __tablename__ = "profiles"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(100), unique=True)
    settings: Mapped[dict[str, Any]] = mapped_column(
        ValidatedJSONWithDefault, default=dict
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    days = relationship("Day", back_populates="profile", cascade="all, delete-orphan")

    __table_args__ = (CheckConstraint("length(username) > 0", name="chk_username"),)

    def __repr__(self) -> str:
        return f"<Profile(id={self.id}, username={self.username})>"


class Day(Base):
    """Daily report: every session and event recorded for one date."""

    __tablename__ = "days"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    profile_id: Mapped[int] = mapped_column(
        ForeignKey("profiles.id", ondelete="CASCADE")
    )
    date: Mapped[date] = mapped_column(Date)

    # Derived from sessions, cached for listing without loading sessions
    recording_start: Mapped[datetime | None] = mapped_column(DateTime)
    recording_end: Mapped[datetime | None] = mapped_column(DateTime)
    session_count: Mapped[int] = mapped_column(Integer, default=0)
    total_hours: Mapped[float] = mapped_column(Float, default=0.0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    profile = relationship("Profile", back_populates="days")
    sessions = relationship(
        "Session",
        back_populates="day",
        cascade="all, delete-orphan",
        order_by="Session.start_time",
    )
    events = relationship(
        "Event",
        back_populates="day",
        cascade="all, delete-orphan",
        order_by="Event.start_time",
    )
    statistics = relationship(
        "SignalStatistic",
        back_populates="day",
        cascade="all, delete-orphan",
        order_by="SignalStatistic.signal_name",
    )

    __table_args__ = (UniqueConstraint("profile_id", "date", name="uq_profile_date"),)

    def __repr__(self) -> str:
        return f"<Day(id={self.id}, profile_id={self.profile_id}, date={self.date})>"


class Session(Base):
    """A recorded session belonging to a daily report."""

    __tablename__ = "sessions"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    day_id: Mapped[int] = mapped_column(ForeignKey("days.id", ondelete="CASCADE"))
    source_type: Mapped[str] = mapped_column(String(32))
    source_id: Mapped[str] = mapped_column(String, default="")
    start_time: Mapped[datetime] = mapped_column(DateTime)
    end_time: Mapped[datetime] = mapped_column(DateTime)
    duration_seconds: Mapped[float | None] = mapped_column(Float)
    import_date: Mapped[datetime] = mapped_column(DateTime, default=utc_now)

    day = relationship("Day", back_populates="sessions")
    signals = relationship(
        "Signal", back_populates="session", cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint("end_time >= start_time", name="chk_time_range"),
        CheckConstraint(
            "duration_seconds IS NULL OR duration_seconds >= 0", name="chk_duration"
        ),
    )

    def __repr__(self) -> str:
        return f"<Session(id={self.id}, source={self.source_type}, start={self.start_time})>"


class Signal(Base):
    """Uniformly-sampled signal data for one session."""

    __tablename__ = "signals"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    session_id: Mapped[int] = mapped_column(
        ForeignKey("sessions.id", ondelete="CASCADE")
    )
    name: Mapped[str] = mapped_column(String)
    start_time: Mapped[datetime] = mapped_column(DateTime)
    frequency: Mapped[float] = mapped_column(Float)
    unit: Mapped[str | None] = mapped_column(String)
    min_value: Mapped[float | None] = mapped_column(Float)
    max_value: Mapped[float | None] = mapped_column(Float)
    sample_count: Mapped[int] = mapped_column(Integer, default=0)
    samples: Mapped[np.ndarray] = mapped_column(SampleArray)

    session = relationship("Session", back_populates="signals")

    __table_args__ = (
        UniqueConstraint("session_id", "name", name="uq_session_signal"),
        CheckConstraint("frequency > 0", name="chk_frequency"),
    )

    def __repr__(self) -> str:
        return f"<Signal(id={self.id}, session_id={self.session_id}, name={self.name})>"


class Event(Base):
    """Reported event attached to a daily report."""

    __tablename__ = "events"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    day_id: Mapped[int] = mapped_column(ForeignKey("days.id", ondelete="CASCADE"))
    event_type: Mapped[str] = mapped_column(String)
    source_type: Mapped[str | None] = mapped_column(String(32))
    start_time: Mapped[datetime] = mapped_column(DateTime)
    duration_seconds: Mapped[float] = mapped_column(Float, default=0.0)

    day = relationship("Day", back_populates="events")

    __table_args__ = (
        CheckConstraint("duration_seconds >= 0", name="chk_event_duration"),
    )

    def __repr__(self) -> str:
        return f"<Event(id={self.id}, day_id={self.day_id}, type={self.event_type}, start={self.start_time})>"


class SignalStatistic(Base):
    """Pre-calculated day-level statistics for one signal."""

    __tablename__ = "signal_statistics"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    day_id: Mapped[int] = mapped_column(ForeignKey("days.id", ondelete="CASCADE"))
    signal_name: Mapped[str] = mapped_column(String)
    unit: Mapped[str | None] = mapped_column(String)
    minimum: Mapped[float | None] = mapped_column(Float)
    maximum: Mapped[float | None] = mapped_column(Float)
    average: Mapped[float | None] = mapped_column(Float)
    median: Mapped[float | None] = mapped_column(Float)
    percentile_95: Mapped[float | None] = mapped_column(Float)
    percentile_995: Mapped[float | None] = mapped_column(Float)
    sample_count: Mapped[int] = mapped_column(Integer, default=0)

    day = relationship("Day", back_populates="statistics")

    __table_args__ = (
        UniqueConstraint("day_id", "signal_name", name="uq_day_signal"),
    )

    def __repr__(self) -> str:
        return f"<SignalStatistic(day_id={self.day_id}, signal={self.signal_name}, avg={self.average})>"
