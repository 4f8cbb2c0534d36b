"""Pytest configuration and fixtures for nocturne tests."""

from datetime import date, datetime

import pytest


def pytest_configure(config):
    """Register custom test markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests that do not require external dependencies"
    )
    config.addinivalue_line("markers", "decoder: Tests for source decoders")
    config.addinivalue_line(
        "markers", "business_logic: Tests for core business logic and algorithms"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests combining multiple components"
    )


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Point config and log files at a temporary home directory."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setattr("nocturne.logging_config.DEFAULT_LOG_DIR", home / "logs")
    return home


# =============================================================================
# Database Test Fixtures
# =============================================================================


@pytest.fixture
def temp_db(tmp_path):
    """Path of a temporary database file."""
    return tmp_path / f"test_nocturne_{datetime.now().timestamp()}.db"


@pytest.fixture
def initialized_db(temp_db):
    """Initialize the global session factory on a fresh temporary database."""
    from nocturne.database.session import cleanup_database, init_database

    cleanup_database()
    init_database(str(temp_db))

    yield temp_db

    # Dispose engine and reset global session factory
    cleanup_database()


@pytest.fixture
def profile_id(initialized_db):
    """Create a test profile and return its id."""
    from nocturne.database.models import Profile
    from nocturne.database.session import session_scope

    with session_scope() as session:
        profile = Profile(username="test_user", settings={})
        session.add(profile)
        session.flush()
        return profile.id


@pytest.fixture
def repository(initialized_db):
    """SqlDayRepository bound to the temporary database."""
    from nocturne.database.repository import SqlDayRepository
    from nocturne.database.session import get_session_factory

    return SqlDayRepository(get_session_factory())


@pytest.fixture
def stored_day_factory(repository, profile_id):
    """
    Factory for saving daily reports directly to the test database.

    Usage:
        stored_day_factory(date(2024, 1, 1), [device_session(...)])
    """
    from nocturne.models.day import DailyReport
    from nocturne.reconcile.repository import transaction

    def _store(report_date: date, sessions, events=None) -> DailyReport:
        day = DailyReport(
            report_date=report_date, sessions=list(sessions), events=events or []
        )
        with transaction(repository) as repo:
            repo.save_day(profile_id, day)
        return day

    return _store
