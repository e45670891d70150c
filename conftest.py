"""Pytest configuration for GradeCenter Data."""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine

from gradecenter_data import DataConfig, GradeCenterDatabase


class FakeClock:
    """Clock that moves one minute forward every time it is read."""

    def __init__(self, start=None, step=timedelta(minutes=1)):
        self.current = start or datetime(2024, 9, 15, 8, 0, tzinfo=timezone.utc)
        self.step = step
        self.calls = []

    def __call__(self):
        self.current = self.current + self.step
        self.calls.append(self.current)
        return self.current

    @property
    def last(self):
        return self.calls[-1]


def pytest_configure(config):
    """Configure pytest with custom settings."""
    config.addinivalue_line("markers", "scenario: end-to-end unit of work scenario")


@pytest.fixture
def clock():
    """Deterministic source of audit timestamps."""
    return FakeClock()


@pytest.fixture
def test_config():
    """Configuration pointing at an in-memory SQLite database."""
    return DataConfig(database_url="sqlite://", environment="testing")


@pytest.fixture
def database(test_config, clock):
    """In-memory database with the full schema."""
    engine = create_engine(test_config.database_url)
    db = GradeCenterDatabase(engine=engine, config=test_config, clock=clock)
    db.create_all()

    yield db

    db.drop_all()
    db.dispose()


@pytest.fixture
def ctx(database):
    """A unit of work on the in-memory database."""
    context = database.context()
    yield context
    context.close()
