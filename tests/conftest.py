"""
Pytest fixtures for EVStats tests.
"""

import os
from datetime import datetime, timezone

import pytest

# Pin the environment BEFORE importing the app so Config picks it up
os.environ['FLASK_TESTING'] = 'true'
os.environ['TIMEZONE'] = 'UTC'

from evstats.app import create_app  # noqa: E402
from evstats.models import Settings  # noqa: E402

from tests.factories import ChargeFactory, commute_history  # noqa: E402


@pytest.fixture
def app():
    """Create application for testing (NullCache, no Redis)."""
    flask_app = create_app(testing=True)
    yield flask_app


@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture
def settings():
    """Settings for a 60 kWh car on the default tariff."""
    return Settings(battery_size=60.0)


@pytest.fixture
def commute_trips():
    """Four weeks of Monday-Friday commutes starting Monday 2024-01-01 (UTC)."""
    return commute_history(weeks=4, start=datetime(2024, 1, 1, tzinfo=timezone.utc))


@pytest.fixture
def plan_now():
    """Reference time for scheduling: Monday 2024-02-05 12:00 UTC."""
    return datetime(2024, 2, 5, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def nominal_charges():
    """Deep charges whose implied capacity equals a 60 kWh nominal battery."""
    return [
        ChargeFactory.build_for_capacity(60.0, 20, 80, date=f"2024-{month:02d}-10", id=f"c{month}")
        for month in range(1, 9)
    ]
