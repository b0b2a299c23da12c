"""
Pytest configuration and fixtures for Radio Tracker tests

Provides a temporary seeded database, a recording notifier, a controllable
clock and a wired PlayRecorder. No test touches the network.
"""

import pytest
import tempfile
import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from radio_tracker.database import TrackerDatabase
from radio_tracker.plays import PlayRecorder

# Wednesday, inside work hours (UTC)
WORK_HOURS_NOW = datetime(2026, 10, 14, 10, 30, tzinfo=timezone.utc)
# Saturday
WEEKEND_NOW = datetime(2026, 10, 17, 10, 30, tzinfo=timezone.utc)

TEST_SETTINGS = {
    'duplicate_alert': {
        'enabled': True,
        'start_hour': 9,
        'end_hour': 17,
        'timezone': 'UTC',
    },
    'scraping': {
        'timeout_seconds': 2,
        'icy_timeout_seconds': 2,
        'page_load_timeout_seconds': 2,
        'user_agent': 'test-agent',
        'page_base_url': 'https://radio.test/radio/',
        'json_api_base_url': 'https://api.test/live-meta/stream/',
        'browser_executable': None,
    },
}


class RecordingNotifier:
    """Notifier that keeps every emitted event"""

    def __init__(self):
        self.events = []

    def emit(self, channel, event, payload):
        self.events.append((channel, event, payload))
        return 1

    def named(self, event):
        return [e for e in self.events if e[1] == event]


class FakeClock:
    """Callable clock that only moves when told to"""

    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def test_db_path():
    """Provide a temporary database file path"""
    fd, path = tempfile.mkstemp(suffix='.db')
    os.close(fd)
    yield path
    # Cleanup
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass


@pytest.fixture
def empty_db(test_db_path):
    """Provide a connected database with schema and no rows"""
    db = TrackerDatabase(test_db_path)
    db.connect()
    yield db
    db.close()


@pytest.fixture
def test_db(empty_db):
    """Provide a test database seeded with four stations

    Stations:
    - zm: ICY, every 60s
    - the-rock: page-scrape (page slug the-rock), every 60s
    - radio-hauraki: json-api (feed 6191), every 60s
    - newstalk-zb: ICY, every 120s
    """
    empty_db.add_station('zm', 'ZM', 'http://stream.test/zm', 'icy', scrape_interval=60)
    empty_db.add_station('the-rock', 'The Rock', 'http://stream.test/rock', 'page-scrape',
                         metadata_config={'page_slug': 'the-rock'}, scrape_interval=60)
    empty_db.add_station('radio-hauraki', 'Radio Hauraki', 'http://stream.test/hauraki', 'json-api',
                         metadata_config={'feed_id': 6191}, scrape_interval=60)
    empty_db.add_station('newstalk-zb', 'Newstalk ZB', 'http://stream.test/zb', 'icy',
                         scrape_interval=120)
    yield empty_db


@pytest.fixture
def zm(test_db):
    return test_db.get_station_by_slug('zm')


@pytest.fixture
def the_rock(test_db):
    return test_db.get_station_by_slug('the-rock')


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def clock():
    return FakeClock(WORK_HOURS_NOW)


@pytest.fixture
def recorder(test_db, notifier, clock):
    """PlayRecorder wired to the test database, recording notifier and fake clock"""
    return PlayRecorder(test_db, notifier, TEST_SETTINGS, clock=clock)


# Pytest configuration
def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
