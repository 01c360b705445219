"""
Integration test fixtures: in-memory hosted store wired to an in-memory
change feed, and a notifier that records instead of logging.
"""

import pytest

from dayplan_sync.notify import RecordingNotifier
from dayplan_sync.persistence import InMemoryPersistence
from dayplan_sync.stream import InMemoryChangeFeed


class FakeSleep:
    """Records retry delays instead of waiting."""

    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


@pytest.fixture
def feed():
    """Create a fresh change feed."""
    return InMemoryChangeFeed()


@pytest.fixture
def api(feed):
    """Create an in-memory store publishing to ``feed``."""
    return InMemoryPersistence(feed)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def sleep():
    return FakeSleep()
