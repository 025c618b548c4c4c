"""
Shared fixtures: a controllable clock and trackers bound to it.
"""
import pytest

from throttler.conf import reset_tracker
from throttler.logic import EventTracker
from throttler.storage import InMemoryAdapter


class FakeClock:
    def __init__(self, start=1_700_000_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def storage(clock):
    adapter = InMemoryAdapter(purge_interval=0, clock=clock)
    yield adapter
    adapter.destroy()


@pytest.fixture
def make_tracker(clock, storage):
    trackers = []

    def factory(**kwargs):
        kwargs.setdefault('storage', storage)
        kwargs.setdefault('clock', clock)
        tracker = EventTracker(**kwargs)
        trackers.append(tracker)
        return tracker

    yield factory
    for tracker in trackers:
        tracker.destroy()


@pytest.fixture(autouse=True)
def tracker_settings(settings):
    settings.EVENT_TRACKER = {
        'BACKEND': 'memory',
        'PURGE_INTERVAL': 0,
        'STRATEGY': 'counter',
        'LIMIT': 5,
        'DEFER_INTERVAL': 3600,
    }
    yield settings
    reset_tracker()
