"""
Tests for building the tracker from Django settings.
"""
from unittest.mock import MagicMock, patch

import pytest
import redis
from django.core.exceptions import ImproperlyConfigured

from throttler.conf import build_tracker, get_tracker, reset_tracker
from throttler.storage import InMemoryAdapter, RedisAdapter
from throttler.strategies import SimpleCounterStrategy, TokenBucketStrategy


class TestBuildTracker:

    def test_memory_counter_from_settings(self, tracker_settings):
        tracker_settings.EVENT_TRACKER = {
            'BACKEND': 'memory', 'PURGE_INTERVAL': 0, 'LIMIT': 3, 'DEFER_INTERVAL': 60, 'MAX_KEYS': 10,
        }
        tracker = build_tracker()
        try:
            assert isinstance(tracker.storage, InMemoryAdapter)
            assert isinstance(tracker.strategy, SimpleCounterStrategy)
            assert (tracker.limit, tracker.defer_interval, tracker.max_keys) == (3, 60, 10)
            assert not tracker.processor_running
        finally:
            tracker.destroy()

    def test_token_bucket_strategy(self):
        tracker = build_tracker({'STRATEGY': 'token_bucket', 'BUCKET_SIZE': 7, 'REFILL_RATE': 0.5})
        try:
            assert isinstance(tracker.strategy, TokenBucketStrategy)
            assert tracker.strategy.bucket_size == 7
            assert tracker.strategy.refill_rate == 0.5
        finally:
            tracker.destroy()

    def test_redis_backend(self):
        tracker = build_tracker({'BACKEND': 'redis', 'REDIS_URL': 'redis://localhost:6379/5', 'KEY_PREFIX': 'x:'})
        assert isinstance(tracker.storage, RedisAdapter)
        assert tracker.storage.deferred_set_key == 'x:deferred-set'
        tracker.destroy()

    def test_redis_backend_requires_url(self):
        with pytest.raises(ImproperlyConfigured):
            build_tracker({'BACKEND': 'redis', 'REDIS_URL': None})

    @pytest.mark.parametrize("overrides", [{'BACKEND': 'memcached'}, {'STRATEGY': 'leaky_bucket'}])
    def test_unknown_choices(self, overrides):
        with pytest.raises(ImproperlyConfigured):
            build_tracker(overrides)


class TestGetTracker:

    def test_is_cached(self):
        assert get_tracker() is get_tracker()

    def test_rebuilt_when_settings_change(self, tracker_settings):
        first = get_tracker()
        tracker_settings.EVENT_TRACKER = {'BACKEND': 'memory', 'PURGE_INTERVAL': 0, 'LIMIT': 1}

        second = get_tracker()
        assert second is not first
        assert second.limit == 1

    def test_reset_closes_redis_client(self, tracker_settings):
        client = MagicMock(spec=redis.Redis)
        tracker_settings.EVENT_TRACKER = {'BACKEND': 'redis', 'REDIS_URL': 'redis://localhost:6379/5'}

        with patch('throttler.conf.redis.Redis.from_url', return_value=client):
            tracker = get_tracker()
        assert tracker.storage.redis is client

        reset_tracker()

        client.close.assert_called_once()

    def test_reset_memory_tracker(self):
        tracker = get_tracker()

        reset_tracker()

        assert get_tracker() is not tracker
