
import logging
import threading
from typing import Any, Dict, Optional

import redis
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.core.signals import setting_changed
from django.dispatch import receiver

from .logic import (
    DEFAULT_DEFER_INTERVAL, DEFAULT_EXPIRE_TIME, DEFAULT_LIMIT,
    DEFAULT_PROCESSING_INTERVAL, EventTracker,
)
from .storage import InMemoryAdapter, RedisAdapter
from .storage.memory import DEFAULT_PURGE_INTERVAL
from .storage.redis_adapter import KEY_PREFIX
from .strategies import SimpleCounterStrategy, TokenBucketStrategy
from .strategies.token_bucket import DEFAULT_BUCKET_SIZE, DEFAULT_REFILL_RATE


logger = logging.getLogger(__name__)

DEFAULTS: Dict[str, Any] = {
    'BACKEND': 'redis',
    'REDIS_URL': None,
    'KEY_PREFIX': KEY_PREFIX,
    'STRATEGY': 'counter',
    'LIMIT': DEFAULT_LIMIT,
    'DEFER_INTERVAL': DEFAULT_DEFER_INTERVAL,
    'EXPIRE_TIME': DEFAULT_EXPIRE_TIME,
    'MAX_KEYS': 0,
    'BUCKET_SIZE': DEFAULT_BUCKET_SIZE,
    'REFILL_RATE': DEFAULT_REFILL_RATE,
    'PURGE_INTERVAL': DEFAULT_PURGE_INTERVAL,
    'PROCESSING_INTERVAL': DEFAULT_PROCESSING_INTERVAL,
}

_tracker: Optional[EventTracker] = None
_tracker_lock = threading.Lock()


def get_options(overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    options = dict(DEFAULTS)
    options.update(getattr(settings, 'EVENT_TRACKER', {}) or {})
    options.update(overrides or {})
    return options


def build_storage(options: Dict[str, Any]):
    backend = options['BACKEND']
    if backend == 'memory':
        return InMemoryAdapter(purge_interval=options['PURGE_INTERVAL'])
    if backend == 'redis':
        if not options['REDIS_URL']:
            raise ImproperlyConfigured("EVENT_TRACKER['REDIS_URL'] обязателен для BACKEND='redis'")
        client = redis.Redis.from_url(options['REDIS_URL'], decode_responses=True)
        return RedisAdapter(redis_client=client, key_prefix=options['KEY_PREFIX'])
    raise ImproperlyConfigured(f"Неизвестный EVENT_TRACKER['BACKEND']: {backend}")


def build_strategy(options: Dict[str, Any]):
    strategy = options['STRATEGY']
    if strategy == 'counter':
        return SimpleCounterStrategy()
    if strategy == 'token_bucket':
        return TokenBucketStrategy(bucket_size=options['BUCKET_SIZE'], refill_rate=options['REFILL_RATE'])
    raise ImproperlyConfigured(f"Неизвестная EVENT_TRACKER['STRATEGY']: {strategy}")


def build_tracker(overrides: Optional[Dict[str, Any]] = None) -> EventTracker:
    """
    Собирает трекер из settings.EVENT_TRACKER.

    Фоновый поток здесь не запускается: в сервисе отложенные события
    выгружает периодическая задача Celery beat.
    """
    options = get_options(overrides)
    return EventTracker(
        limit=options['LIMIT'],
        defer_interval=options['DEFER_INTERVAL'],
        expire_time=options['EXPIRE_TIME'],
        max_keys=options['MAX_KEYS'],
        storage=build_storage(options),
        strategy=build_strategy(options),
        processing_interval=options['PROCESSING_INTERVAL'],
    )


def get_tracker() -> EventTracker:
    global _tracker
    with _tracker_lock:
        if _tracker is None:
            _tracker = build_tracker()
            logger.info("EventTracker инициализирован из settings.EVENT_TRACKER")
        return _tracker


def reset_tracker() -> None:
    global _tracker
    with _tracker_lock:
        if _tracker is not None:
            _tracker.destroy()
            # клиент Redis создан в build_storage, закрываем его пул соединений
            if isinstance(_tracker.storage, RedisAdapter):
                _tracker.storage.redis.close()
        _tracker = None


@receiver(setting_changed)
def _reset_on_settings_change(sender, setting, **kwargs):
    if setting == 'EVENT_TRACKER':
        reset_tracker()
