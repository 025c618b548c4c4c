
import logging
import threading
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

from django.dispatch import Signal

from . import signals
from .keys import composite_key, details_fingerprint
from .records import (
    DEFERRED, IGNORED, IMMEDIATE, KEY_LIMIT_REACHED,
    EventRecord, Occurrence, Policy, TrackResult,
)
from .storage import InMemoryAdapter
from .strategies import SimpleCounterStrategy, validate_config


logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 5
DEFAULT_DEFER_INTERVAL = 60 * 60  # 1 час
DEFAULT_EXPIRE_TIME = 24 * 60 * 60  # 24 часа
DEFAULT_PROCESSING_INTERVAL = 10

OUTCOME_SIGNALS = {
    IMMEDIATE: signals.event_immediate,
    DEFERRED: signals.event_deferred,
    IGNORED: signals.event_ignored,
}


class EventTracker:
    """
    Решает для каждого события: отправить сразу, отложить или отбросить.

    Каждый вызов это одна последовательность чтение-решение-запись в хранилище;
    сам трекер вызовы не сериализует. С общим хранилищем два одновременных
    вызова по одному ключу могут прочитать одну и ту же запись, и побеждает
    последняя запись.

    Если передан `on_deferred_event_due`, фоновый поток каждые
    `processing_interval` секунд выгружает созревшие отложенные записи и
    передаёт ему каждую непустую пачку.
    """

    generate_composite_key = staticmethod(composite_key)
    generate_details_hash = staticmethod(details_fingerprint)

    def __init__(self,
                 limit: int = DEFAULT_LIMIT,
                 defer_interval: float = DEFAULT_DEFER_INTERVAL,
                 expire_time: float = DEFAULT_EXPIRE_TIME,
                 max_keys: int = 0,
                 storage=None,
                 strategy=None,
                 on_deferred_event_due: Optional[Callable[[List[EventRecord]], Any]] = None,
                 processing_interval: float = DEFAULT_PROCESSING_INTERVAL,
                 clock: Callable[[], float] = time.time):

        if not isinstance(limit, int) or limit < 0:
            raise ValueError("limit должен быть неотрицательным целым числом")
        if not isinstance(max_keys, int) or max_keys < 0:
            raise ValueError("max_keys должен быть неотрицательным целым числом")
        if defer_interval < 0 or expire_time < 0:
            raise ValueError("defer_interval и expire_time не могут быть отрицательными")
        if processing_interval <= 0:
            raise ValueError("processing_interval должен быть больше нуля")

        self.limit = limit
        self.defer_interval = defer_interval
        self.expire_time = expire_time
        self.max_keys = max_keys
        self.storage = storage if storage is not None else InMemoryAdapter()
        self.strategy = strategy if strategy is not None else SimpleCounterStrategy()
        self.on_deferred_event_due = on_deferred_event_due
        self.processing_interval = processing_interval
        self._clock = clock

        self._closed = False
        self._receivers: List[Tuple[Signal, Callable]] = []
        self._stop_event = threading.Event()
        self._processor_thread: Optional[threading.Thread] = None

        if callable(on_deferred_event_due):
            self.start_processor()

    @property
    def policy(self) -> Policy:
        return Policy(limit=self.limit, defer_interval=self.defer_interval, expire_time=self.expire_time)

    @property
    def processor_running(self) -> bool:
        return self._processor_thread is not None and self._processor_thread.is_alive()

    # --- уведомления ---

    def subscribe(self, name: str, receiver: Callable) -> None:
        """Подписывает receiver на уведомление `name` только от этого трекера."""
        try:
            signal = signals.NOTIFICATIONS[name]
        except KeyError:
            raise ValueError(f"Неизвестное уведомление: {name}")
        signal.connect(receiver, sender=self, weak=False)
        self._receivers.append((signal, receiver))

    def _emit(self, signal: Signal, robust: bool = False, **kwargs) -> None:
        if self._closed:
            return
        if robust:
            signal.send_robust(sender=self, **kwargs)
        else:
            signal.send(sender=self, **kwargs)

    # --- основные операции ---

    def track_event(self, category: str, identifier: str, details: Any = None) -> TrackResult:
        key = composite_key(category, identifier)
        fingerprint = details_fingerprint(details)
        now = self._clock()

        record = self.storage.get(key)
        if record is not None and (record.is_expired(now) or record.details_fingerprint != fingerprint):
            logger.debug(f"Запись {key} устарела или изменилась, начинаем заново")
            record = None

        if record is None and self.max_keys > 0 and self.storage.size() >= self.max_keys:
            logger.warning(f"Достигнут лимит ключей ({self.max_keys}), событие {category}:{identifier} пропущено")
            self._emit(signals.event_ignored, record=None, reason=KEY_LIMIT_REACHED,
                       category=category, identifier=identifier, details=details)
            return TrackResult(IGNORED, None, KEY_LIMIT_REACHED)

        occurrence = Occurrence(
            key=key,
            category=category,
            identifier=identifier,
            details=details,
            fingerprint=fingerprint,
            timestamp=now,
        )
        decision = self.strategy.track(record, occurrence, self.policy)
        updated = decision.record

        self.storage.set(key, updated)
        logger.debug(f"Событие {category}:{identifier} -> {decision.outcome} (count={updated.count})")

        self._emit(signals.event_tracked, record=updated)
        if decision.outcome == IGNORED:
            self._emit(signals.event_ignored, record=updated, reason=decision.reason,
                       category=category, identifier=identifier, details=details)
        else:
            self._emit(OUTCOME_SIGNALS[decision.outcome], record=updated)

        return TrackResult(decision.outcome, updated, decision.reason)

    def process_deferred_events(self) -> List[EventRecord]:
        """Забирает все созревшие отложенные записи и удаляет их из хранилища."""
        due = self.storage.find_due_deferred(self._clock())
        for record in due:
            self.storage.delete(record.key)
            self._emit(signals.event_processed, record=record)

        if due:
            logger.info(f"Обработано отложенных событий: {len(due)}")
        return due

    def get_deferred_events(self) -> List[EventRecord]:
        find_all = getattr(self.storage, 'find_all_deferred', None)
        if callable(find_all):
            return find_all()
        horizon = self._clock() + max(self.defer_interval, DEFAULT_DEFER_INTERVAL) * 365
        return self.storage.find_due_deferred(horizon)

    def update_config(self, category: str, identifier: str, patch: Dict[str, Any]) -> bool:
        """
        Сливает `patch` в снимок config одной живой записи.

        Возвращает False (и никого не уведомляет), если живой записи по ключу
        нет. Другие записи не затрагиваются. Недопустимые значения известных
        параметров дают ValueError, запись при этом не меняется.
        """
        validate_config(patch)
        key = composite_key(category, identifier)
        record = self.storage.get(key)
        if record is None or record.is_expired(self._clock()):
            return False

        record.config = {**record.config, **patch}
        self.storage.set(key, record)
        logger.info(f"Обновлена конфигурация {category}:{identifier}: {patch}")
        self._emit(signals.config_updated, record=record)
        return True

    # --- фоновая обработка ---

    def start_processor(self) -> None:
        if self.processor_running:
            return
        if not callable(self.on_deferred_event_due):
            raise ValueError("Для фоновой обработки нужен on_deferred_event_due")

        self._stop_event.clear()
        self._processor_thread = threading.Thread(
            target=self._processor_loop,
            daemon=True,
            name="EventTracker-processor",
        )
        self._processor_thread.start()
        logger.info(f"Фоновая обработка отложенных событий запущена (интервал {self.processing_interval}s)")

    def _processor_loop(self) -> None:
        while not self._stop_event.wait(self.processing_interval):
            self.run_processor_tick()

    def run_processor_tick(self) -> None:
        """Один проход фоновой обработки. Ошибки уходят в processor_error."""
        try:
            due = self.process_deferred_events()
            if due:
                self.on_deferred_event_due(due)
        except Exception as e:
            logger.exception(f"Ошибка при фоновой обработке отложенных событий: {e}")
            self._emit(signals.processor_error, robust=True, error=e)

    def destroy(self) -> None:
        if self._closed:
            return
        self._closed = True

        self._stop_event.set()
        thread = self._processor_thread
        if thread is not None and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=5)

        if self.storage is not None and callable(getattr(self.storage, 'destroy', None)):
            self.storage.destroy()

        for signal, receiver in self._receivers:
            signal.disconnect(receiver, sender=self)
        self._receivers.clear()
        logger.info("EventTracker остановлен")

    def __enter__(self) -> 'EventTracker':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.destroy()
