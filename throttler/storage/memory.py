
import copy
import logging
import threading
import time
from typing import Dict, List, Optional

from ..records import EventRecord


logger = logging.getLogger(__name__)

DEFAULT_PURGE_INTERVAL = 60  # секунд


class InMemoryAdapter:
    """
    Хранилище в памяти одного процесса.

    Фоновый поток удаляет просроченные записи каждые `purge_interval`
    секунд (0 отключает его). Трекер и так считает просроченную запись
    отсутствующей при чтении, очистка только освобождает память.

    Блокировка защищает словарь лишь от потока очистки. Последовательности
    чтение-решение-запись по одному ключу вызывающий сериализует сам.
    """

    def __init__(self, purge_interval: float = DEFAULT_PURGE_INTERVAL, clock=time.time):
        if purge_interval < 0:
            raise ValueError("purge_interval не может быть отрицательным")
        self._records: Dict[str, EventRecord] = {}
        self._lock = threading.Lock()
        self._clock = clock
        self.purge_interval = purge_interval

        self._stop_event = threading.Event()
        self._purge_thread: Optional[threading.Thread] = None
        if purge_interval > 0:
            self._purge_thread = threading.Thread(
                target=self._purge_loop,
                daemon=True,
                name="InMemoryAdapter-purge",
            )
            self._purge_thread.start()

    def _purge_loop(self) -> None:
        while not self._stop_event.wait(self.purge_interval):
            try:
                self.purge_expired()
            except Exception as e:
                logger.exception(f"Ошибка фоновой очистки устаревших записей: {e}")

    def purge_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [key for key, record in self._records.items() if record.is_expired(now)]
            for key in expired:
                del self._records[key]
        if expired:
            logger.debug(f"Удалено устаревших записей: {len(expired)}")
        return len(expired)

    def get(self, key: str) -> Optional[EventRecord]:
        with self._lock:
            record = self._records.get(key)
        return copy.deepcopy(record) if record is not None else None

    def set(self, key: str, record: EventRecord) -> None:
        stored = copy.deepcopy(record)
        with self._lock:
            self._records[key] = stored

    def delete(self, key: str) -> None:
        with self._lock:
            self._records.pop(key, None)

    def size(self) -> int:
        with self._lock:
            return len(self._records)

    def find_due_deferred(self, now: float) -> List[EventRecord]:
        with self._lock:
            due = [
                record for record in self._records.values()
                if record.deferred and record.scheduled_send_at is not None
                and record.scheduled_send_at <= now
            ]
        return copy.deepcopy(due)

    def find_all_deferred(self) -> List[EventRecord]:
        with self._lock:
            deferred = [record for record in self._records.values() if record.deferred]
        return copy.deepcopy(deferred)

    def destroy(self) -> None:
        self._stop_event.set()
        if self._purge_thread is not None and self._purge_thread.is_alive():
            self._purge_thread.join(timeout=5)
