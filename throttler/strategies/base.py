
from typing import Any, Dict, Optional, Protocol

from ..records import Decision, EventRecord, Occurrence, Policy


class ThrottlingStrategy(Protocol):
    """
    Решает судьбу очередного события по ключу.

    Получает текущую запись (или None, если её нет или она устарела) и
    возвращает обновлённую запись вместе с исходом. К хранилищу не обращается.
    """

    def track(self, record: Optional[EventRecord], occurrence: Occurrence, policy: Policy) -> Decision:
        ...


def create_record(occurrence: Occurrence, policy: Policy, config: Dict[str, Any],
                  strategy_data: Optional[Dict[str, Any]] = None) -> EventRecord:
    now = occurrence.timestamp
    return EventRecord(
        key=occurrence.key,
        category=occurrence.category,
        identifier=occurrence.identifier,
        details=occurrence.details,
        details_fingerprint=occurrence.fingerprint,
        count=1,
        last_event_time=now,
        expires_at=now + policy.expire_time,
        deferred=False,
        scheduled_send_at=None,
        config=config,
        strategy_data=strategy_data,
    )


def touch(record: EventRecord, occurrence: Occurrence, policy: Policy) -> None:
    """Засчитывает событие в существующую запись и продлевает её жизнь."""
    record.count += 1
    record.last_event_time = occurrence.timestamp
    record.expires_at = occurrence.timestamp + policy.expire_time


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_config(config: Dict[str, Any]) -> None:
    """
    Проверяет известные параметры политики, неизвестные ключи пропускает.
    Бросает ValueError при недопустимом значении.
    """
    if 'limit' in config:
        limit = config['limit']
        if not isinstance(limit, int) or isinstance(limit, bool) or limit < 0:
            raise ValueError("limit должен быть неотрицательным целым числом")
    if 'bucket_size' in config:
        bucket_size = config['bucket_size']
        if not isinstance(bucket_size, int) or isinstance(bucket_size, bool) or bucket_size < 1:
            raise ValueError("bucket_size должен быть положительным целым числом")
    if 'refill_rate' in config:
        if not _is_number(config['refill_rate']) or config['refill_rate'] <= 0:
            raise ValueError("refill_rate должен быть больше нуля")
    if 'defer_interval' in config:
        if not _is_number(config['defer_interval']) or config['defer_interval'] < 0:
            raise ValueError("defer_interval должен быть неотрицательным числом")
