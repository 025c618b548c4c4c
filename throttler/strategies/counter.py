
import logging
from typing import Optional

from ..records import (
    ALREADY_DEFERRED, DEFERRED, IGNORED, IMMEDIATE,
    Decision, EventRecord, Occurrence, Policy,
)
from .base import create_record, touch


logger = logging.getLogger(__name__)


class SimpleCounterStrategy:
    """
    Считает одинаковые события и откладывает поток, как только счётчик
    превышает limit, зафиксированный в config записи.

    Отложенный ключ остаётся отложенным, пока запись не выгрузят.
    """

    def track(self, record: Optional[EventRecord], occurrence: Occurrence, policy: Policy) -> Decision:
        now = occurrence.timestamp

        if record is None:
            record = create_record(occurrence, policy, config={
                'limit': policy.limit,
                'defer_interval': policy.defer_interval,
            })
        else:
            touch(record, occurrence, policy)

        if record.deferred:
            # Окно отсрочки не сдвигается повторными событиями
            return Decision(IGNORED, record, ALREADY_DEFERRED)

        if record.count > record.config['limit']:
            record.deferred = True
            record.scheduled_send_at = now + record.config['defer_interval']
            logger.debug(f"Ключ {record.key} отложен до {record.scheduled_send_at} (count={record.count})")
            return Decision(DEFERRED, record)

        return Decision(IMMEDIATE, record)
