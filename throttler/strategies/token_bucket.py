
import logging
import math
from typing import Optional

from ..records import DEFERRED, IMMEDIATE, Decision, EventRecord, Occurrence, Policy
from .base import create_record, touch, validate_config


logger = logging.getLogger(__name__)

DEFAULT_BUCKET_SIZE = 10
DEFAULT_REFILL_RATE = 1.0  # токенов в секунду


class TokenBucketStrategy:
    """
    Корзина токенов на каждый ключ: пропускает всплеск до `bucket_size` событий
    и пополняется на `refill_rate` токенов в секунду.

    В отличие от счётчика, пропущенное событие снимает отложенность,
    и ключ восстанавливается сам, когда всплеск закончился.
    """

    def __init__(self, bucket_size: int = DEFAULT_BUCKET_SIZE, refill_rate: float = DEFAULT_REFILL_RATE):
        validate_config({'bucket_size': bucket_size, 'refill_rate': refill_rate})
        self.bucket_size = bucket_size
        self.refill_rate = float(refill_rate)

    def track(self, record: Optional[EventRecord], occurrence: Occurrence, policy: Policy) -> Decision:
        now = occurrence.timestamp

        if record is None:
            # Первое событие сразу забирает один токен
            record = create_record(
                occurrence, policy,
                config={
                    'bucket_size': self.bucket_size,
                    'refill_rate': self.refill_rate,
                    'defer_interval': policy.defer_interval,
                },
                strategy_data={'tokens': self.bucket_size - 1, 'last_refill': now},
            )
            return Decision(IMMEDIATE, record)

        config = record.config
        state = record.strategy_data
        tokens_to_add = math.floor((now - state['last_refill']) * config['refill_rate'])

        tokens = state['tokens']
        if tokens_to_add > 0:
            tokens = min(config['bucket_size'], tokens + tokens_to_add)
            # last_refill двигаем только при добавлении целого токена,
            # иначе дробный прогресс теряется
            state['last_refill'] = now

        if tokens >= 1:
            state['tokens'] = tokens - 1
            touch(record, occurrence, policy)
            record.deferred = False
            record.scheduled_send_at = None
            return Decision(IMMEDIATE, record)

        state['tokens'] = tokens
        record.deferred = True
        record.scheduled_send_at = now + 1 / config['refill_rate']
        logger.debug(f"Ключ {record.key}: токены закончились, следующий ожидается в {record.scheduled_send_at}")
        return Decision(DEFERRED, record)
