
import json
import logging
import math
from typing import Any, Dict, Iterable, List, Optional

import redis
from django.core.exceptions import ImproperlyConfigured

from ..records import EventRecord


logger = logging.getLogger(__name__)

KEY_PREFIX = 'event-tracker:'
DEFERRED_SET_SUFFIX = 'deferred-set'


def _decode(value: Any) -> Any:
    if isinstance(value, bytes):
        return value.decode('utf-8')
    return value


class RedisAdapter:
    """
    Общее хранилище в Redis для нескольких процессов.

    Каждая запись это hash под `<prefix><составной ключ>` с EXPIREAT, равным
    `expires_at` записи; отложенные ключи индексируются в одном sorted set
    `<prefix>deferred-set` со score `scheduled_send_at`.

    `set` и `delete` атомарны (MULTI/EXEC). Вся последовательность
    чтение-решение-запись трекера нет: два процесса, учитывающие один ключ
    одновременно, могут прочитать одну запись, и побеждает последняя запись.
    """

    def __init__(self, redis_client: Optional[redis.Redis] = None, key_prefix: str = KEY_PREFIX):
        if redis_client is None:
            raise ImproperlyConfigured("RedisAdapter требует подключённый экземпляр redis.Redis")

        if not isinstance(redis_client, redis.Redis):
            logger.warning("redis_client не является экземпляром redis.Redis")

        self.redis = redis_client
        self.key_prefix = key_prefix
        self.deferred_set_key = f"{key_prefix}{DEFERRED_SET_SUFFIX}"

    def _record_key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    @staticmethod
    def _to_hash(record: EventRecord) -> Dict[str, str]:
        return {
            'key': record.key,
            'category': record.category,
            'identifier': record.identifier,
            'details': json.dumps(record.details, default=str),
            'details_fingerprint': record.details_fingerprint,
            'count': str(record.count),
            'last_event_time': repr(record.last_event_time),
            'expires_at': repr(record.expires_at),
            'deferred': 'true' if record.deferred else 'false',
            'scheduled_send_at': repr(record.scheduled_send_at) if record.scheduled_send_at is not None else '',
            'config': json.dumps(record.config),
            'strategy_data': json.dumps(record.strategy_data),
        }

    @staticmethod
    def _from_hash(raw: Dict[Any, Any]) -> Optional[EventRecord]:
        if not raw:
            return None
        data = {_decode(k): _decode(v) for k, v in raw.items()}
        scheduled = data.get('scheduled_send_at')
        return EventRecord(
            key=data['key'],
            category=data['category'],
            identifier=data['identifier'],
            details=json.loads(data.get('details') or 'null'),
            details_fingerprint=data.get('details_fingerprint', ''),
            count=int(data['count']),
            last_event_time=float(data['last_event_time']),
            expires_at=float(data['expires_at']),
            deferred=data.get('deferred') == 'true',
            scheduled_send_at=float(scheduled) if scheduled else None,
            config=json.loads(data.get('config') or '{}'),
            strategy_data=json.loads(data.get('strategy_data') or 'null'),
        )

    def get(self, key: str) -> Optional[EventRecord]:
        return self._from_hash(self.redis.hgetall(self._record_key(key)))

    def set(self, key: str, record: EventRecord) -> None:
        record_key = self._record_key(key)
        with self.redis.pipeline(transaction=True) as pipe:
            pipe.hset(record_key, mapping=self._to_hash(record))
            # EXPIREAT принимает целые секунды
            pipe.expireat(record_key, math.ceil(record.expires_at))
            if record.deferred and record.scheduled_send_at is not None:
                pipe.zadd(self.deferred_set_key, {key: record.scheduled_send_at})
            else:
                pipe.zrem(self.deferred_set_key, key)
            pipe.execute()

    def delete(self, key: str) -> None:
        with self.redis.pipeline(transaction=True) as pipe:
            pipe.delete(self._record_key(key))
            pipe.zrem(self.deferred_set_key, key)
            pipe.execute()

    def size(self) -> int:
        count = 0
        for redis_key in self.redis.scan_iter(match=f"{self.key_prefix}*", count=100):
            if _decode(redis_key) != self.deferred_set_key:
                count += 1
        return count

    def _load_many(self, keys: Iterable[Any]) -> List[EventRecord]:
        keys = [_decode(key) for key in keys]
        if not keys:
            return []

        with self.redis.pipeline(transaction=False) as pipe:
            for key in keys:
                pipe.hgetall(self._record_key(key))
            results = pipe.execute()

        records = []
        for key, raw in zip(keys, results):
            record = self._from_hash(raw)
            if record is None:
                # Запись уже истекла по TTL, а индекс ещё ссылается на неё
                logger.debug(f"Пропущена запись {key} из индекса отложенных: данных больше нет")
                continue
            records.append(record)
        return records

    def find_due_deferred(self, now: float) -> List[EventRecord]:
        return self._load_many(self.redis.zrangebyscore(self.deferred_set_key, '-inf', now))

    def find_all_deferred(self) -> List[EventRecord]:
        return self._load_many(self.redis.zrange(self.deferred_set_key, 0, -1))

    def destroy(self) -> None:
        # Соединением управляет тот, кто передал клиента
        pass
