
import logging
from typing import List

import redis
from celery import shared_task
from django.db import DatabaseError

from .conf import get_tracker
from .models import ProcessedEvent
from .records import EventRecord

logger = logging.getLogger(__name__)


def drain_and_archive() -> List[EventRecord]:
    """
    Выгружает созревшие отложенные записи и сохраняет их в ProcessedEvent.

    Ошибки хранилища пробрасываются вызывающему.
    """
    records = get_tracker().process_deferred_events()
    if not records:
        return records

    try:
        ProcessedEvent.objects.archive(records)
        logger.info(f"Архивировано отложенных событий: {len(records)}")
    except DatabaseError as db_err:
        # Записи уже удалены из трекера, поэтому сохраняем хотя бы в лог
        logger.exception(f"Ошибка при сохранении {len(records)} событий в БД: {db_err}")
        for record in records:
            logger.error(f"Потерянное событие: {record.to_dict()}")
    return records


@shared_task(bind=True, ignore_result=True)
def track_event(self, category, identifier, details=None):
    """
    Задача Celery для асинхронного учёта события.
    """
    task_id = self.request.id
    logger.info(f"[Task ID: {task_id}] Получено событие {category}:{identifier}: {str(details)[:100]}...")

    try:
        result = get_tracker().track_event(category, identifier, details)
    except redis.RedisError as redis_err:
        logger.error(f"[Task ID: {task_id}] Ошибка Redis при обработке события: {redis_err}.")
        return

    if result.reason:
        logger.info(f"[Task ID: {task_id}] Событие {category}:{identifier} -> {result.type} ({result.reason})")
    else:
        logger.info(f"[Task ID: {task_id}] Событие {category}:{identifier} -> {result.type}")


@shared_task(bind=True)
def process_deferred_events(self):
    """
    Периодическая задача (Celery beat): выгружает созревшие отложенные события.
    Возвращает количество выгруженных записей.
    """
    task_id = self.request.id
    try:
        records = drain_and_archive()
    except redis.RedisError as redis_err:
        logger.error(f"[Task ID: {task_id}] Ошибка Redis при выгрузке отложенных событий: {redis_err}.")
        return 0

    logger.debug(f"[Task ID: {task_id}] Выгружено отложенных событий: {len(records)}")
    return len(records)
