
from datetime import datetime, timezone as dt_timezone
from typing import Iterable, List, Optional

from django.db import models
from django.utils import timezone

from .records import EventRecord


def _to_datetime(ts: Optional[float]) -> Optional[datetime]:
    return datetime.fromtimestamp(ts, tz=dt_timezone.utc) if ts is not None else None


class ProcessedEventManager(models.Manager):

    def archive(self, records: Iterable[EventRecord]) -> List['ProcessedEvent']:
        return self.bulk_create([ProcessedEvent.from_record(record) for record in records])


class ProcessedEvent(models.Model):
    """
    Отложенная запись, которая была выгружена из трекера (drain).
    """
    key = models.CharField(
        max_length=64,
        db_index=True,
        help_text="SHA256 composite key of (category, identifier)."
    )
    category = models.CharField(max_length=255)
    identifier = models.CharField(max_length=255)

    details_fingerprint = models.CharField(
        max_length=64,
        blank=True,
        help_text="SHA256 fingerprint of the sorted event details."
    )

    details = models.JSONField(
        null=True,
        help_text="Details of the last occurrence folded into the record."
    )

    count = models.PositiveIntegerField(
        help_text="Occurrences folded into the record before it was drained."
    )
    last_event_time = models.DateTimeField()
    scheduled_send_at = models.DateTimeField(null=True)
    config = models.JSONField(default=dict)

    processed_at = models.DateTimeField(
        default=timezone.now,
        db_index=True,
        help_text="Timestamp when the record was drained and archived."
    )

    objects = ProcessedEventManager()

    @classmethod
    def from_record(cls, record: EventRecord) -> 'ProcessedEvent':
        return cls(
            key=record.key,
            category=record.category,
            identifier=record.identifier,
            details_fingerprint=record.details_fingerprint,
            details=record.details,
            count=record.count,
            last_event_time=_to_datetime(record.last_event_time),
            scheduled_send_at=_to_datetime(record.scheduled_send_at),
            config=record.config,
        )

    def __str__(self):
        return f"{self.category}:{self.identifier} x{self.count} processed at {self.processed_at.strftime('%Y-%m-%d %H:%M')}"

    class Meta:
        ordering = ['-processed_at']
        verbose_name = "Processed Event"
        verbose_name_plural = "Processed Events"
