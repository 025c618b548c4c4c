"""
Уведомления, которые рассылает EventTracker.

Каждый сигнал отправляется синхронно с `sender=<EventTracker>`; чтобы слушать
один трекер, подключайтесь с `sender=tracker` (или через `EventTracker.subscribe`).
"""
from django.dispatch import Signal

# kwargs: record
event_tracked = Signal()
event_immediate = Signal()
event_deferred = Signal()
event_processed = Signal()
config_updated = Signal()

# kwargs: record (None при key_limit_reached), reason, category, identifier, details
event_ignored = Signal()

# kwargs: error
processor_error = Signal()


NOTIFICATIONS = {
    'tracked': event_tracked,
    'immediate': event_immediate,
    'deferred': event_deferred,
    'ignored': event_ignored,
    'processed': event_processed,
    'config_updated': config_updated,
    'error': processor_error,
}
