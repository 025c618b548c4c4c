"""
Tests for the management commands.
"""
from datetime import timedelta
from io import StringIO
from unittest.mock import patch

import pytest
import redis
from django.core.management import call_command
from django.core.management.base import CommandError
from django.utils import timezone

from throttler.conf import get_tracker
from throttler.models import ProcessedEvent


DETAILS = {"message": "cert expires soon"}


def archive_event(identifier, days_ago, category="tls", count=1):
    event = ProcessedEvent.objects.create(
        key=identifier,
        category=category,
        identifier=identifier,
        details=DETAILS,
        count=count,
        last_event_time=timezone.now(),
    )
    ProcessedEvent.objects.filter(pk=event.pk).update(processed_at=timezone.now() - timedelta(days=days_ago))


@pytest.mark.django_db
class TestCleanupOldEvents:

    def test_deletes_old_events(self):
        archive_event("old", days_ago=10)
        archive_event("new", days_ago=1)
        out = StringIO()

        call_command('cleanup_old_events', stdout=out)

        assert list(ProcessedEvent.objects.values_list('identifier', flat=True)) == ["new"]
        assert "Successfully deleted 1 old events." in out.getvalue()

    def test_dry_run_keeps_events(self):
        archive_event("old", days_ago=10)
        out = StringIO()

        call_command('cleanup_old_events', '--dry-run', stdout=out)

        assert ProcessedEvent.objects.count() == 1
        assert "DRY RUN" in out.getvalue()

    def test_custom_days(self):
        archive_event("old", days_ago=3)

        call_command('cleanup_old_events', '--days', '2', stdout=StringIO())

        assert ProcessedEvent.objects.count() == 0

    def test_category_filter(self):
        archive_event("old-tls", days_ago=10, category="tls")
        archive_event("old-dns", days_ago=10, category="dns")
        archive_event("old-disk", days_ago=10, category="disk")

        call_command('cleanup_old_events', '--category', 'tls', '--category', 'dns', stdout=StringIO())

        assert list(ProcessedEvent.objects.values_list('identifier', flat=True)) == ["old-disk"]

    def test_summary_per_category(self):
        archive_event("a", days_ago=10, category="tls", count=4)
        archive_event("b", days_ago=10, category="tls", count=6)
        archive_event("c", days_ago=10, category="dns", count=1)
        out = StringIO()

        call_command('cleanup_old_events', '--dry-run', stdout=out)

        assert "dns: 1 records, 1 occurrences" in out.getvalue()
        assert "tls: 2 records, 10 occurrences" in out.getvalue()
        assert ProcessedEvent.objects.count() == 3

    def test_rejects_non_positive_days(self):
        with pytest.raises(CommandError):
            call_command('cleanup_old_events', '--days', '0', stdout=StringIO())


@pytest.mark.django_db
class TestProcessDeferredEventsCommand:

    @pytest.fixture(autouse=True)
    def due_immediately(self, tracker_settings):
        tracker_settings.EVENT_TRACKER = {
            'BACKEND': 'memory', 'PURGE_INTERVAL': 0, 'LIMIT': 0, 'DEFER_INTERVAL': 0,
        }

    def test_drains_and_archives(self):
        get_tracker().track_event("tls", "api.example.com", DETAILS)
        out = StringIO()

        call_command('process_deferred_events', stdout=out)

        assert ProcessedEvent.objects.get().identifier == "api.example.com"
        assert "Processed 1 deferred events." in out.getvalue()

    def test_dry_run_lists_without_draining(self):
        get_tracker().track_event("tls", "api.example.com", DETAILS)
        out = StringIO()

        call_command('process_deferred_events', '--dry-run', stdout=out)

        assert "tls:api.example.com count=1" in out.getvalue()
        assert ProcessedEvent.objects.count() == 0
        assert len(get_tracker().get_deferred_events()) == 1

    def test_nothing_due(self):
        out = StringIO()
        call_command('process_deferred_events', stdout=out)
        assert "No deferred events are due." in out.getvalue()

    def test_storage_failure(self):
        with patch('throttler.tasks.get_tracker') as get_tracker_mock:
            get_tracker_mock.return_value.process_deferred_events.side_effect = redis.ConnectionError("down")
            with pytest.raises(CommandError):
                call_command('process_deferred_events', stdout=StringIO())
