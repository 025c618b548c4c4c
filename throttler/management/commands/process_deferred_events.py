
import logging

import redis
from django.core.management.base import BaseCommand, CommandError

from throttler.conf import get_tracker
from throttler.tasks import drain_and_archive


logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Drains deferred events that are due and archives them as processed events.'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='List all deferred events without draining them.',
        )

    def handle(self, *args, **options):
        try:
            if options['dry_run']:
                self._list_deferred()
                return
            records = drain_and_archive()
        except redis.RedisError as e:
            logger.error(f"Redis error while processing deferred events: {e}")
            raise CommandError(f"Event storage is unavailable: {e}")

        if not records:
            self.stdout.write(self.style.SUCCESS("No deferred events are due."))
            return
        self.stdout.write(self.style.SUCCESS(f"Processed {len(records)} deferred events."))

    def _list_deferred(self):
        records = get_tracker().get_deferred_events()
        if not records:
            self.stdout.write(self.style.SUCCESS("No deferred events."))
            return

        self.stdout.write(self.style.WARNING(f"DRY RUN: {len(records)} deferred events:"))
        for record in sorted(records, key=lambda r: r.scheduled_send_at):
            self.stdout.write(
                f"  {record.category}:{record.identifier} count={record.count} "
                f"scheduled_send_at={record.scheduled_send_at:.0f}"
            )
