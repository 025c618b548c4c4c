
import logging
from datetime import timedelta

from django.core.management.base import BaseCommand, CommandError
from django.db import DatabaseError
from django.db.models import Count, Sum
from django.utils import timezone

from throttler.models import ProcessedEvent


logger = logging.getLogger(__name__)


DAYS_TO_KEEP = 7

class Command(BaseCommand):
    help = f'Deletes archived processed events older than {DAYS_TO_KEEP} days from the database.'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Simulate the deletion process without actually deleting records.',
        )
        parser.add_argument(
            '--days',
            type=int,
            default=DAYS_TO_KEEP,
            help=f'Specify the number of days to keep data (default: {DAYS_TO_KEEP}).',
        )
        parser.add_argument(
            '--category',
            action='append',
            dest='categories',
            default=[],
            help='Only delete events of this category (can be given several times).',
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']
        days_to_keep = options['days']
        categories = options['categories']

        if days_to_keep < 1:
            raise CommandError("Number of days to keep must be a positive integer.")

        cutoff_date = timezone.now() - timedelta(days=days_to_keep)
        formatted_cutoff_date = cutoff_date.strftime('%Y-%m-%d %H:%M:%S %Z')
        scope = f" in categories {', '.join(categories)}" if categories else ""

        self.stdout.write(f"Looking for events processed before {formatted_cutoff_date} (older than {days_to_keep} days){scope}...")

        events_to_delete = ProcessedEvent.objects.filter(processed_at__lt=cutoff_date)
        if categories:
            events_to_delete = events_to_delete.filter(category__in=categories)

        summary = list(
            events_to_delete.values('category')
            .annotate(rows=Count('id'), occurrences=Sum('count'))
            .order_by('category')
        )
        count = sum(row['rows'] for row in summary)

        if count == 0:
            self.stdout.write(self.style.SUCCESS("No old events found to delete."))
            return

        for row in summary:
            self.stdout.write(f"  {row['category']}: {row['rows']} records, {row['occurrences']} occurrences")

        if dry_run:
            self.stdout.write(self.style.WARNING(f"DRY RUN: Found {count} events older than {days_to_keep} days that would be deleted."))
            logger.warning(f"[Dry Run] Would delete {count} processed events older than {formatted_cutoff_date}{scope}")
            return

        try:
            self.stdout.write(f"Found {count} events. Proceeding with deletion...")
            deleted_count, _ = events_to_delete.delete()

            self.stdout.write(self.style.SUCCESS(f'Successfully deleted {deleted_count} old events.'))
            logger.info(f"Successfully deleted {deleted_count} processed events older than {formatted_cutoff_date}{scope}")
        except DatabaseError as e:
            logger.exception(f"An error occurred during event deletion: {e}")
            raise CommandError(f"Failed to delete old events: {e}")
