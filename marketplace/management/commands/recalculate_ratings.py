"""
Rebuild the cached provider ratings from the stored reviews.

Usage:
    python manage.py recalculate_ratings [--dry-run] [--batch-size N]
"""

from decimal import Decimal

from django.core.management.base import BaseCommand, CommandError
from django.db.models import Avg, Count

from marketplace.models import Principal, Role

CENT = Decimal('0.01')


class Command(BaseCommand):
    help = 'Recalculates the cached provider ratings from the stored reviews.'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='List providers whose cached rating is stale without saving anything.',
        )
        parser.add_argument(
            '--batch-size',
            type=int,
            default=1000,
            help='Number of providers read and written per batch.',
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']
        batch_size = options['batch_size']

        if batch_size < 1:
            raise CommandError('--batch-size must be at least 1.')

        self.stdout.write('Recalculating provider ratings...')
        checked, stale = self.refresh(dry_run, batch_size)
        self.stdout.write(f'Checked {checked} providers.')

        if dry_run:
            self.stdout.write(self.style.SUCCESS(
                f'Dry run completed. {stale} provider(s) out of date, no changes saved.'
            ))
        else:
            self.stdout.write(self.style.SUCCESS(
                f'Recalculation completed successfully. {stale} provider(s) updated.'
            ))

    def refresh(self, dry_run, batch_size):
        """
        Compare every provider's cached rating with its reviews.

        Returns:
            tuple: (providers checked, providers whose cache was stale)
        """
        providers = (
            Principal.objects.filter(role=Role.PROVIDER)
            .annotate(actual_average=Avg('reviews_received__rating'), actual_count=Count('reviews_received'))
            .order_by('pk')
        )

        pending = []
        checked = stale = 0
        for provider in providers.iterator(chunk_size=batch_size):
            checked += 1
            average = (
                Decimal(str(provider.actual_average)).quantize(CENT)
                if provider.actual_average is not None else Decimal('0.00')
            )
            if provider.rating_average == average and provider.review_count == provider.actual_count:
                continue

            stale += 1
            if dry_run:
                self.stdout.write(
                    f'  [DRY-RUN] {provider.email}: average {provider.rating_average} -> {average}, '
                    f'reviews {provider.review_count} -> {provider.actual_count}'
                )
                continue

            provider.rating_average = average
            provider.review_count = provider.actual_count
            pending.append(provider)
            if len(pending) >= batch_size:
                Principal.objects.bulk_update(pending, ['rating_average', 'review_count'])
                pending = []

        if pending:
            Principal.objects.bulk_update(pending, ['rating_average', 'review_count'])
        return checked, stale
