"""
Django signals keeping the cached provider rating in sync with reviews.

``Principal.rating_average`` and ``Principal.review_count`` are a listing
cache only. ``services.reviews.average_rating`` always reads the reviews.
"""

import logging
from decimal import Decimal

from django.db import transaction
from django.db.models import Avg, Count
from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from .models import Principal, Review

logger = logging.getLogger(__name__)


def refresh_provider_rating(provider_id):
    """
    Recompute the cached rating of one provider from its reviews.

    Returns:
        tuple: (rating_average, review_count) now stored
    """
    stats = Review.objects.filter(provider_id=provider_id).aggregate(
        avg=Avg('rating'),
        total=Count('id'),
    )
    average = (
        Decimal(str(stats['avg'])).quantize(Decimal('0.01'))
        if stats['avg'] is not None else Decimal('0.00')
    )
    # update() so a provider row being deleted in the same transaction is skipped quietly
    Principal.objects.filter(pk=provider_id).update(
        rating_average=average,
        review_count=stats['total'],
    )
    return average, stats['total']


@receiver(post_save, sender=Review)
def update_rating_on_review_save(sender, instance, created, **kwargs):
    """
    Refresh the provider's cached rating after a review is stored.

    Runs inside the caller's transaction; a failure here rolls the review back.
    """
    try:
        with transaction.atomic():
            average, total = refresh_provider_rating(instance.provider_id)
        logger.info(
            f"Updated provider rating for review {instance.id}: "
            f"provider={instance.provider_id}, average={average}, reviews={total}"
        )
    except Exception as e:
        logger.error(
            f"Error updating provider rating for review {instance.id}: {e}",
            exc_info=True
        )
        raise


@receiver(post_delete, sender=Review)
def update_rating_on_review_delete(sender, instance, **kwargs):
    """Refresh the provider's cached rating after a review is removed."""
    try:
        with transaction.atomic():
            average, total = refresh_provider_rating(instance.provider_id)
        logger.info(
            f"Updated provider rating after deleting review {instance.id}: "
            f"provider={instance.provider_id}, average={average}, reviews={total}"
        )
    except Exception as e:
        logger.error(
            f"Error updating provider rating after deleting review {instance.id}: {e}",
            exc_info=True
        )
        raise
