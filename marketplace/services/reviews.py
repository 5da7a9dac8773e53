"""
Review ledger.

One review per completed booking, written by the booking's customer and never
edited afterwards. The one-to-one column on ``Review.booking`` is the final
guard against concurrent submissions.
"""

import logging

from django.db import IntegrityError, OperationalError, transaction
from django.db.models import Avg, Count, Q

from .. import exceptions
from ..models import Booking, BookingStatus, Review
from ..permissions import OwnerOf, authorize
from ..validators import RATING_MAX, RATING_MIN, check, validate_rating, validate_review_comment
from .identity import resolve

logger = logging.getLogger(__name__)


def create_review(session, booking_id, rating, comment):
    """
    Review a completed booking.

    Preconditions are checked in this order: the booking exists, the caller is
    its customer, the booking is COMPLETED, it has no review yet, then the
    rating and comment are valid.

    Args:
        session: Session of the booking's customer
        booking_id: Booking to review
        rating: Whole number from 1 to 5
        comment: 10 to 2000 characters after stripping surrounding whitespace

    Returns:
        Review: The stored review

    Raises:
        NotFound: If the booking does not exist
        Forbidden: If the caller is not the booking's customer, or the
            booking is not completed
        Conflict: If the booking already has a review
        ValidationError: If rating or comment is invalid
        Internal: If the database stayed locked for the whole wait
    """
    customer = resolve(session)

    try:
        with transaction.atomic():
            try:
                booking = Booking.objects.select_for_update().get(pk=booking_id)
            except Booking.DoesNotExist:
                raise exceptions.NotFound(f'Booking with ID {booking_id} does not exist.')

            try:
                authorize(session, OwnerOf(booking, 'customer_id', message='You can only review your own bookings.'))
            except exceptions.Forbidden:
                logger.warning(
                    f"Unauthorized review attempt. Booking ID: {booking.pk}, Principal ID: {customer.pk}"
                )
                raise

            if booking.status != BookingStatus.COMPLETED:
                logger.warning(
                    f"Review attempted for ineligible booking. Booking ID: {booking.pk}, "
                    f"Status: {booking.status}"
                )
                raise exceptions.Forbidden('This booking is not eligible for review until it is completed.')

            if Review.objects.filter(booking=booking).exists():
                logger.warning(f"Duplicate review attempt. Booking ID: {booking.pk}")
                raise exceptions.Conflict('A review already exists for this booking.')

            check(validate_rating, rating, 'rating')
            check(validate_review_comment, comment, 'comment')

            review = Review.objects.create(
                booking=booking,
                customer_id=booking.customer_id,
                provider_id=booking.provider_id,
                rating=rating,
                comment=comment.strip(),
            )
    except IntegrityError as exc:
        logger.warning(f"Duplicate review lost a race. Booking ID: {booking_id}")
        raise exceptions.Conflict('A review already exists for this booking.') from exc
    except OperationalError as exc:
        logger.error(f"Review could not be stored, database busy. Booking ID: {booking_id}", exc_info=True)
        raise exceptions.Internal('The review could not be saved. Please try again.') from exc

    logger.info(
        f"Review created. Review ID: {review.pk}, Booking ID: {booking_id}, "
        f"Provider ID: {review.provider_id}, Rating: {rating}"
    )
    return review


def list_reviews(provider_id):
    """Reviews received by a provider, newest first. Public; empty for unknown ids."""
    return list(
        Review.objects.filter(provider_id=provider_id)
        .select_related('customer', 'booking')
        .order_by('-created_at', '-id')
    )


def average_rating(provider_id):
    """
    Arithmetic mean of the ratings a provider received.

    Always computed from the stored reviews. Returns 0.0 when there are none.
    """
    avg = Review.objects.filter(provider_id=provider_id).aggregate(avg=Avg('rating'))['avg']
    return float(avg) if avg is not None else 0.0


def provider_rating_statistics(provider_id):
    """
    Rating summary for a provider profile.

    Returns:
        dict: average_rating (one decimal), total_reviews,
        rating_distribution keyed 1 to 5, positive_reviews (4 and 5 stars)
    """
    reviews = Review.objects.filter(provider_id=provider_id)
    counts = reviews.aggregate(
        total=Count('id'),
        positive=Count('id', filter=Q(rating__gte=4)),
        **{f'stars_{stars}': Count('id', filter=Q(rating=stars)) for stars in range(RATING_MIN, RATING_MAX + 1)}
    )

    return {
        'average_rating': round(average_rating(provider_id), 1),
        'total_reviews': counts['total'],
        'rating_distribution': {
            stars: counts[f'stars_{stars}'] for stars in range(RATING_MIN, RATING_MAX + 1)
        },
        'positive_reviews': counts['positive'],
    }
