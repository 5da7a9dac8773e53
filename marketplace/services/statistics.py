"""
Read-only aggregates for the admin and customer dashboards.

Nothing here is stored; every figure is derived from principals, bookings,
offerings and reviews at call time. Revenue only counts COMPLETED bookings.
"""

from decimal import Decimal

from django.db.models import Count, Q, Sum
from django.utils import timezone

from .. import exceptions
from ..models import Booking, BookingStatus, Review, Role, ServiceOffering
from ..permissions import HasRole, authorize
from .identity import Principal, resolve

ZERO = Decimal('0.00')
CENT = Decimal('0.01')


def _money(value):
    return (value or ZERO).quantize(CENT)


def _average(total, count):
    if not count:
        return ZERO
    return (total / count).quantize(CENT)


def _day_and_month_start(now):
    local = timezone.localtime(now)
    start_of_day = local.replace(hour=0, minute=0, second=0, microsecond=0)
    return start_of_day, start_of_day.replace(day=1)


def get_platform_statistics(session, now=None):
    """
    Platform wide figures for the admin dashboard.

    Args:
        session: Session of an administrator
        now: Current time, defaults to ``timezone.now()``

    Returns:
        dict with ``principals``, ``bookings``, ``revenue``, ``offerings``
        and ``reviews`` sections. Money values are Decimals with two places.

    Raises:
        Forbidden: If the caller is not an administrator
    """
    resolve(session)
    authorize(session, HasRole(Role.ADMIN, message='Administrator privileges required.'))

    now = now or timezone.now()
    start_of_day, start_of_month = _day_and_month_start(now)

    principals = Principal.objects.aggregate(
        total=Count('id'),
        customers=Count('id', filter=Q(role=Role.CUSTOMER)),
        providers=Count('id', filter=Q(role=Role.PROVIDER)),
        admins=Count('id', filter=Q(role=Role.ADMIN)),
        verified_providers=Count('id', filter=Q(role=Role.PROVIDER, is_verified=True)),
        pending_verifications=Count('id', filter=Q(role=Role.PROVIDER, is_verified=False)),
        active=Count('id', filter=Q(is_active=True)),
        suspended=Count('id', filter=Q(is_active=False)),
        registered_today=Count('id', filter=Q(created_at__gte=start_of_day)),
    )

    bookings = Booking.objects.aggregate(
        total=Count('id'),
        pending=Count('id', filter=Q(status=BookingStatus.PENDING)),
        confirmed=Count('id', filter=Q(status=BookingStatus.CONFIRMED)),
        cancelled=Count('id', filter=Q(status=BookingStatus.CANCELLED)),
        completed=Count('id', filter=Q(status=BookingStatus.COMPLETED)),
        created_today=Count('id', filter=Q(created_at__gte=start_of_day)),
    )

    completed = Booking.objects.filter(status=BookingStatus.COMPLETED)
    revenue = completed.aggregate(
        total=Sum('total_amount'),
        this_month=Sum('total_amount', filter=Q(completed_at__gte=start_of_month)),
        today=Sum('total_amount', filter=Q(completed_at__gte=start_of_day)),
    )
    total_revenue = _money(revenue['total'])

    offerings = ServiceOffering.objects.aggregate(
        total=Count('id'),
        active=Count('id', filter=Q(is_active=True)),
    )

    return {
        'principals': principals,
        'bookings': bookings,
        'revenue': {
            'total': total_revenue,
            'this_month': _money(revenue['this_month']),
            'today': _money(revenue['today']),
            'average_booking_value': _average(total_revenue, bookings['completed']),
        },
        'offerings': offerings,
        'reviews': {
            'total': Review.objects.count(),
        },
    }


def customer_statistics(session, customer_id, now=None):
    """
    Dashboard figures for one customer.

    Visible to the customer themself and to administrators.

    Raises:
        Forbidden: If someone else asks
        NotFound: If no customer has this id
    """
    caller = resolve(session)
    if customer_id != caller.pk:
        authorize(session, HasRole(Role.ADMIN, message="Only administrators can view another customer's statistics."))

    if not Principal.objects.filter(pk=customer_id, role=Role.CUSTOMER).exists():
        raise exceptions.NotFound(f'Customer with ID {customer_id} does not exist.')

    now = now or timezone.now()
    bookings = Booking.objects.filter(customer_id=customer_id)

    counts = bookings.aggregate(
        total=Count('id'),
        pending=Count('id', filter=Q(status=BookingStatus.PENDING)),
        confirmed=Count('id', filter=Q(status=BookingStatus.CONFIRMED)),
        completed=Count('id', filter=Q(status=BookingStatus.COMPLETED)),
        cancelled=Count('id', filter=Q(status=BookingStatus.CANCELLED)),
        upcoming=Count(
            'id',
            filter=Q(status__in=[BookingStatus.PENDING, BookingStatus.CONFIRMED], slot__gte=now),
        ),
        awaiting_review=Count('id', filter=Q(status=BookingStatus.COMPLETED, review__isnull=True)),
    )
    total_spent = _money(
        bookings.filter(status=BookingStatus.COMPLETED).aggregate(total=Sum('total_amount'))['total']
    )

    return {
        'bookings': counts,
        'total_spent': total_spent,
        'average_booking_value': _average(total_spent, counts['completed']),
        'distinct_offerings': bookings.order_by().values('offering_id').distinct().count(),
        'reviews_written': Review.objects.filter(customer_id=customer_id).count(),
    }
