"""
Booking lifecycle.

Bookings start PENDING and move only along ``TRANSITIONS``:

    PENDING   --accept-->    CONFIRMED   (owning provider)
    PENDING   --reject-->    CANCELLED   (owning provider)
    PENDING   --withdraw-->  CANCELLED   (owning customer)
    CONFIRMED --cancel-->    CANCELLED   (owning customer)
    CONFIRMED --mark_done--> COMPLETED   (owning provider)

CANCELLED and COMPLETED are terminal. Every transition is written with a
conditional UPDATE on (id, expected status), so of two racing transitions
exactly one matches a row and the other fails with InvalidTransition.
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from .. import exceptions
from ..models import Booking, BookingStatus, Role, ServiceOffering
from ..permissions import HasRole, OwnerOf, authorize
from ..validators import BOOKING_NOTES_MAX_LENGTH, check, validate_booking_notes
from .identity import Principal, resolve

logger = logging.getLogger(__name__)


class BookingEvent:
    ACCEPT = 'accept'
    REJECT = 'reject'
    WITHDRAW = 'withdraw'
    CANCEL = 'cancel'
    MARK_DONE = 'mark_done'


@dataclass(frozen=True)
class Transition:
    source: str
    target: str
    actor: str
    owner_field: str
    timestamp_field: str


TRANSITIONS = {
    BookingEvent.ACCEPT: Transition(
        BookingStatus.PENDING, BookingStatus.CONFIRMED, Role.PROVIDER, 'provider_id', 'confirmed_at'),
    BookingEvent.REJECT: Transition(
        BookingStatus.PENDING, BookingStatus.CANCELLED, Role.PROVIDER, 'provider_id', 'cancelled_at'),
    BookingEvent.WITHDRAW: Transition(
        BookingStatus.PENDING, BookingStatus.CANCELLED, Role.CUSTOMER, 'customer_id', 'cancelled_at'),
    BookingEvent.CANCEL: Transition(
        BookingStatus.CONFIRMED, BookingStatus.CANCELLED, Role.CUSTOMER, 'customer_id', 'cancelled_at'),
    BookingEvent.MARK_DONE: Transition(
        BookingStatus.CONFIRMED, BookingStatus.COMPLETED, Role.PROVIDER, 'provider_id', 'completed_at'),
}


def allowed_events(booking, role):
    """Events a principal with ``role`` could apply to the booking in its current status."""
    return [
        event for event, rule in TRANSITIONS.items()
        if rule.source == booking.status and rule.actor == role
    ]


def create_booking(session, provider_id, offering_id, slot, notes='', now=None):
    """
    Request an appointment.

    Args:
        session: Session of the customer making the request
        provider_id: Provider to book
        offering_id: Offering of that provider
        slot: Requested start time, strictly in the future
        notes: Optional notes for the provider
        now: Current time, defaults to ``timezone.now()``

    Returns:
        Booking: The new PENDING booking

    Raises:
        AccountSuspended: If the caller is suspended
        Forbidden: If the caller is not a customer
        ValidationError: If the slot is not in the future or notes are too long
        NotFound: If the provider or offering does not exist or cannot be booked
    """
    customer = resolve(session)
    try:
        authorize(session, HasRole(Role.CUSTOMER, message='Only customers can create bookings.'))
    except exceptions.Forbidden:
        logger.warning(f"Booking creation refused for non-customer. Principal ID: {customer.pk}")
        raise

    now = now or timezone.now()
    if not isinstance(slot, datetime):
        raise exceptions.ValidationError('slot: A date and time is required.')
    if timezone.is_naive(slot):
        slot = timezone.make_aware(slot)
    if slot <= now:
        raise exceptions.ValidationError('slot: Must be in the future.')

    notes = notes or ''
    check(validate_booking_notes, notes, 'notes')

    try:
        provider = Principal.objects.get(pk=provider_id, role=Role.PROVIDER, is_active=True)
    except Principal.DoesNotExist:
        raise exceptions.NotFound(f'Provider with ID {provider_id} does not exist.')

    try:
        offering = ServiceOffering.objects.get(pk=offering_id, provider=provider, is_active=True)
    except ServiceOffering.DoesNotExist:
        raise exceptions.NotFound(
            f'Service offering with ID {offering_id} does not exist for this provider.'
        )

    with transaction.atomic():
        booking = Booking.objects.create(
            customer=customer,
            provider=provider,
            offering=offering,
            slot=slot,
            duration_minutes=offering.duration_minutes,
            notes=notes,
            total_amount=offering.base_price,
            status=BookingStatus.PENDING,
            status_changed_at=now,
        )
        booking.reference = f'BK-{now.year}-{booking.pk:06d}'
        Booking.objects.filter(pk=booking.pk).update(reference=booking.reference)

    logger.info(
        f"Booking created. Booking: {booking.reference}, "
        f"Customer ID: {customer.pk}, Provider ID: {provider.pk}, "
        f"Offering ID: {offering.pk}, Slot: {slot.isoformat()}"
    )
    return booking


def transition_booking(session, booking_id, event, reason='', now=None):
    """
    Apply a lifecycle event to a booking.

    Checks run in this order: session, event name, booking existence, who may
    trigger the event, current status.

    Args:
        session: Session of the acting principal
        booking_id: Booking to change
        event: One of the ``BookingEvent`` values
        reason: Optional text, stored as the cancellation reason for
            reject/withdraw/cancel and as provider notes for accept/mark_done
        now: Current time, defaults to ``timezone.now()``

    Returns:
        Booking: The booking as stored after the transition

    Raises:
        ValidationError: If the event is unknown or the reason too long
        NotFound: If the booking does not exist
        Forbidden: If the caller may not trigger this event on this booking
        InvalidTransition: If the booking is not in the event's source status,
            including when a concurrent transition got there first
    """
    actor = resolve(session)

    rule = TRANSITIONS.get(event)
    if rule is None:
        raise exceptions.ValidationError(
            f"event: Must be one of: {', '.join(TRANSITIONS)}."
        )

    reason = (reason or '').strip()
    if len(reason) > BOOKING_NOTES_MAX_LENGTH:
        raise exceptions.ValidationError(
            f'reason: Cannot exceed {BOOKING_NOTES_MAX_LENGTH} characters.'
        )

    try:
        booking = Booking.objects.get(pk=booking_id)
    except Booking.DoesNotExist:
        raise exceptions.NotFound(f'Booking with ID {booking_id} does not exist.')

    who = 'providers' if rule.actor == Role.PROVIDER else 'customers'
    capability = (
        HasRole(rule.actor, message=f'Only {who} can {event.replace("_", " ")} bookings.')
        & OwnerOf(booking, rule.owner_field, message='You do not have permission to modify this booking.')
    )
    try:
        authorize(session, capability)
    except exceptions.Forbidden:
        logger.warning(
            f"Unauthorized booking transition attempt. Booking ID: {booking.pk}, "
            f"Event: {event}, Principal ID: {actor.pk}"
        )
        raise

    if booking.status != rule.source:
        logger.warning(
            f"Invalid booking transition. Booking ID: {booking.pk}, "
            f"Event: {event}, Status: {booking.status}"
        )
        raise exceptions.InvalidTransition(
            f"Cannot {event.replace('_', ' ')} a booking that is {booking.status}."
        )

    now = now or timezone.now()
    values = {
        'status': rule.target,
        'status_changed_at': now,
        rule.timestamp_field: now,
    }
    if rule.target == BookingStatus.CANCELLED:
        values['cancelled_by'] = rule.actor
        values['cancellation_reason'] = reason
    elif reason:
        values['provider_notes'] = reason

    with transaction.atomic():
        updated = Booking.objects.filter(pk=booking.pk, status=rule.source).update(**values)

    if not updated:
        logger.warning(
            f"Booking transition lost a race. Booking ID: {booking.pk}, Event: {event}"
        )
        raise exceptions.InvalidTransition(
            'The booking status changed before this request could be applied.'
        )

    booking.refresh_from_db()
    logger.info(
        f"Booking status updated. Booking ID: {booking.pk}, "
        f"Old Status: {rule.source}, New Status: {rule.target}, "
        f"Principal ID: {actor.pk}"
    )
    return booking


def get_booking(session, booking_id):
    """
    Read one booking. Visible to its customer, its provider and administrators.

    Raises:
        NotFound: If the booking does not exist
        Forbidden: If the caller is not a party to the booking
    """
    resolve(session)
    try:
        booking = Booking.objects.select_related('customer', 'provider', 'offering').get(pk=booking_id)
    except Booking.DoesNotExist:
        raise exceptions.NotFound(f'Booking with ID {booking_id} does not exist.')

    authorize(
        session,
        OwnerOf(booking, 'customer_id') | OwnerOf(booking, 'provider_id') | HasRole(Role.ADMIN),
    )
    return booking


def list_bookings(session, principal_id=None, role=None):
    """
    Bookings of a principal, newest first.

    Args:
        session: Session of the caller
        principal_id: Whose bookings; defaults to the caller. Only
            administrators may list someone else's.
        role: Side of the booking to match (customer or provider). Defaults
            to the role of the principal; both sides for administrators.

    Returns:
        list[Booking]: Possibly empty, also for unknown principal ids

    Raises:
        Forbidden: If a non-administrator asks for another principal
        ValidationError: If role is not a known role value
    """
    caller = resolve(session)

    if principal_id is None:
        principal_id = caller.pk
    elif principal_id != caller.pk:
        authorize(session, HasRole(Role.ADMIN, message="Only administrators can list another principal's bookings."))

    if role is not None and role not in Role.values:
        raise exceptions.ValidationError(f"role: Must be one of: {', '.join(Role.values)}.")

    if role is None:
        role = Principal.objects.filter(pk=principal_id).values_list('role', flat=True).first()

    if role == Role.CUSTOMER:
        condition = Q(customer_id=principal_id)
    elif role == Role.PROVIDER:
        condition = Q(provider_id=principal_id)
    else:
        condition = Q(customer_id=principal_id) | Q(provider_id=principal_id)

    return list(
        Booking.objects.filter(condition)
        .select_related('customer', 'provider', 'offering')
        .order_by('-created_at', '-id')
    )
