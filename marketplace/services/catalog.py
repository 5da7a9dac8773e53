"""
Service offerings published by providers.

Only the owning provider may change, hide or remove an offering. Hidden
offerings stay attached to their existing bookings but cannot be booked.
"""

import logging
from decimal import Decimal, InvalidOperation

from django.db.models import ProtectedError

from .. import exceptions
from ..models import Role, ServiceOffering
from ..permissions import HasRole, OwnerOf, authorize
from ..validators import OFFERING_TITLE_MAX_LENGTH
from .identity import resolve

logger = logging.getLogger(__name__)

# base_price is stored with 10 digits, 2 of them decimals
MAX_PRICE = Decimal('100000000')

UPDATABLE_FIELDS = ('title', 'description', 'base_price', 'duration_minutes')


def _clean_title(title):
    title = (title or '').strip()
    if not title:
        raise exceptions.ValidationError('title: This field may not be blank.')
    if len(title) > OFFERING_TITLE_MAX_LENGTH:
        raise exceptions.ValidationError(
            f'title: Cannot exceed {OFFERING_TITLE_MAX_LENGTH} characters.'
        )
    return title


def _clean_price(base_price):
    try:
        base_price = Decimal(str(base_price))
        if not base_price.is_finite():
            raise InvalidOperation
        base_price = base_price.quantize(Decimal('0.01'))
    except (InvalidOperation, ValueError, TypeError):
        raise exceptions.ValidationError('base_price: A valid number is required.')
    if base_price <= 0:
        raise exceptions.ValidationError('base_price: Must be greater than 0.')
    if base_price >= MAX_PRICE:
        raise exceptions.ValidationError(f'base_price: Must be less than {MAX_PRICE}.')
    return base_price


def _clean_duration(duration_minutes):
    if isinstance(duration_minutes, bool) or not isinstance(duration_minutes, int) or duration_minutes < 1:
        raise exceptions.ValidationError('duration_minutes: Must be a whole number of at least 1.')
    return duration_minutes


CLEANERS = {
    'title': _clean_title,
    'description': lambda value: (value or '').strip(),
    'base_price': _clean_price,
    'duration_minutes': _clean_duration,
}


def create_offering(session, title, base_price, duration_minutes, description=''):
    """
    Publish a new service offering for the calling provider.

    Args:
        session: Session of a provider
        title: Short name, 1 to 100 characters
        base_price: Price per booking, greater than 0
        duration_minutes: Length of one appointment, at least 1
        description: Optional longer description

    Returns:
        ServiceOffering: The created offering

    Raises:
        Forbidden: If the caller is not a provider
        ValidationError: If any field is invalid
    """
    provider = resolve(session)
    authorize(session, HasRole(Role.PROVIDER, message='Only providers can publish service offerings.'))

    offering = ServiceOffering.objects.create(
        provider=provider,
        title=_clean_title(title),
        description=CLEANERS['description'](description),
        base_price=_clean_price(base_price),
        duration_minutes=_clean_duration(duration_minutes),
    )

    logger.info(
        f"Service offering created. Offering ID: {offering.pk}, "
        f"Provider ID: {provider.pk}, Price: {offering.base_price}"
    )
    return offering


def _owned_offering(session, offering_id, action):
    """Load an offering and check the caller is the provider who owns it."""
    principal = resolve(session)
    try:
        offering = ServiceOffering.objects.get(pk=offering_id)
    except ServiceOffering.DoesNotExist:
        raise exceptions.NotFound(f'Service offering with ID {offering_id} does not exist.')

    try:
        authorize(session, HasRole(Role.PROVIDER) & OwnerOf(
            offering, 'provider_id', message=f'You can only {action} your own service offerings.'
        ))
    except exceptions.Forbidden:
        logger.warning(
            f"Unauthorized offering change. Offering ID: {offering.pk}, "
            f"Principal ID: {principal.pk}, Action: {action}"
        )
        raise
    return offering


def update_offering(session, offering_id, **changes):
    """
    Change the details of one of the caller's offerings.

    Only the fields given are changed. Existing bookings keep the price and
    duration they were created with.

    Args:
        session: Session of the owning provider
        offering_id: Offering to change
        **changes: Any of title, description, base_price, duration_minutes

    Returns:
        ServiceOffering: The updated offering

    Raises:
        NotFound: If the offering does not exist
        Forbidden: If the caller is not the owning provider
        ValidationError: If a field is unknown or invalid
    """
    offering = _owned_offering(session, offering_id, 'update')

    unknown = sorted(set(changes) - set(UPDATABLE_FIELDS))
    if unknown:
        raise exceptions.ValidationError(f"{unknown[0]}: This field cannot be updated.")

    for field, value in changes.items():
        setattr(offering, field, CLEANERS[field](value))

    if changes:
        offering.save(update_fields=[*changes, 'updated_at'])
        logger.info(
            f"Service offering updated. Offering ID: {offering.pk}, "
            f"Fields: {', '.join(sorted(changes))}"
        )
    return offering


def set_offering_active(session, offering_id, active):
    """
    Show or hide one of the caller's offerings. Idempotent.

    Raises:
        NotFound: If the offering does not exist
        Forbidden: If the caller is not the owning provider
        ValidationError: If active is not a boolean
    """
    if not isinstance(active, bool):
        raise exceptions.ValidationError('is_active: Must be true or false.')

    offering = _owned_offering(session, offering_id, 'update')
    if offering.is_active != active:
        offering.is_active = active
        offering.save(update_fields=['is_active', 'updated_at'])
        logger.info(f"Service offering {'activated' if active else 'deactivated'}. Offering ID: {offering.pk}")
    return offering


def delete_offering(session, offering_id):
    """
    Remove one of the caller's offerings.

    Offerings that were ever booked are kept for the booking history and
    can only be hidden with ``set_offering_active``.

    Raises:
        NotFound: If the offering does not exist
        Forbidden: If the caller is not the owning provider
        Conflict: If bookings reference the offering
    """
    offering = _owned_offering(session, offering_id, 'delete')
    offering_pk = offering.pk

    try:
        offering.delete()
    except ProtectedError as exc:
        logger.warning(f"Refused to delete booked offering. Offering ID: {offering_pk}")
        raise exceptions.Conflict(
            'This offering has bookings and cannot be deleted. Deactivate it instead.'
        ) from exc

    logger.info(f"Service offering deleted. Offering ID: {offering_pk}")


def list_offerings(provider_id):
    """Active offerings of a provider, newest first. Public."""
    return list(
        ServiceOffering.objects.filter(provider_id=provider_id, is_active=True)
        .order_by('-created_at', '-id')
    )
