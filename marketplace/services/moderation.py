"""
Account moderation. Every operation here requires an ADMIN session.

Permanent deletion is two-phase: ``preview_delete`` reports what will be
removed and hands out a signed confirmation token, ``confirm_delete`` checks
that token and removes the principal with everything referencing it in one
transaction.
"""

import logging

from django.conf import settings
from django.core import signing
from django.db import DatabaseError, transaction
from django.db.models import Q
from rest_framework_simplejwt.token_blacklist.models import OutstandingToken

from .. import exceptions
from ..models import Booking, Review, Role, ServiceOffering
from ..permissions import HasRole, authorize
from .identity import Principal, resolve, revoke_all_sessions

logger = logging.getLogger(__name__)

DELETE_TOKEN_SALT = 'marketplace.moderation.delete'


def _require_admin(session):
    admin = resolve(session)
    try:
        authorize(session, HasRole(Role.ADMIN, message='Administrator privileges required.'))
    except exceptions.Forbidden:
        logger.warning(f"Non-admin attempted a moderation action. Principal ID: {admin.pk}")
        raise
    return admin


def _get_principal(principal_id):
    try:
        return Principal.objects.get(pk=principal_id)
    except (Principal.DoesNotExist, ValueError, TypeError):
        raise exceptions.NotFound(f'User with ID {principal_id} does not exist.')


def verify_principal(session, principal_id):
    """
    Mark a principal as verified. Idempotent.

    Raises:
        Forbidden: If the caller is not an administrator
        NotFound: If the principal does not exist
    """
    admin = _require_admin(session)
    principal = _get_principal(principal_id)

    if principal.is_verified:
        logger.info(f"Principal already verified. Principal ID: {principal.pk}")
        return principal

    principal.is_verified = True
    principal.save(update_fields=['is_verified', 'updated_at'])

    logger.info(
        f"Principal verified. Principal ID: {principal.pk}, Role: {principal.role}, "
        f"Admin ID: {admin.pk}"
    )
    return principal


def suspend_principal(session, principal_id):
    """
    Deactivate a principal and revoke all of its sessions.

    Bookings and reviews are left untouched.

    Raises:
        Forbidden: If the caller is not an administrator
        NotFound: If the principal does not exist
        ValidationError: If an administrator tries to suspend their own account
    """
    admin = _require_admin(session)
    principal = _get_principal(principal_id)

    if principal.pk == admin.pk:
        raise exceptions.ValidationError('You cannot suspend your own account.')

    with transaction.atomic():
        principal.is_active = False
        principal.save(update_fields=['is_active', 'updated_at'])
        revoked = revoke_all_sessions(principal)

    logger.info(
        f"Principal suspended. Principal ID: {principal.pk}, Sessions revoked: {revoked}, "
        f"Admin ID: {admin.pk}"
    )
    return principal


def reactivate_principal(session, principal_id):
    """
    Reactivate a suspended principal.

    Revoked sessions stay revoked; the principal has to log in again.
    """
    admin = _require_admin(session)
    principal = _get_principal(principal_id)

    principal.is_active = True
    principal.save(update_fields=['is_active', 'updated_at'])

    logger.info(f"Principal reactivated. Principal ID: {principal.pk}, Admin ID: {admin.pk}")
    return principal


def list_principals(session, role=None, active=None):
    """All principals, newest first, optionally filtered by role and active flag."""
    _require_admin(session)

    principals = Principal.objects.all()
    if role is not None:
        if role not in Role.values:
            raise exceptions.ValidationError(f"role: Must be one of: {', '.join(Role.values)}.")
        principals = principals.filter(role=role)
    if active is not None:
        principals = principals.filter(is_active=bool(active))
    return list(principals.order_by('-created_at', '-id'))


def pending_verifications(session):
    """Providers still waiting for verification, oldest first."""
    _require_admin(session)
    return list(
        Principal.objects.filter(role=Role.PROVIDER, is_verified=False)
        .order_by('created_at', 'id')
    )


def _cascade_querysets(principal_id):
    bookings = Booking.objects.filter(Q(customer_id=principal_id) | Q(provider_id=principal_id))
    reviews = Review.objects.filter(
        Q(customer_id=principal_id) | Q(provider_id=principal_id) | Q(booking__in=bookings)
    ).distinct()
    offerings = ServiceOffering.objects.filter(provider_id=principal_id)
    sessions = OutstandingToken.objects.filter(user_id=principal_id)
    return bookings, reviews, offerings, sessions


def preview_delete(session, principal_id):
    """
    Dry run of a permanent delete.

    Returns:
        dict: principal id, email and role, the number of bookings, reviews,
        offerings and sessions that would be removed, and the
        ``confirmation_token`` to pass to ``confirm_delete``

    Raises:
        Forbidden: If the caller is not an administrator
        NotFound: If the principal does not exist
        ValidationError: If an administrator targets their own account
    """
    admin = _require_admin(session)
    principal = _get_principal(principal_id)

    if principal.pk == admin.pk:
        raise exceptions.ValidationError('You cannot delete your own account.')

    bookings, reviews, offerings, sessions = _cascade_querysets(principal.pk)
    summary = {
        'principal_id': principal.pk,
        'email': principal.email,
        'role': principal.role,
        'bookings': bookings.count(),
        'reviews': reviews.count(),
        'offerings': offerings.count(),
        'sessions': sessions.count(),
        'confirmation_token': signing.dumps(
            {'principal': principal.pk, 'admin': admin.pk},
            salt=DELETE_TOKEN_SALT,
        ),
    }

    logger.info(
        f"Delete previewed. Principal ID: {principal.pk}, Bookings: {summary['bookings']}, "
        f"Reviews: {summary['reviews']}, Offerings: {summary['offerings']}, Admin ID: {admin.pk}"
    )
    return summary


def confirm_delete(session, principal_id, token, confirm=False):
    """
    Permanently delete a principal and everything referencing it.

    Bookings (as customer or provider), reviews (written, received, or on
    those bookings), offerings and sessions are removed together with the
    principal in a single transaction. Nothing is removed unless all of it is.

    Args:
        session: Session of an administrator
        principal_id: Principal to delete
        token: ``confirmation_token`` from ``preview_delete`` by the same admin
        confirm: Must be exactly True

    Returns:
        dict: Number of principals, bookings, reviews, offerings and sessions removed

    Raises:
        Forbidden: If the caller is not an administrator
        ValidationError: If confirm is not True, or the token is missing,
            invalid, expired or issued for another principal or admin
        NotFound: If the principal does not exist
        Internal: If the cascade fails; the transaction is rolled back
    """
    admin = _require_admin(session)

    if confirm is not True:
        raise exceptions.ValidationError('confirm: Permanent deletion must be explicitly confirmed.')
    if not token:
        raise exceptions.ValidationError('token: A confirmation token from the delete preview is required.')

    try:
        payload = signing.loads(token, salt=DELETE_TOKEN_SALT, max_age=settings.DELETE_CONFIRMATION_MAX_AGE)
    except signing.SignatureExpired:
        raise exceptions.ValidationError('token: The confirmation token has expired. Preview the deletion again.')
    except signing.BadSignature:
        raise exceptions.ValidationError('token: The confirmation token is invalid.')

    principal = _get_principal(principal_id)
    if payload.get('principal') != principal.pk or payload.get('admin') != admin.pk:
        logger.warning(
            f"Delete confirmation token mismatch. Principal ID: {principal.pk}, Admin ID: {admin.pk}"
        )
        raise exceptions.ValidationError('token: The confirmation token does not match this deletion.')
    if principal.pk == admin.pk:
        raise exceptions.ValidationError('You cannot delete your own account.')

    target_id = principal.pk
    try:
        with transaction.atomic():
            bookings, reviews, offerings, sessions = _cascade_querysets(target_id)
            removed = {
                'reviews': reviews.count(),
                'bookings': bookings.count(),
                'offerings': offerings.count(),
                'sessions': sessions.count(),
            }
            Review.objects.filter(pk__in=list(reviews.values_list('pk', flat=True))).delete()
            bookings.delete()
            offerings.delete()
            sessions.delete()
            principal.delete()
            removed['principals'] = 1
    except DatabaseError as exc:
        logger.error(
            f"Permanent delete rolled back. Principal ID: {target_id}, Admin ID: {admin.pk}",
            exc_info=True,
        )
        raise exceptions.Internal('The account could not be deleted. No changes were applied.') from exc

    logger.info(
        f"Principal permanently deleted. Principal ID: {target_id}, "
        f"Bookings: {removed['bookings']}, Reviews: {removed['reviews']}, "
        f"Offerings: {removed['offerings']}, Sessions: {removed['sessions']}, Admin ID: {admin.pk}"
    )
    return removed
