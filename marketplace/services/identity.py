"""
Identity & Session.

A session is a signed refresh token issued by simplejwt. Issuing one records
an ``OutstandingToken`` row; invalidating it adds a ``BlacklistedToken`` row.
The token carries the principal id and the role fixed at issuance, and is
resolved against the database on every call so that suspension, deletion and
logout take effect immediately.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone as dt_timezone

from django.contrib.auth import authenticate as django_authenticate
from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.validators import validate_email
from django.db import IntegrityError, transaction
from rest_framework_simplejwt.exceptions import TokenBackendError
from rest_framework_simplejwt.settings import api_settings
from rest_framework_simplejwt.state import token_backend
from rest_framework_simplejwt.token_blacklist.models import BlacklistedToken, OutstandingToken
from rest_framework_simplejwt.tokens import RefreshToken

from .. import exceptions
from ..models import Role
from ..validators import DISPLAY_NAME_MAX_LENGTH, check, validate_phone_number

Principal = get_user_model()
logger = logging.getLogger(__name__)

ROLE_CLAIM = 'role'
SIGNUP_ROLES = (Role.CUSTOMER, Role.PROVIDER)


@dataclass(frozen=True)
class Session:
    """
    Credential of an authenticated principal.

    Passed explicitly into every core operation. ``token`` is what the
    transport hands back to the client; the other fields are the claims it
    carries.
    """

    token: str
    principal_id: int
    role: str
    issued_at: datetime

    @classmethod
    def from_token(cls, token):
        """
        Build a session from a token presented by a client.

        Raises:
            SessionExpired: If the token is malformed, forged or expired
        """
        payload = _decode(token)
        return cls(
            token=token,
            principal_id=int(payload[api_settings.USER_ID_CLAIM]),
            role=payload.get(ROLE_CLAIM, ''),
            issued_at=datetime.fromtimestamp(payload['iat'], tz=dt_timezone.utc),
        )

    def __str__(self):
        return f'Session(principal={self.principal_id}, role={self.role})'


def _decode(token):
    try:
        payload = token_backend.decode(str(token), verify=True)
    except TokenBackendError as exc:
        raise exceptions.SessionExpired() from exc

    if payload.get(api_settings.TOKEN_TYPE_CLAIM) != RefreshToken.token_type:
        raise exceptions.SessionExpired()
    if api_settings.USER_ID_CLAIM not in payload or 'jti' not in payload or 'iat' not in payload:
        raise exceptions.SessionExpired()
    return payload


def issue_session(principal):
    """Issue a fresh session for a principal whose credentials were checked."""
    refresh = RefreshToken.for_user(principal)
    refresh[ROLE_CLAIM] = principal.role
    session = Session.from_token(str(refresh))
    logger.info(f"Session issued. Principal ID: {principal.pk}, Role: {principal.role}")
    return session


def _clean_display_name(display_name):
    display_name = (display_name or '').strip()
    if not display_name:
        raise exceptions.ValidationError('display_name: This field may not be blank.')
    if len(display_name) > DISPLAY_NAME_MAX_LENGTH:
        raise exceptions.ValidationError(
            f'display_name: Cannot exceed {DISPLAY_NAME_MAX_LENGTH} characters.'
        )
    return display_name


def _clean_phone(phone):
    phone = (phone or '').strip()
    check(validate_phone_number, phone, 'phone')
    return phone


def register_principal(email, password, display_name, role, phone=''):
    """
    Sign up a customer or provider.

    Args:
        email: Email address, stored lowercase
        password: Plain text password, checked by Django's password validators
        display_name: Name shown to other users
        role: Role.CUSTOMER or Role.PROVIDER
        phone: Optional phone number

    Returns:
        Principal: The new, active, unverified principal

    Raises:
        ValidationError: If any field is invalid or the role cannot sign up
        Conflict: If the email is already registered
    """
    if role not in SIGNUP_ROLES:
        raise exceptions.ValidationError(
            f"role: Must be one of: {', '.join(SIGNUP_ROLES)}."
        )

    email = Principal.objects.normalize_email(email)
    check(validate_email, email, 'email')

    display_name = _clean_display_name(display_name)
    phone = _clean_phone(phone)

    try:
        validate_password(password, user=Principal(email=email, username=email, display_name=display_name))
    except DjangoValidationError as exc:
        raise exceptions.ValidationError(f"password: {' '.join(exc.messages)}") from exc

    if Principal.objects.filter(email__iexact=email).exists():
        logger.warning(f"Registration refused, email already registered. Email: {email}")
        raise exceptions.Conflict('A user with that email already exists.')

    try:
        with transaction.atomic():
            principal = Principal.objects.create_user(
                email=email,
                password=password,
                display_name=display_name,
                role=role,
                phone_number=phone,
            )
    except IntegrityError as exc:
        logger.warning(f"Registration lost a race on a unique email. Email: {email}")
        raise exceptions.Conflict('A user with that email already exists.') from exc

    logger.info(f"Principal registered. Principal ID: {principal.pk}, Role: {role}")
    return principal


def authenticate(email, password, claimed_role=None):
    """
    Check credentials and issue a session.

    Args:
        email: Email address (case-insensitive)
        password: Plain text password
        claimed_role: Optional role the caller expects to log in as

    Returns:
        Session: A new session

    Raises:
        ValidationError: If claimed_role is not a known role value
        InvalidCredentials: If no principal matches, the password is wrong,
            or the principal does not hold claimed_role
        AccountSuspended: If the credentials are valid but the account is inactive
    """
    if claimed_role is not None and claimed_role not in Role.values:
        raise exceptions.ValidationError(
            f"role: Must be one of: {', '.join(Role.values)}."
        )

    email = Principal.objects.normalize_email(email)
    principal = django_authenticate(None, email=email, password=password)

    if principal is None:
        logger.warning(f"Failed login attempt. Email: {email}")
        raise exceptions.InvalidCredentials()

    if claimed_role is not None and principal.role != claimed_role:
        logger.warning(
            f"Failed login attempt with mismatched role. "
            f"Email: {email}, Claimed role: {claimed_role}"
        )
        raise exceptions.InvalidCredentials()

    if not principal.is_active:
        logger.warning(f"Failed login attempt for suspended account. Email: {email}")
        raise exceptions.AccountSuspended()

    return issue_session(principal)


def update_profile(session, display_name=None, phone=None):
    """
    Change the caller's own display name and phone number.

    Fields left as None are not changed; an empty phone clears it. Email and
    role cannot be changed.

    Args:
        session: Session of any active principal
        display_name: New display name
        phone: New phone number, or '' to remove it

    Returns:
        Principal: The updated principal

    Raises:
        ValidationError: If a field is invalid
    """
    principal = resolve(session)

    changed = []
    if display_name is not None:
        principal.display_name = _clean_display_name(display_name)
        changed.append('display_name')
    if phone is not None:
        principal.phone_number = _clean_phone(phone)
        changed.append('phone_number')

    if changed:
        principal.save(update_fields=[*changed, 'updated_at'])
        logger.info(f"Profile updated. Principal ID: {principal.pk}, Fields: {', '.join(changed)}")
    return principal


def invalidate(session):
    """
    End a session. Idempotent and always succeeds.

    Tokens that are already expired, unknown or blacklisted are left as they are.
    """
    if session is None:
        return

    try:
        payload = token_backend.decode(str(session.token), verify=True)
    except TokenBackendError:
        return

    outstanding = OutstandingToken.objects.filter(jti=payload.get('jti')).first()
    if outstanding is None:
        return

    _, created = BlacklistedToken.objects.get_or_create(token=outstanding)
    if created:
        logger.info(f"Session invalidated. Principal ID: {outstanding.user_id}")


def resolve(session):
    """
    Resolve a session to its principal.

    Args:
        session: Session presented by the caller

    Returns:
        Principal: The acting principal, fresh from the database

    Raises:
        Unauthenticated: If there is no session
        SessionExpired: If the token is invalid, expired, revoked, does not
            match the session fields, or the principal is gone or changed role
        AccountSuspended: If the principal has been suspended
    """
    if session is None:
        raise exceptions.Unauthenticated()

    payload = _decode(session.token)
    if int(payload[api_settings.USER_ID_CLAIM]) != session.principal_id:
        raise exceptions.SessionExpired()
    if payload.get(ROLE_CLAIM) != session.role:
        raise exceptions.SessionExpired()

    try:
        principal = Principal.objects.get(pk=session.principal_id)
    except Principal.DoesNotExist:
        raise exceptions.SessionExpired()

    if not principal.is_active:
        raise exceptions.AccountSuspended()

    live = OutstandingToken.objects.filter(
        jti=payload['jti'],
        blacklistedtoken__isnull=True,
    ).exists()
    if not live:
        raise exceptions.SessionExpired()

    if principal.role != session.role:
        raise exceptions.SessionExpired()

    return principal


def revoke_all_sessions(principal):
    """
    Blacklist every outstanding token of a principal.

    Returns:
        int: Number of sessions newly revoked
    """
    revoked = 0
    for outstanding in OutstandingToken.objects.filter(user_id=principal.pk, blacklistedtoken__isnull=True):
        _, created = BlacklistedToken.objects.get_or_create(token=outstanding)
        if created:
            revoked += 1

    if revoked:
        logger.info(f"Sessions revoked. Principal ID: {principal.pk}, Count: {revoked}")
    return revoked
