"""
Shared fixtures for the marketplace test suite.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from django.core.cache import cache
from django.utils import timezone
from rest_framework.test import APIClient

from marketplace.models import Principal, Role, ServiceOffering
from marketplace.services import bookings, identity
from marketplace.services.bookings import BookingEvent

PASSWORD = 'TestPass123!'


@pytest.fixture(autouse=True)
def clear_cache():
    """Clear Django cache before each test to reset throttle limits."""
    cache.clear()


@pytest.fixture(autouse=True)
def fast_password_hasher(settings):
    settings.PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']


@pytest.fixture
def api_client():
    """Provide API client for testing."""
    return APIClient()


@pytest.fixture
def make_principal(db):
    """Factory creating principals directly, bypassing signup validation."""
    def _make(email, role, **extra):
        return Principal.objects.create_user(
            email=email,
            password=PASSWORD,
            display_name=email.split('@')[0].replace('.', ' ').title(),
            role=role,
            **extra
        )
    return _make


@pytest.fixture
def login():
    """Issue a session for a principal created with the test password."""
    def _login(principal):
        return identity.authenticate(principal.email, PASSWORD)
    return _login


@pytest.fixture
def customer(make_principal):
    return make_principal('carol.customer@test.com', Role.CUSTOMER)


@pytest.fixture
def other_customer(make_principal):
    return make_principal('oscar.customer@test.com', Role.CUSTOMER)


@pytest.fixture
def provider(make_principal):
    return make_principal('paula.provider@test.com', Role.PROVIDER, is_verified=True)


@pytest.fixture
def other_provider(make_principal):
    return make_principal('peter.provider@test.com', Role.PROVIDER, is_verified=True)


@pytest.fixture
def admin(db):
    return Principal.objects.create_superuser(
        email='ada.admin@test.com',
        password=PASSWORD,
        display_name='Ada Admin',
    )


@pytest.fixture
def customer_session(customer, login):
    return login(customer)


@pytest.fixture
def other_customer_session(other_customer, login):
    return login(other_customer)


@pytest.fixture
def provider_session(provider, login):
    return login(provider)


@pytest.fixture
def other_provider_session(other_provider, login):
    return login(other_provider)


@pytest.fixture
def admin_session(admin, login):
    return login(admin)


@pytest.fixture
def offering(provider):
    return ServiceOffering.objects.create(
        provider=provider,
        title='Deep Home Cleaning',
        description='Three bedroom flat, supplies included.',
        base_price=Decimal('120.00'),
        duration_minutes=90,
    )


@pytest.fixture
def other_offering(other_provider):
    return ServiceOffering.objects.create(
        provider=other_provider,
        title='Plumbing Repair',
        base_price=Decimal('80.00'),
        duration_minutes=60,
    )


@pytest.fixture
def tomorrow():
    return timezone.now() + timedelta(days=1)


@pytest.fixture
def make_booking(customer_session, provider, offering, tomorrow):
    """Factory creating a PENDING booking between the default customer and provider."""
    def _make(session=None, provider_id=None, offering_id=None, notes=''):
        return bookings.create_booking(
            session or customer_session,
            provider_id=provider_id or provider.pk,
            offering_id=offering_id or offering.pk,
            slot=tomorrow,
            notes=notes,
        )
    return _make


@pytest.fixture
def booking(make_booking):
    return make_booking()


@pytest.fixture
def complete_booking(provider_session):
    """Accept and mark a PENDING booking done as its provider."""
    def _complete(booking, session=None):
        session = session or provider_session
        bookings.transition_booking(session, booking.pk, BookingEvent.ACCEPT)
        return bookings.transition_booking(session, booking.pk, BookingEvent.MARK_DONE)
    return _complete


@pytest.fixture
def completed_booking(booking, complete_booking):
    return complete_booking(booking)
