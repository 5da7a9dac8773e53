"""
Tests for the booking lifecycle: creation, transitions, visibility.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from unittest import mock

import pytest
from django.utils import timezone

from marketplace import exceptions
from marketplace.models import Booking, BookingStatus, Principal, Role, ServiceOffering
from marketplace.services import bookings
from marketplace.services.bookings import TRANSITIONS, BookingEvent, allowed_events


# ============================================================================
# Creation
# ============================================================================

@pytest.mark.django_db
class TestCreateBooking:

    def test_creates_pending_booking(self, customer, provider, offering, make_booking):
        booking = make_booking(notes='Please bring a ladder.')

        assert booking.status == BookingStatus.PENDING
        assert booking.customer_id == customer.pk
        assert booking.provider_id == provider.pk
        assert booking.offering_id == offering.pk
        assert booking.total_amount == Decimal('120.00')
        assert booking.duration_minutes == 90
        assert booking.notes == 'Please bring a ladder.'

    def test_reference_is_derived_from_year_and_id(self, customer_session, provider, offering, tomorrow):
        now = timezone.now()
        booking = bookings.create_booking(customer_session, provider.pk, offering.pk, tomorrow, now=now)

        assert booking.reference == f'BK-{now.year}-{booking.pk:06d}'
        assert Booking.objects.get(pk=booking.pk).reference == booking.reference

    def test_provider_cannot_book(self, provider_session, provider, offering, tomorrow):
        with pytest.raises(exceptions.Forbidden):
            bookings.create_booking(provider_session, provider.pk, offering.pk, tomorrow)
        assert not Booking.objects.exists()

    def test_admin_cannot_book(self, admin_session, provider, offering, tomorrow):
        with pytest.raises(exceptions.Forbidden):
            bookings.create_booking(admin_session, provider.pk, offering.pk, tomorrow)

    def test_suspended_customer_cannot_book(self, customer, customer_session, provider, offering, tomorrow):
        Principal.objects.filter(pk=customer.pk).update(is_active=False)

        with pytest.raises(exceptions.AccountSuspended):
            bookings.create_booking(customer_session, provider.pk, offering.pk, tomorrow)

    def test_slot_must_be_in_the_future(self, customer_session, provider, offering):
        now = timezone.now()

        with pytest.raises(exceptions.ValidationError):
            bookings.create_booking(customer_session, provider.pk, offering.pk, now - timedelta(minutes=1), now=now)
        with pytest.raises(exceptions.ValidationError):
            bookings.create_booking(customer_session, provider.pk, offering.pk, now, now=now)

    def test_slot_must_be_a_datetime(self, customer_session, provider, offering):
        with pytest.raises(exceptions.ValidationError):
            bookings.create_booking(customer_session, provider.pk, offering.pk, '2030-01-01T10:00')

    def test_naive_slot_is_made_aware(self, customer_session, provider, offering):
        slot = datetime.now() + timedelta(days=3)
        booking = bookings.create_booking(customer_session, provider.pk, offering.pk, slot)
        assert timezone.is_aware(booking.slot)

    def test_notes_length_limit(self, make_booking):
        assert make_booking(notes='x' * 1000).notes == 'x' * 1000

        with pytest.raises(exceptions.ValidationError) as excinfo:
            make_booking(notes='x' * 1001)
        assert excinfo.value.detail.startswith('notes:')

    def test_unknown_provider(self, make_booking):
        with pytest.raises(exceptions.NotFound):
            make_booking(provider_id=999999)

    def test_customer_id_is_not_a_provider(self, make_booking, other_customer):
        with pytest.raises(exceptions.NotFound):
            make_booking(provider_id=other_customer.pk)

    def test_suspended_provider_cannot_be_booked(self, make_booking, provider):
        Principal.objects.filter(pk=provider.pk).update(is_active=False)
        with pytest.raises(exceptions.NotFound):
            make_booking()

    def test_offering_must_belong_to_provider(self, make_booking, other_offering):
        with pytest.raises(exceptions.NotFound):
            make_booking(offering_id=other_offering.pk)

    def test_inactive_offering_cannot_be_booked(self, make_booking, offering):
        ServiceOffering.objects.filter(pk=offering.pk).update(is_active=False)
        with pytest.raises(exceptions.NotFound):
            make_booking()


# ============================================================================
# Transitions
# ============================================================================

@pytest.mark.django_db
class TestTransitionBooking:

    @pytest.mark.parametrize('event', list(TRANSITIONS))
    @pytest.mark.parametrize('status', BookingStatus.values)
    def test_transition_table(self, event, status, booking, customer_session, provider_session):
        Booking.objects.filter(pk=booking.pk).update(status=status)
        rule = TRANSITIONS[event]
        session = provider_session if rule.actor == Role.PROVIDER else customer_session

        if status == rule.source:
            updated = bookings.transition_booking(session, booking.pk, event)
            assert updated.status == rule.target
            assert getattr(updated, rule.timestamp_field) is not None
        else:
            with pytest.raises(exceptions.InvalidTransition):
                bookings.transition_booking(session, booking.pk, event)
            assert Booking.objects.get(pk=booking.pk).status == status

    def test_terminal_statuses_admit_no_events(self, booking):
        for status in (BookingStatus.CANCELLED, BookingStatus.COMPLETED):
            booking.status = status
            assert booking.is_terminal()
            assert allowed_events(booking, Role.CUSTOMER) == []
            assert allowed_events(booking, Role.PROVIDER) == []

    def test_allowed_events_for_pending(self, booking):
        assert not booking.is_terminal()
        assert allowed_events(booking, Role.CUSTOMER) == [BookingEvent.WITHDRAW]
        assert allowed_events(booking, Role.PROVIDER) == [BookingEvent.ACCEPT, BookingEvent.REJECT]
        assert allowed_events(booking, Role.ADMIN) == []

    def test_customer_cannot_accept(self, booking, customer_session):
        with pytest.raises(exceptions.Forbidden) as excinfo:
            bookings.transition_booking(customer_session, booking.pk, BookingEvent.ACCEPT)
        assert 'providers' in excinfo.value.detail

    def test_other_provider_cannot_accept(self, booking, other_provider_session):
        with pytest.raises(exceptions.Forbidden):
            bookings.transition_booking(other_provider_session, booking.pk, BookingEvent.ACCEPT)
        assert Booking.objects.get(pk=booking.pk).status == BookingStatus.PENDING

    def test_other_customer_cannot_withdraw(self, booking, other_customer_session):
        with pytest.raises(exceptions.Forbidden):
            bookings.transition_booking(other_customer_session, booking.pk, BookingEvent.WITHDRAW)

    def test_admin_cannot_transition(self, booking, admin_session):
        with pytest.raises(exceptions.Forbidden):
            bookings.transition_booking(admin_session, booking.pk, BookingEvent.ACCEPT)

    def test_forbidden_is_reported_before_invalid_transition(self, completed_booking, other_provider_session):
        with pytest.raises(exceptions.Forbidden):
            bookings.transition_booking(other_provider_session, completed_booking.pk, BookingEvent.MARK_DONE)

    def test_unknown_booking(self, provider_session):
        with pytest.raises(exceptions.NotFound):
            bookings.transition_booking(provider_session, 999999, BookingEvent.ACCEPT)

    @pytest.mark.parametrize('event', ['approve', 'ACCEPT', 'mark-done', ''])
    def test_unknown_event(self, booking, provider_session, event):
        with pytest.raises(exceptions.ValidationError):
            bookings.transition_booking(provider_session, booking.pk, event)

    def test_reason_length_limit(self, booking, provider_session):
        with pytest.raises(exceptions.ValidationError):
            bookings.transition_booking(provider_session, booking.pk, BookingEvent.REJECT, reason='x' * 1001)
        assert Booking.objects.get(pk=booking.pk).status == BookingStatus.PENDING

    def test_reject_records_reason(self, booking, provider_session):
        now = timezone.now()
        updated = bookings.transition_booking(
            provider_session, booking.pk, BookingEvent.REJECT, reason='Fully booked that day.', now=now
        )

        assert updated.status == BookingStatus.CANCELLED
        assert updated.cancelled_by == Role.PROVIDER
        assert updated.cancellation_reason == 'Fully booked that day.'
        assert updated.cancelled_at == now
        assert updated.status_changed_at == now

    def test_withdraw_records_customer(self, booking, customer_session):
        updated = bookings.transition_booking(customer_session, booking.pk, BookingEvent.WITHDRAW)
        assert updated.cancelled_by == Role.CUSTOMER

    def test_accept_reason_becomes_provider_notes(self, booking, provider_session):
        updated = bookings.transition_booking(
            provider_session, booking.pk, BookingEvent.ACCEPT, reason='See you at nine.'
        )

        assert updated.status == BookingStatus.CONFIRMED
        assert updated.provider_notes == 'See you at nine.'
        assert updated.cancellation_reason == ''

    def test_suspended_provider_cannot_transition(self, booking, provider, provider_session):
        Principal.objects.filter(pk=provider.pk).update(is_active=False)

        with pytest.raises(exceptions.AccountSuspended):
            bookings.transition_booking(provider_session, booking.pk, BookingEvent.ACCEPT)

    def test_stale_read_loses_to_concurrent_transition(self, booking, customer_session, provider_session):
        stale = Booking.objects.get(pk=booking.pk)
        bookings.transition_booking(customer_session, booking.pk, BookingEvent.WITHDRAW)

        with mock.patch.object(Booking.objects, 'get', return_value=stale):
            with pytest.raises(exceptions.InvalidTransition) as excinfo:
                bookings.transition_booking(provider_session, booking.pk, BookingEvent.ACCEPT)

        assert 'changed' in excinfo.value.detail
        assert Booking.objects.get(pk=booking.pk).status == BookingStatus.CANCELLED

    def test_full_lifecycle(self, make_booking, customer_session, provider_session):
        first = make_booking()
        second = make_booking()

        bookings.transition_booking(provider_session, first.pk, BookingEvent.ACCEPT)
        done = bookings.transition_booking(provider_session, first.pk, BookingEvent.MARK_DONE)
        assert done.status == BookingStatus.COMPLETED
        assert done.confirmed_at is not None
        assert done.completed_at is not None

        bookings.transition_booking(provider_session, second.pk, BookingEvent.ACCEPT)
        cancelled = bookings.transition_booking(customer_session, second.pk, BookingEvent.CANCEL)
        assert cancelled.status == BookingStatus.CANCELLED

        with pytest.raises(exceptions.InvalidTransition):
            bookings.transition_booking(provider_session, second.pk, BookingEvent.MARK_DONE)
        with pytest.raises(exceptions.InvalidTransition):
            bookings.transition_booking(customer_session, first.pk, BookingEvent.CANCEL)


# ============================================================================
# Reading
# ============================================================================

@pytest.mark.django_db
class TestReadBookings:

    def test_parties_and_admin_can_read(self, booking, customer_session, provider_session, admin_session):
        for session in (customer_session, provider_session, admin_session):
            assert bookings.get_booking(session, booking.pk) == booking

    def test_outsider_cannot_read(self, booking, other_customer_session, other_provider_session):
        for session in (other_customer_session, other_provider_session):
            with pytest.raises(exceptions.Forbidden):
                bookings.get_booking(session, booking.pk)

    def test_unknown_booking(self, customer_session):
        with pytest.raises(exceptions.NotFound):
            bookings.get_booking(customer_session, 999999)

    def test_lists_own_bookings_newest_first(self, make_booking, customer_session, provider_session):
        first = make_booking()
        second = make_booking()

        assert bookings.list_bookings(customer_session) == [second, first]
        assert bookings.list_bookings(provider_session) == [second, first]

    def test_others_see_nothing(self, booking, other_customer_session, other_provider_session):
        assert bookings.list_bookings(other_customer_session) == []
        assert bookings.list_bookings(other_provider_session) == []

    def test_only_admin_lists_for_someone_else(self, booking, customer, other_customer_session, admin_session):
        with pytest.raises(exceptions.Forbidden):
            bookings.list_bookings(other_customer_session, principal_id=customer.pk)

        assert bookings.list_bookings(admin_session, principal_id=customer.pk) == [booking]

    def test_admin_picks_a_side(self, booking, customer, provider, admin_session):
        assert bookings.list_bookings(admin_session, principal_id=provider.pk, role=Role.PROVIDER) == [booking]
        assert bookings.list_bookings(admin_session, principal_id=provider.pk, role=Role.CUSTOMER) == []

    def test_unknown_principal_is_empty(self, admin_session):
        assert bookings.list_bookings(admin_session, principal_id=999999) == []

    def test_unknown_role_label(self, customer_session):
        with pytest.raises(exceptions.ValidationError):
            bookings.list_bookings(customer_session, role='Customer')
