"""
Tests for Identity & Session: signup, login, session resolution and logout.
"""

import dataclasses
from datetime import timedelta
from unittest import mock

import pytest
from django.db import IntegrityError
from rest_framework_simplejwt.token_blacklist.models import BlacklistedToken, OutstandingToken
from rest_framework_simplejwt.tokens import RefreshToken

from marketplace import exceptions
from marketplace.models import Principal, Role
from marketplace.services import identity
from marketplace.services.identity import Session
from marketplace.validators import DISPLAY_NAME_MAX_LENGTH

from conftest import PASSWORD


# ============================================================================
# Registration
# ============================================================================

@pytest.mark.django_db
class TestRegisterPrincipal:

    def test_registers_customer(self):
        principal = identity.register_principal(
            email='  New.Customer@Example.COM ',
            password=PASSWORD,
            display_name='New Customer',
            role=Role.CUSTOMER,
            phone='+91 98765 43210',
        )

        assert principal.email == 'new.customer@example.com'
        assert principal.role == Role.CUSTOMER
        assert principal.is_active is True
        assert principal.is_verified is False
        assert principal.check_password(PASSWORD)
        assert principal.password != PASSWORD

    def test_registers_provider(self):
        principal = identity.register_principal('shop@example.com', PASSWORD, 'Shop', Role.PROVIDER)
        assert principal.is_provider()

    def test_admin_role_cannot_sign_up(self):
        with pytest.raises(exceptions.ValidationError):
            identity.register_principal('boss@example.com', PASSWORD, 'Boss', Role.ADMIN)
        assert not Principal.objects.filter(email='boss@example.com').exists()

    def test_alternative_provider_label_is_rejected(self):
        with pytest.raises(exceptions.ValidationError):
            identity.register_principal('alias@example.com', PASSWORD, 'Alias', 'service_provider')

    def test_duplicate_email_is_conflict_case_insensitive(self, customer):
        with pytest.raises(exceptions.Conflict):
            identity.register_principal(customer.email.upper(), PASSWORD, 'Copy', Role.CUSTOMER)

    def test_concurrent_duplicate_hits_unique_index(self):
        with mock.patch.object(Principal.objects, 'create_user', side_effect=IntegrityError('duplicate')):
            with pytest.raises(exceptions.Conflict):
                identity.register_principal('race@example.com', PASSWORD, 'Race', Role.CUSTOMER)

    @pytest.mark.parametrize('password', ['short', '12345678901', 'password'])
    def test_weak_password_is_rejected(self, password):
        with pytest.raises(exceptions.ValidationError) as excinfo:
            identity.register_principal('weak@example.com', password, 'Weak', Role.CUSTOMER)
        assert excinfo.value.detail.startswith('password:')

    def test_invalid_email_is_rejected(self):
        with pytest.raises(exceptions.ValidationError):
            identity.register_principal('not-an-email', PASSWORD, 'Nobody', Role.CUSTOMER)

    def test_blank_display_name_is_rejected(self):
        with pytest.raises(exceptions.ValidationError):
            identity.register_principal('blank@example.com', PASSWORD, '   ', Role.CUSTOMER)

    def test_display_name_length_limit(self):
        name = 'x' * DISPLAY_NAME_MAX_LENGTH
        assert identity.register_principal('long@example.com', PASSWORD, name, Role.CUSTOMER).display_name == name

        with pytest.raises(exceptions.ValidationError) as excinfo:
            identity.register_principal('longer@example.com', PASSWORD, name + 'x', Role.CUSTOMER)
        assert excinfo.value.detail.startswith('display_name:')

    def test_invalid_phone_is_rejected(self):
        with pytest.raises(exceptions.ValidationError):
            identity.register_principal('phone@example.com', PASSWORD, 'Phone', Role.CUSTOMER, phone='0000000000')


# ============================================================================
# Authentication
# ============================================================================

@pytest.mark.django_db
class TestAuthenticate:

    def test_issues_session(self, customer):
        session = identity.authenticate(customer.email, PASSWORD)

        assert isinstance(session, Session)
        assert session.principal_id == customer.pk
        assert session.role == Role.CUSTOMER
        assert session.token
        assert OutstandingToken.objects.filter(user=customer).count() == 1

    def test_email_is_case_insensitive(self, customer):
        session = identity.authenticate(customer.email.upper(), PASSWORD)
        assert session.principal_id == customer.pk

    def test_every_login_issues_an_independent_session(self, customer):
        first = identity.authenticate(customer.email, PASSWORD)
        second = identity.authenticate(customer.email, PASSWORD)

        assert first.token != second.token
        identity.invalidate(first)
        assert identity.resolve(second) == customer

    def test_unknown_email(self, db):
        with pytest.raises(exceptions.InvalidCredentials):
            identity.authenticate('nobody@test.com', PASSWORD)

    def test_wrong_password(self, customer):
        with pytest.raises(exceptions.InvalidCredentials):
            identity.authenticate(customer.email, 'WrongPass123!')

    def test_suspended_account_is_distinct_from_bad_credentials(self, customer):
        Principal.objects.filter(pk=customer.pk).update(is_active=False)

        with pytest.raises(exceptions.AccountSuspended):
            identity.authenticate(customer.email, PASSWORD)

        with pytest.raises(exceptions.InvalidCredentials):
            identity.authenticate(customer.email, 'WrongPass123!')

    def test_claimed_role_must_match(self, customer):
        session = identity.authenticate(customer.email, PASSWORD, Role.CUSTOMER)
        assert session.role == Role.CUSTOMER

        with pytest.raises(exceptions.InvalidCredentials):
            identity.authenticate(customer.email, PASSWORD, Role.PROVIDER)

    @pytest.mark.parametrize('label', ['Customer', 'CUSTOMER', 'service_provider', ''])
    def test_claimed_role_is_never_case_folded(self, customer, label):
        with pytest.raises(exceptions.ValidationError):
            identity.authenticate(customer.email, PASSWORD, label)

    def test_no_session_issued_on_failure(self, customer):
        with pytest.raises(exceptions.InvalidCredentials):
            identity.authenticate(customer.email, 'WrongPass123!')
        assert not OutstandingToken.objects.exists()


# ============================================================================
# Session resolution and logout
# ============================================================================

@pytest.mark.django_db
class TestResolve:

    def test_resolves_to_principal(self, customer, customer_session):
        assert identity.resolve(customer_session) == customer

    def test_missing_session(self):
        with pytest.raises(exceptions.Unauthenticated):
            identity.resolve(None)

    def test_from_token_round_trips(self, customer_session):
        rebuilt = Session.from_token(customer_session.token)
        assert rebuilt == customer_session

    @pytest.mark.parametrize('token', ['', 'garbage', 'a.b.c'])
    def test_malformed_token(self, token):
        with pytest.raises(exceptions.SessionExpired):
            Session.from_token(token)

    def test_expired_token(self, customer):
        refresh = RefreshToken.for_user(customer)
        refresh['role'] = customer.role
        refresh.set_exp(lifetime=-timedelta(minutes=1))

        with pytest.raises(exceptions.SessionExpired):
            Session.from_token(str(refresh))

    def test_access_token_is_not_a_session(self, customer):
        refresh = RefreshToken.for_user(customer)
        with pytest.raises(exceptions.SessionExpired):
            Session.from_token(str(refresh.access_token))

    def test_forged_role_is_rejected(self, customer_session):
        forged = dataclasses.replace(customer_session, role=Role.ADMIN)
        with pytest.raises(exceptions.SessionExpired):
            identity.resolve(forged)

    def test_forged_principal_is_rejected(self, customer_session, other_customer):
        forged = dataclasses.replace(customer_session, principal_id=other_customer.pk)
        with pytest.raises(exceptions.SessionExpired):
            identity.resolve(forged)

    def test_invalidated_session_expires(self, customer_session):
        identity.invalidate(customer_session)

        with pytest.raises(exceptions.SessionExpired):
            identity.resolve(customer_session)

    def test_invalidate_is_idempotent(self, customer_session):
        identity.invalidate(customer_session)
        identity.invalidate(customer_session)
        identity.invalidate(None)

        assert BlacklistedToken.objects.count() == 1

    def test_invalidate_tolerates_garbage(self, db):
        identity.invalidate(Session(token='garbage', principal_id=1, role=Role.CUSTOMER, issued_at=None))

    def test_suspended_principal(self, customer, customer_session):
        Principal.objects.filter(pk=customer.pk).update(is_active=False)

        with pytest.raises(exceptions.AccountSuspended):
            identity.resolve(customer_session)

    def test_deleted_principal(self, customer, customer_session):
        customer.delete()

        with pytest.raises(exceptions.SessionExpired):
            identity.resolve(customer_session)

    def test_role_changed_after_issuance(self, customer, customer_session):
        Principal.objects.filter(pk=customer.pk).update(role=Role.ADMIN)

        with pytest.raises(exceptions.SessionExpired):
            identity.resolve(customer_session)

    def test_revoke_all_sessions(self, customer, login):
        sessions = [login(customer) for _ in range(3)]

        assert identity.revoke_all_sessions(customer) == 3
        assert identity.revoke_all_sessions(customer) == 0

        for session in sessions:
            with pytest.raises(exceptions.SessionExpired):
                identity.resolve(session)


# ============================================================================
# Profile
# ============================================================================

@pytest.mark.django_db
class TestUpdateProfile:

    def test_updates_own_profile(self, customer, customer_session):
        principal = identity.update_profile(customer_session, display_name='  Carol C. ', phone='+1 (234) 567-8900')

        assert principal.pk == customer.pk
        customer.refresh_from_db()
        assert customer.display_name == 'Carol C.'
        assert customer.phone_number == '+1 (234) 567-8900'

    def test_omitted_fields_are_unchanged(self, customer, customer_session):
        identity.update_profile(customer_session, phone='9876543210')
        identity.update_profile(customer_session, display_name='Renamed')

        customer.refresh_from_db()
        assert customer.display_name == 'Renamed'
        assert customer.phone_number == '9876543210'

    def test_empty_phone_clears_it(self, customer, customer_session):
        identity.update_profile(customer_session, phone='9876543210')
        identity.update_profile(customer_session, phone='')

        customer.refresh_from_db()
        assert customer.phone_number == ''

    @pytest.mark.parametrize('changes', [
        {'display_name': '   '},
        {'display_name': 'x' * (DISPLAY_NAME_MAX_LENGTH + 1)},
        {'phone': '12345'},
        {'phone': '1' + '2' * 20},
    ])
    def test_invalid_values(self, customer, customer_session, changes):
        with pytest.raises(exceptions.ValidationError):
            identity.update_profile(customer_session, **changes)

        customer.refresh_from_db()
        assert customer.display_name == 'Carol Customer'

    def test_requires_session(self, db):
        with pytest.raises(exceptions.Unauthenticated):
            identity.update_profile(None, display_name='Nobody')

    def test_suspended_principal(self, customer, customer_session):
        Principal.objects.filter(pk=customer.pk).update(is_active=False)

        with pytest.raises(exceptions.AccountSuspended):
            identity.update_profile(customer_session, display_name='Still Here')
