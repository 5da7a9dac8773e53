"""
Tests for the email login backend.
"""

from unittest import mock

import pytest
from django.contrib.auth import authenticate

from marketplace.models import Principal, Role

from conftest import PASSWORD


@pytest.mark.django_db
class TestEmailBackend:

    def test_email_in_any_case(self, customer):
        assert authenticate(None, email='  Carol.Customer@TEST.com ', password=PASSWORD) == customer

    def test_admin_login_form_sends_username(self, admin):
        assert authenticate(None, username='ADA.ADMIN@test.com', password=PASSWORD) == admin

    def test_wrong_password(self, customer):
        assert authenticate(None, email=customer.email, password='WrongPass123!') is None

    @pytest.mark.parametrize('email, password', [(None, PASSWORD), ('', PASSWORD), ('carol.customer@test.com', None)])
    def test_missing_credentials(self, customer, email, password):
        assert authenticate(None, email=email, password=password) is None

    def test_unknown_email_still_hashes(self, db):
        with mock.patch.object(Principal, 'set_password') as set_password:
            assert authenticate(None, email='nobody@test.com', password=PASSWORD) is None
        set_password.assert_called_once_with(PASSWORD)

    def test_suspended_principal_is_returned(self, customer):
        Principal.objects.filter(pk=customer.pk).update(is_active=False)

        assert authenticate(None, email=customer.email, password=PASSWORD) == customer

    def test_email_change_moves_login(self, customer):
        customer.email = 'Carol.New@Test.com'
        customer.save()

        customer.refresh_from_db()
        assert customer.username == 'carol.new@test.com'
        assert authenticate(None, email='carol.new@test.com', password=PASSWORD) == customer
        assert authenticate(None, email='carol.customer@test.com', password=PASSWORD) is None


@pytest.mark.django_db
def test_manager_normalises_email():
    principal = Principal.objects.create_user(
        email='  Mixed.Case@Example.COM ', password=PASSWORD, display_name='Mixed', role=Role.CUSTOMER
    )

    assert principal.email == 'mixed.case@example.com'
    assert principal.username == 'mixed.case@example.com'
