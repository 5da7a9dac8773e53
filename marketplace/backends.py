"""
Email based authentication backend.
"""

from django.contrib.auth import get_user_model
from django.contrib.auth.backends import AllowAllUsersModelBackend

Principal = get_user_model()


class EmailBackend(AllowAllUsersModelBackend):
    """
    Authenticate a principal by email address and password.

    The email is normalised the way ``PrincipalManager`` stores it and then
    matched against ``username``, which holds the same value. Suspended
    principals are returned as well: telling a suspended account apart from
    bad credentials is the job of ``services.identity.authenticate``.
    Unknown emails still run the password hasher, inherited from
    ``ModelBackend``.
    """

    def authenticate(self, request, email=None, password=None, **kwargs):
        """
        Args:
            request: HTTP request object, or None outside a request
            email: Email address in any case
            password: Plain text password
            **kwargs: The admin login form sends ``username`` instead of ``email``

        Returns:
            Principal if the password matches, None otherwise
        """
        if email is None:
            email = kwargs.get(Principal.USERNAME_FIELD)
        email = Principal.objects.normalize_email(email)

        if not email or password is None:
            return None

        return super().authenticate(request, username=email, password=password)
