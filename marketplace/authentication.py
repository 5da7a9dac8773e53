"""
DRF authentication for ``Authorization: Bearer <session token>``.
"""

from rest_framework import exceptions as drf_exceptions
from rest_framework.authentication import BaseAuthentication, get_authorization_header

from . import exceptions
from .services.identity import Session, resolve


def is_public_view(request):
    """True when the view serving this request is marked ``public = True``."""
    view = (getattr(request, 'parser_context', None) or {}).get('view')
    return getattr(view, 'public', False)


class SessionTokenAuthentication(BaseAuthentication):
    """
    Resolve the bearer token to a core Session.

    On success ``request.user`` is the acting Principal and ``request.auth``
    is the Session that views pass into the core operations. Requests without
    a bearer header stay anonymous; the core decides whether that is allowed.
    Expired, revoked and suspended sessions raise the core's own exceptions,
    which the exception handler maps to 401 or 403, except on public views,
    where such a request is served as anonymous.
    """

    keyword = 'Bearer'

    def authenticate(self, request):
        header = get_authorization_header(request).split()

        if not header or header[0].lower() != self.keyword.lower().encode():
            return None

        if len(header) != 2:
            raise drf_exceptions.AuthenticationFailed(
                'Invalid Authorization header. Expected "Bearer <token>".'
            )

        try:
            token = header[1].decode()
        except UnicodeError:
            raise drf_exceptions.AuthenticationFailed('Invalid token header.')

        try:
            session = Session.from_token(token)
            principal = resolve(session)
        except (exceptions.SessionExpired, exceptions.AccountSuspended):
            if is_public_view(request):
                return None
            raise
        return principal, session

    def authenticate_header(self, request):
        return self.keyword
