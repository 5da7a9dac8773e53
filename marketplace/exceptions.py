"""
Error taxonomy of the marketplace core.

Every operation in ``marketplace.services`` fails by raising one of these.
The ``kind`` attribute is stable and is what the transport layer maps to a
status code; ``detail`` is a human readable message.
"""


class MarketplaceError(Exception):
    """Base class for every failure the core reports to its caller."""

    kind = 'internal'
    default_detail = 'The operation could not be completed.'

    def __init__(self, detail=None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class ValidationError(MarketplaceError):
    kind = 'validation_error'
    default_detail = 'Invalid input.'


class NotFound(MarketplaceError):
    kind = 'not_found'
    default_detail = 'Not found.'


class Forbidden(MarketplaceError):
    kind = 'forbidden'
    default_detail = 'You do not have permission to perform this action.'


class Unauthenticated(MarketplaceError):
    kind = 'unauthenticated'
    default_detail = 'Authentication credentials were not provided.'


class InvalidCredentials(Unauthenticated):
    kind = 'invalid_credentials'
    default_detail = 'Invalid credentials.'


class SessionExpired(Unauthenticated):
    kind = 'session_expired'
    default_detail = 'Session is invalid or has expired.'


class AccountSuspended(Forbidden):
    """Valid credentials or session, but the account has been deactivated."""

    kind = 'account_suspended'
    default_detail = 'This account has been suspended.'


class InvalidTransition(MarketplaceError):
    kind = 'invalid_transition'
    default_detail = 'The booking cannot make this transition from its current status.'


class Conflict(MarketplaceError):
    kind = 'conflict'
    default_detail = 'The resource already exists.'


class Internal(MarketplaceError):
    kind = 'internal'
    default_detail = 'An internal error occurred. No changes were applied.'
