"""
Authorization guard for the marketplace core.

A capability describes what a caller needs in order to perform an operation.
``authorize`` checks a session against a capability and raises on denial:

    authorize(session, HasRole(Role.PROVIDER) & OwnerOf(booking, 'provider_id'))

The check is a pure function of the session and the capability. It never
touches the database; callers resolve the session first so that suspended or
revoked sessions are already rejected.
"""

from . import exceptions


class Capability:
    """
    Base class for capabilities.

    Subclasses implement ``allows(session)`` and set ``message``, the detail
    reported when the capability is missing.
    """

    message = 'You do not have permission to perform this action.'

    def allows(self, session):
        raise NotImplementedError

    def __and__(self, other):
        return AllOf(self, other)

    def __or__(self, other):
        return AnyOf(self, other)


class HasRole(Capability):
    """
    Caller's role must be one of a fixed set.

    Roles are compared as enumerated values fixed when the session was issued.
    """

    def __init__(self, *roles, message=None):
        if not roles:
            raise ValueError('HasRole needs at least one role.')
        self.roles = frozenset(str(role) for role in roles)
        self.message = message or (
            'This action is restricted to: '
            + ', '.join(sorted(self.roles)) + '.'
        )

    def allows(self, session):
        return str(session.role) in self.roles

    def __repr__(self):
        return f'HasRole({", ".join(sorted(self.roles))})'


class OwnerOf(Capability):
    """
    Caller's principal id must equal a field of the target entity.

    Example: ``OwnerOf(booking, 'customer_id')`` for a customer cancelling.
    """

    def __init__(self, entity, field, message=None):
        self.entity = entity
        self.field = field
        self.message = message or 'You do not have permission to modify this resource.'

    def allows(self, session):
        return getattr(self.entity, self.field) == session.principal_id

    def __repr__(self):
        return f'OwnerOf({type(self.entity).__name__}.{self.field})'


class AllOf(Capability):
    """Every capability must be held. Reports the first missing one."""

    def __init__(self, *capabilities):
        self.capabilities = capabilities

    def allows(self, session):
        for capability in self.capabilities:
            if not capability.allows(session):
                self.message = capability.message
                return False
        return True


class AnyOf(Capability):
    """At least one capability must be held."""

    def __init__(self, *capabilities, message=None):
        self.capabilities = capabilities
        if message:
            self.message = message

    def allows(self, session):
        return any(capability.allows(session) for capability in self.capabilities)


def authorize(session, capability):
    """
    Allow or deny an operation.

    Args:
        session: Session of the caller, or None when no credential was presented
        capability: Capability required by the operation

    Raises:
        Unauthenticated: If there is no session
        Forbidden: If the session does not hold the capability
    """
    if session is None:
        raise exceptions.Unauthenticated()

    if not capability.allows(session):
        raise exceptions.Forbidden(capability.message)
