"""Error taxonomy for learnledger.

Every failure a core operation can report is one of these kinds. The HTTP layer maps
``status_code`` directly; callers should match on the class, not the message.
"""


class LedgerError(Exception):
    """Base exception for learnledger errors."""

    status_code = 500


class NotFoundError(LedgerError):
    """Referenced course, enrollment, payment or quiz does not exist."""

    status_code = 404


class ConflictError(LedgerError):
    """Uniqueness or state-exclusivity violated."""

    status_code = 409


class ForbiddenError(LedgerError):
    """Caller may not act on this specific record."""

    status_code = 403


class ValidationError(LedgerError):
    """Malformed input."""

    status_code = 400


class InvalidStateError(ValidationError):
    """Record is in a state that does not allow the operation."""


class InternalError(LedgerError):
    """Underlying store or transaction failure."""

    status_code = 500


class AuthenticationError(LedgerError):
    """Caller identity is missing or unrecognised."""

    status_code = 401
