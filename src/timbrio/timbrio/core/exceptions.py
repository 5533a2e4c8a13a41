class DomainError(Exception):
    """Base exception for business rule violations.

    Every subclass carries a stable ``kind`` so callers (HTTP layer, UIs) can
    branch on it without parsing the message.
    """

    kind = "domain_error"


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""

    kind = "validation_error"


class AuthorizationError(DomainError):
    """Raised when a role lacks permission for an action."""

    kind = "unauthorized"


class NotFoundError(DomainError):
    kind = "not_found"


class InvalidTransition(DomainError):
    """Punch or decision attempted from a state that forbids it."""

    kind = "invalid_transition"


class ConflictError(DomainError):
    """A concurrent write lost the race on a uniqueness or state condition."""

    kind = "conflict"


class TokenError(DomainError):
    kind = "token_error"


class TokenExpired(TokenError):
    kind = "token_expired"


class TokenAlreadyUsed(TokenError):
    kind = "token_already_used"


class TokenNotFound(TokenError):
    kind = "token_not_found"


class InfrastructureError(Exception):
    """Storage failure (timeout, lost connection). Never a business rejection."""

    kind = "infrastructure_error"
