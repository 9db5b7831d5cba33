"""Custom exception hierarchy for payplan."""


class PayPlanError(Exception):
    """Base exception for all payplan errors."""


class ValidationError(PayPlanError):
    """Raised when caller-supplied input is out of range or incomplete."""


class EntityNotFoundError(PayPlanError):
    """Raised when a referenced entity does not exist."""


class ReferentialIntegrityError(EntityNotFoundError):
    """Raised when a foreign key reference is violated."""


class DomainInvariantError(PayPlanError):
    """Raised when an operation would break a business invariant."""


class InvalidTransitionError(DomainInvariantError):
    """Raised when a status change is not allowed from the current state."""


class ConcurrencyError(PayPlanError):
    """Raised when a write is based on a stale version of an entity."""


class IdempotencyConflictError(PayPlanError):
    """Raised when an idempotency key is replayed with a different payload."""


class ConfigurationError(PayPlanError):
    """Raised when configuration is invalid or missing."""


class SinkError(PayPlanError):
    """Raised when a sink operation fails."""
