"""Domain-specific exceptions.

These exceptions represent rule violations and remote failures inside the
sync engine. The engine catches them at its public entry points and turns
them into the observable error text.
"""


class DomainException(Exception):
    """Base exception for all domain errors."""

    def __init__(self, message: str, details: dict | None = None) -> None:
        """Initialize domain exception.

        Args:
            message: Human-readable error message.
            details: Optional dictionary with additional error context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(DomainException):
    """Raised when user input is rejected before any remote call."""

    pass


class RemoteOperationError(DomainException):
    """Raised when a remote read, insert or delete fails."""

    def __init__(
        self,
        message: str,
        *,
        operation: str,
        status_code: int | None = None,
        details: dict | None = None,
    ) -> None:
        super().__init__(message, details)
        self.operation = operation
        self.status_code = status_code


class SubscriptionError(DomainException):
    """Raised when the change channel cannot be established or fails."""

    pass


class InvalidStateTransitionError(DomainException):
    """Raised when an invalid state transition is attempted."""

    pass
