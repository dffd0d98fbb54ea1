from marksync.domain.exceptions.domain_exceptions import (
    DomainException,
    InvalidStateTransitionError,
    RemoteOperationError,
    SubscriptionError,
    ValidationError,
)

__all__ = [
    "DomainException",
    "InvalidStateTransitionError",
    "RemoteOperationError",
    "SubscriptionError",
    "ValidationError",
]
