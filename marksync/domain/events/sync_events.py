"""Domain events describing sync engine state changes.

Presentation layers subscribe to these through the event bus instead of
polling the engine.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from marksync.sync.state import EngineState, SubscriptionStatus


@dataclass(frozen=True)
class DomainEvent:
    """Base class for all domain events."""

    occurred_at: datetime
    aggregate_id: str | None = None

    def __post_init__(self) -> None:
        """Validate event data after initialization."""
        if not isinstance(self.occurred_at, datetime):
            raise TypeError("occurred_at must be a datetime")


@dataclass(frozen=True, kw_only=True)
class EngineStateChanged(DomainEvent):
    """Raised after any observable change of engine state."""

    reason: str
    state: EngineState

    def __post_init__(self) -> None:
        """Validate event data."""
        super().__post_init__()
        if not self.reason:
            raise ValueError("reason must be provided")


@dataclass(frozen=True, kw_only=True)
class SubscriptionStatusChanged(DomainEvent):
    """Raised when the change subscription moves between states."""

    previous: SubscriptionStatus
    current: SubscriptionStatus
