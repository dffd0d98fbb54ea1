"""Local collection, change subscription and reconciliation for one identity."""

from marksync.sync.engine import (
    INVALID_LOCATION_MESSAGE,
    REQUIRED_FIELDS_MESSAGE,
    BookmarkSyncEngine,
)
from marksync.sync.state import EngineState, SubscriptionStatus

__all__ = [
    "INVALID_LOCATION_MESSAGE",
    "REQUIRED_FIELDS_MESSAGE",
    "BookmarkSyncEngine",
    "EngineState",
    "SubscriptionStatus",
]
