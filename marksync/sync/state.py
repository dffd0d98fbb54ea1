"""Observable engine state and the subscription status state machine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from marksync.domain.models.bookmark import Bookmark


class SubscriptionStatus(str, Enum):
    """Connection status of the change subscription."""

    DISABLED = "disabled"
    CONNECTING = "connecting"
    ENABLED = "enabled"
    ERROR = "error"


# Allowed transitions; ERROR is reachable from anywhere
ALLOWED_TRANSITIONS: dict[SubscriptionStatus, frozenset[SubscriptionStatus]] = {
    SubscriptionStatus.DISABLED: frozenset(
        {SubscriptionStatus.CONNECTING, SubscriptionStatus.ERROR}
    ),
    SubscriptionStatus.CONNECTING: frozenset(
        {SubscriptionStatus.ENABLED, SubscriptionStatus.ERROR, SubscriptionStatus.DISABLED}
    ),
    SubscriptionStatus.ENABLED: frozenset(
        {SubscriptionStatus.ERROR, SubscriptionStatus.DISABLED}
    ),
    SubscriptionStatus.ERROR: frozenset({SubscriptionStatus.DISABLED}),
}


def can_transition(current: SubscriptionStatus, target: SubscriptionStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


@dataclass(frozen=True)
class EngineState:
    """Immutable snapshot handed to presentation code."""

    identity: str | None = None
    bookmarks: tuple[Bookmark, ...] = ()
    loading: bool = False
    adding: bool = False
    deleting_ids: frozenset[str] = field(default_factory=frozenset)
    error: str | None = None
    subscription_status: SubscriptionStatus = SubscriptionStatus.DISABLED

    @property
    def busy(self) -> bool:
        """True while any refresh, add or delete is outstanding."""
        return self.loading or self.adding or bool(self.deleting_ids)
