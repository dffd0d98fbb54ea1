"""Change events pushed by the remote store.

Payload shape mirrors a row-level change feed: the operation kind, the row
after the change (``new``) and, where the source provides it, the row before
the change (``old``). Delete payloads often carry nothing but the primary key.
"""

from __future__ import annotations

from datetime import datetime  # noqa: TC003 - Pydantic needs this at runtime
from enum import Enum
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from marksync.domain.models.bookmark import Bookmark


class ChangeKind(str, Enum):
    """Row operation that produced a change event."""

    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


class ChangeEvent(BaseModel):
    """Single change notification delivered over the subscription channel."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    kind: ChangeKind = Field(alias="eventType")
    table: str = "bookmarks"
    new: Bookmark | None = None
    old: dict[str, Any] | None = None
    commit_timestamp: datetime | None = None

    @field_validator("kind", mode="before")
    @classmethod
    def _lowercase_kind(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("new", "old", mode="before")
    @classmethod
    def _empty_payload_is_none(cls, value: Any) -> Any:
        if value == {}:
            return None
        return value

    @model_validator(mode="after")
    def _require_new_state(self) -> Self:
        if self.kind in (ChangeKind.INSERT, ChangeKind.UPDATE) and self.new is None:
            msg = f"{self.kind.value} event requires a new-state payload"
            raise ValueError(msg)
        return self

    @property
    def old_id(self) -> str | None:
        """Primary key from the old payload, when the source included one."""
        if not self.old:
            return None
        raw = self.old.get("id")
        if raw in (None, ""):
            return None
        return str(raw)

    def to_wire(self) -> dict[str, Any]:
        payload = self.model_dump(mode="json", by_alias=True)
        payload["eventType"] = self.kind.value.upper()
        return payload
