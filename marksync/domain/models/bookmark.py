"""Bookmark record model.

A bookmark is created by the remote store (which assigns ``id`` and
``created_at``) and is only ever replaced as a whole, never patched.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Bookmark(BaseModel):
    """Bookmark row as stored remotely.

    Wire names follow the remote table (``user_id``, ``url``); the model uses
    the engine's vocabulary (``owner``, ``location``).
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: str
    owner: str = Field(alias="user_id")
    title: str
    location: str = Field(alias="url")
    created_at: datetime

    @field_validator("id", "owner", mode="before")
    @classmethod
    def _coerce_identifier(cls, value: Any) -> str:
        if value is None:
            msg = "identifier is required"
            raise ValueError(msg)
        text = str(value).strip()
        if not text:
            msg = "identifier cannot be empty"
            raise ValueError(msg)
        return text

    @field_validator("title")
    @classmethod
    def _validate_title(cls, value: str) -> str:
        if not value.strip():
            msg = "title cannot be empty"
            raise ValueError(msg)
        return value

    @field_validator("created_at")
    @classmethod
    def _ensure_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    def to_wire(self) -> dict[str, Any]:
        """Serialize using the remote column names."""
        return self.model_dump(mode="json", by_alias=True)
