from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SyncConfig(BaseModel):
    """Behaviour of the sync engine itself."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    topic: str = Field(default="bookmarks-realtime", validation_alias="SYNC_TOPIC")
    table: str = Field(default="bookmarks", validation_alias="SYNC_TABLE")
    default_scheme: str = Field(default="https", validation_alias="SYNC_DEFAULT_SCHEME")
    apply_insert_result: bool = Field(
        default=False,
        validation_alias="SYNC_APPLY_INSERT_RESULT",
        description=(
            "Insert the server-confirmed row locally as soon as the insert returns "
            "instead of waiting for the change event."
        ),
    )

    @field_validator("topic", "table", mode="before")
    @classmethod
    def _strip_name(cls, value: Any) -> str:
        name = str(value or "").strip()
        if not name:
            msg = "Sync topic and table names cannot be empty"
            raise ValueError(msg)
        if len(name) > 100:
            msg = "Sync topic or table name too long"
            raise ValueError(msg)
        return name

    @field_validator("default_scheme", mode="before")
    @classmethod
    def _validate_scheme(cls, value: Any) -> str:
        scheme = str(value or "https").strip().lower().removesuffix("://")
        if scheme not in {"http", "https"}:
            msg = "Default scheme must be http or https"
            raise ValueError(msg)
        return scheme
