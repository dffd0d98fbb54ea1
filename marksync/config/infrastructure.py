from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

logger = logging.getLogger(__name__)


class RemoteStoreConfig(BaseModel):
    """REST endpoint of the remote bookmark store."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    api_url: str = Field(
        default="http://localhost:54321/rest/v1",
        validation_alias="REMOTE_API_URL",
    )
    api_key: str = Field(default="", validation_alias="REMOTE_API_KEY")
    access_token: str | None = Field(
        default=None,
        validation_alias="REMOTE_ACCESS_TOKEN",
        description="User session token; falls back to the API key when unset.",
    )
    table: str = Field(default="bookmarks", validation_alias="REMOTE_TABLE")
    timeout_sec: float = Field(default=15.0, validation_alias="REMOTE_TIMEOUT_SEC")

    @field_validator("api_url", mode="before")
    @classmethod
    def _validate_api_url(cls, value: Any) -> str:
        url = str(value or "").strip()
        if not url:
            return "http://localhost:54321/rest/v1"
        if not url.lower().startswith(("http://", "https://")):
            msg = "Remote API URL must start with http:// or https://"
            raise ValueError(msg)
        return url.rstrip("/")

    @field_validator("api_key", mode="before")
    @classmethod
    def _validate_api_key(cls, value: Any) -> str:
        if value in (None, ""):
            return ""
        key = str(value).strip()
        if len(key) > 1000:
            msg = "Remote API key appears to be too long"
            raise ValueError(msg)
        if any(char in key for char in (" ", "\n", "\t")):
            msg = "Remote API key contains invalid characters"
            raise ValueError(msg)
        return key

    @field_validator("access_token", mode="before")
    @classmethod
    def _normalize_token(cls, value: Any) -> str | None:
        if value in (None, ""):
            return None
        return str(value).strip() or None

    @field_validator("table", mode="before")
    @classmethod
    def _validate_table(cls, value: Any) -> str:
        table = str(value or "bookmarks").strip()
        if not table.replace("_", "").isalnum():
            msg = "Remote table name may only contain letters, digits and underscores"
            raise ValueError(msg)
        return table

    @field_validator("timeout_sec", mode="before")
    @classmethod
    def _validate_timeout(cls, value: Any) -> float:
        try:
            timeout = float(str(value if value not in (None, "") else 15.0))
        except ValueError as exc:
            msg = "Remote timeout must be a number"
            raise ValueError(msg) from exc
        if timeout <= 0:
            msg = "Remote timeout must be positive"
            raise ValueError(msg)
        if timeout > 300:
            msg = "Remote timeout too large (max 300 seconds)"
            raise ValueError(msg)
        return timeout


class RedisConfig(BaseModel):
    """Redis connection used for the change feed."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    url: str | None = Field(default=None, validation_alias="REDIS_URL")
    host: str = Field(default="127.0.0.1", validation_alias="REDIS_HOST")
    port: int = Field(default=6379, validation_alias="REDIS_PORT")
    db: int = Field(default=0, validation_alias="REDIS_DB")
    password: str | None = Field(default=None, validation_alias="REDIS_PASSWORD")
    prefix: str = Field(default="marksync", validation_alias="REDIS_PREFIX")
    socket_timeout: float = Field(default=5.0, validation_alias="REDIS_SOCKET_TIMEOUT")

    @field_validator("url", mode="before")
    @classmethod
    def _normalize_url(cls, value: Any) -> str | None:
        if value in (None, ""):
            return None
        cleaned = str(value).strip()
        if cleaned and len(cleaned) > 200:
            msg = "Redis URL appears too long"
            raise ValueError(msg)
        return cleaned or None

    @field_validator("host", mode="before")
    @classmethod
    def _validate_host(cls, value: Any) -> str:
        host = str(value or "").strip()
        if not host:
            msg = "Redis host is required when URL is not provided"
            raise ValueError(msg)
        if len(host) > 200:
            msg = "Redis host appears too long"
            raise ValueError(msg)
        return host

    @field_validator("port", "db", mode="before")
    @classmethod
    def _validate_int_bounds(cls, value: Any, info: ValidationInfo) -> int:
        default = cls.model_fields[info.field_name].default
        try:
            parsed = int(str(value if value not in (None, "") else default))
        except ValueError as exc:
            msg = f"{info.field_name.replace('_', ' ')} must be a valid integer"
            raise ValueError(msg) from exc
        if parsed < 0 or parsed > 65535:
            msg = f"{info.field_name.replace('_', ' ')} must be between 0 and 65535"
            raise ValueError(msg)
        return parsed

    @field_validator("prefix", mode="before")
    @classmethod
    def _validate_prefix(cls, value: Any) -> str:
        prefix = str(value or "marksync").strip().strip(":")
        if not prefix:
            return "marksync"
        return prefix

    @field_validator("socket_timeout", mode="before")
    @classmethod
    def _validate_socket_timeout(cls, value: Any) -> float:
        try:
            parsed = float(str(value if value not in (None, "") else 5.0))
        except ValueError as exc:
            msg = "Redis socket timeout must be a number"
            raise ValueError(msg) from exc
        if parsed <= 0:
            msg = "Redis socket timeout must be positive"
            raise ValueError(msg)
        return parsed
