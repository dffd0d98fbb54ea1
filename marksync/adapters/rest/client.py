"""HTTP gateway to a PostgREST-style bookmark table."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import ValidationError as PayloadValidationError

from marksync.domain.exceptions import RemoteOperationError, SubscriptionError
from marksync.domain.models.bookmark import Bookmark

if TYPE_CHECKING:
    from typing import Self

    from marksync.config import RemoteStoreConfig
    from marksync.sync.protocols import (
        ChangeFeed,
        ChangeHandler,
        EventFilter,
        StatusHandler,
        SubscriptionHandle,
    )

logger = logging.getLogger(__name__)


def _error_message(response: httpx.Response) -> str:
    """Pull the human-readable message out of an error response body."""
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        for key in ("message", "error_description", "error", "hint"):
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    text = response.text.strip()
    return text[:200] if text else f"HTTP {response.status_code}"


class RestBookmarkGateway:
    """Async gateway for filtered read/insert/delete over HTTP.

    Failures are raised as ``RemoteOperationError`` and never retried; the
    engine decides what to do about them. Change subscriptions are handed to
    the configured ``ChangeFeed``.
    """

    DEFAULT_TIMEOUTS: dict[str, float] = {
        "fetch_all": 30.0,
        "insert": 15.0,
        "delete": 15.0,
    }

    def __init__(
        self,
        api_url: str,
        api_key: str,
        *,
        table: str = "bookmarks",
        access_token: str | None = None,
        timeout: float = 15.0,
        endpoint_timeouts: dict[str, float] | None = None,
        change_feed: ChangeFeed | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the gateway.

        Args:
            api_url: Base REST URL (e.g., http://localhost:54321/rest/v1)
            api_key: Project API key sent as the ``apikey`` header
            table: Table holding the bookmark rows
            access_token: User session token for row-level access control
            timeout: Default request timeout in seconds
            endpoint_timeouts: Per-operation timeout overrides
            change_feed: Feed used for ``subscribe``/``unsubscribe``
            transport: Optional httpx transport (tests pass a MockTransport)
        """
        self.api_url = api_url.rstrip("/")
        self.api_key = api_key
        self.table = table
        self.access_token = access_token
        self.timeout = timeout
        self.endpoint_timeouts = {**self.DEFAULT_TIMEOUTS}
        if endpoint_timeouts:
            self.endpoint_timeouts.update(endpoint_timeouts)
        self._change_feed = change_feed
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_config(
        cls, cfg: RemoteStoreConfig, *, change_feed: ChangeFeed | None = None
    ) -> RestBookmarkGateway:
        return cls(
            cfg.api_url,
            cfg.api_key,
            table=cfg.table,
            access_token=cfg.access_token,
            timeout=cfg.timeout_sec,
            change_feed=change_feed,
        )

    def get_timeout(self, operation: str) -> float:
        return self.endpoint_timeouts.get(operation, self.timeout)

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self.api_key:
            headers["apikey"] = self.api_key
        token = self.access_token or self.api_key
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def __aenter__(self) -> Self:
        self._client = httpx.AsyncClient(
            base_url=self.api_url,
            headers=self._headers(),
            timeout=self.timeout,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args: object) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            msg = "Gateway not initialized. Use async context manager."
            raise RemoteOperationError(msg, operation="connect")
        return self._client

    async def _request(self, operation: str, method: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self.client.request(
                method,
                f"/{self.table}",
                timeout=self.get_timeout(operation),
                **kwargs,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            message = _error_message(exc.response)
            logger.warning(
                "remote_request_rejected",
                extra={
                    "operation": operation,
                    "status_code": exc.response.status_code,
                    "error": message,
                },
            )
            raise RemoteOperationError(
                message, operation=operation, status_code=exc.response.status_code
            ) from exc
        except httpx.TimeoutException as exc:
            logger.warning("remote_request_timed_out", extra={"operation": operation})
            raise RemoteOperationError(
                f"{operation} timed out", operation=operation
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning(
                "remote_request_failed", extra={"operation": operation, "error": str(exc)}
            )
            raise RemoteOperationError(
                f"{operation} failed: {exc}", operation=operation
            ) from exc
        return response

    def _parse_rows(self, operation: str, response: httpx.Response) -> list[Bookmark]:
        try:
            payload = response.json()
        except ValueError as exc:
            raise RemoteOperationError(
                "Remote store returned invalid JSON", operation=operation
            ) from exc
        if not isinstance(payload, list):
            raise RemoteOperationError(
                "Remote store returned an unexpected payload", operation=operation
            )
        try:
            return [Bookmark.model_validate(row) for row in payload]
        except PayloadValidationError as exc:
            raise RemoteOperationError(
                "Remote store returned a malformed row", operation=operation
            ) from exc

    async def fetch_all(self, owner: str) -> list[Bookmark]:
        """Rows owned by ``owner``, newest first."""
        response = await self._request(
            "fetch_all",
            "GET",
            params={
                "select": "*",
                "user_id": f"eq.{owner}",
                "order": "created_at.desc",
            },
        )
        rows = self._parse_rows("fetch_all", response)
        logger.debug("remote_rows_fetched", extra={"identity": owner, "count": len(rows)})
        return rows

    async def insert(self, owner: str, title: str, location: str) -> Bookmark:
        """Create one row; the server assigns ``id`` and ``created_at``."""
        response = await self._request(
            "insert",
            "POST",
            json={"user_id": owner, "title": title, "url": location},
            headers={"Prefer": "return=representation"},
        )
        rows = self._parse_rows("insert", response)
        if not rows:
            raise RemoteOperationError("Insert returned no row", operation="insert")
        return rows[0]

    async def delete(self, bookmark_id: str, owner: str) -> None:
        """Delete by id, additionally filtered by owner."""
        await self._request(
            "delete",
            "DELETE",
            params={"id": f"eq.{bookmark_id}", "user_id": f"eq.{owner}"},
        )

    def _require_feed(self) -> ChangeFeed:
        if self._change_feed is None:
            raise SubscriptionError("No change feed configured for this gateway")
        return self._change_feed

    async def subscribe(
        self,
        topic: str,
        event_filter: EventFilter,
        handler: ChangeHandler,
        on_status: StatusHandler,
    ) -> SubscriptionHandle:
        return await self._require_feed().subscribe(topic, event_filter, handler, on_status)

    async def unsubscribe(self, handle: SubscriptionHandle) -> None:
        await self._require_feed().unsubscribe(handle)
