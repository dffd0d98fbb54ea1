from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from urllib.parse import urlsplit, urlunsplit

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from marksync.domain.exceptions import SubscriptionError

if TYPE_CHECKING:
    from marksync.config import RedisConfig

logger = logging.getLogger(__name__)


def build_url(cfg: RedisConfig) -> str:
    if cfg.url:
        return cfg.url
    return f"redis://{cfg.host}:{cfg.port}/{cfg.db}"


def redact_url(url: str) -> str:
    """Hide any credentials embedded in a Redis URL before it is logged."""
    parts = urlsplit(url)
    if parts.username is None and parts.password is None:
        return url
    host = parts.hostname or ""
    if parts.port:
        host = f"{host}:{parts.port}"
    return urlunsplit(parts._replace(netloc=f"***@{host}"))


def redis_key(prefix: str, *parts: str) -> str:
    """Compose a namespaced Redis key or channel name."""
    safe_parts = [part for part in parts if part]
    return ":".join([prefix, *safe_parts])


async def create_redis(cfg: RedisConfig) -> aioredis.Redis:
    """Create and ping a Redis client owned by the caller.

    Raises:
        SubscriptionError: If Redis cannot be reached.
    """
    url = build_url(cfg)
    safe_url = redact_url(url)
    client = aioredis.from_url(
        url,
        password=cfg.password,
        socket_timeout=cfg.socket_timeout,
        decode_responses=True,
    )
    try:
        await client.ping()
    except RedisError as exc:
        logger.warning("redis_connection_failed", exc_info=True, extra={"url": safe_url})
        await client.aclose()
        raise SubscriptionError(f"Redis unavailable: {exc}", details={"url": safe_url}) from exc
    logger.info("redis_connected", extra={"url": safe_url, "db": cfg.db, "prefix": cfg.prefix})
    return client
