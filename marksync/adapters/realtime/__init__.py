"""Change feed carried over Redis Pub/Sub."""

from marksync.adapters.realtime.redis_feed import RedisChangeFeed, RedisSubscription

__all__ = ["RedisChangeFeed", "RedisSubscription"]
