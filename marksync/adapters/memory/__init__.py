"""In-process remote store for tests and demos."""

from marksync.adapters.memory.store import InMemoryBookmarkStore, MemorySubscription

__all__ = ["InMemoryBookmarkStore", "MemorySubscription"]
