"""Pytest configuration and shared fixtures.

This module provides common fixtures for all tests.
"""

import asyncio
from datetime import UTC, datetime, timedelta

import pytest

from marksync.adapters.memory import InMemoryBookmarkStore
from marksync.domain.models.bookmark import Bookmark

BASE_TIME = datetime(2025, 6, 15, 12, 0, 0, tzinfo=UTC)


@pytest.fixture
def make_bookmark():
    """Factory for bookmarks whose created_at is offset from a fixed base time."""

    def _make(
        bookmark_id: str = "b1",
        *,
        owner: str = "alice",
        title: str | None = None,
        location: str | None = None,
        minutes: int = 0,
    ) -> Bookmark:
        return Bookmark(
            id=bookmark_id,
            owner=owner,
            title=title or f"Bookmark {bookmark_id}",
            location=location or f"https://example.com/{bookmark_id}",
            created_at=BASE_TIME + timedelta(minutes=minutes),
        )

    return _make


@pytest.fixture
def store():
    """Fresh in-memory remote store shared by all engines in a test."""
    return InMemoryBookmarkStore()


@pytest.fixture
def settle():
    """Let already-scheduled tasks run up to their next suspension point."""

    async def _settle(rounds: int = 5) -> None:
        for _ in range(rounds):
            await asyncio.sleep(0)

    return _settle
