#!/usr/bin/env python3
"""Terminal bookmark watcher.

Binds a sync engine to one user, prints the bookmark list every time it
changes, and optionally adds or removes a bookmark on start.

Usage:
    python scripts/watch_bookmarks.py --user-id USER_ID [--add TITLE URL]
        [--remove BOOKMARK_ID] [--duration SECONDS] [--memory]

With ``--memory`` no remote store or Redis is needed; an in-process store is
used instead.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from contextlib import AsyncExitStack
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

logger = logging.getLogger("watch_bookmarks")


def render(state) -> None:
    print(f"\n=== {state.identity or '(signed out)'} [{state.subscription_status.value}] ===")
    if state.loading:
        print("  loading...")
    if state.error:
        print(f"  ERROR: {state.error}")
    if not state.bookmarks:
        print("  (no bookmarks)")
    for bookmark in state.bookmarks:
        marker = " (deleting)" if bookmark.id in state.deleting_ids else ""
        print(f"  - [{bookmark.id}] {bookmark.title[:50]}{marker}")
        print(f"    {bookmark.location[:80]}")


async def run_watch(
    user_id: str,
    *,
    add: tuple[str, str] | None = None,
    remove: str | None = None,
    duration: float | None = None,
    use_memory: bool = False,
) -> int:
    """Run the watcher until ``duration`` elapses or the process is interrupted.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    from marksync.adapters.memory import InMemoryBookmarkStore
    from marksync.adapters.realtime import RedisChangeFeed
    from marksync.adapters.rest import RestBookmarkGateway
    from marksync.config import load_config
    from marksync.core.logging_utils import setup_json_logging
    from marksync.domain.events.sync_events import EngineStateChanged
    from marksync.infrastructure.messaging.event_bus import EventBus
    from marksync.infrastructure.redis import create_redis
    from marksync.sync import BookmarkSyncEngine

    try:
        cfg = load_config()
    except RuntimeError as exc:
        print(f"\nERROR: {exc}")
        return 1

    setup_json_logging(
        cfg.runtime.log_level,
        use_loguru=cfg.runtime.log_use_loguru,
        log_file=cfg.runtime.log_file,
    )

    bus = EventBus()

    async def on_state(event: EngineStateChanged) -> None:
        render(event.state)

    bus.subscribe(EngineStateChanged, on_state)

    try:
        async with AsyncExitStack() as stack:
            if use_memory:
                gateway = InMemoryBookmarkStore(table=cfg.sync.table)
            else:
                redis_client = await create_redis(cfg.redis)
                stack.push_async_callback(redis_client.aclose)
                feed = RedisChangeFeed(redis_client, prefix=cfg.redis.prefix)
                gateway = await stack.enter_async_context(
                    RestBookmarkGateway.from_config(cfg.remote, change_feed=feed)
                )

            logger.info(
                "watch_started",
                extra={"identity": user_id, "topic": cfg.sync.topic, "memory": use_memory},
            )
            engine = await stack.enter_async_context(
                BookmarkSyncEngine(gateway, config=cfg.sync, event_bus=bus)
            )
            await engine.set_identity(user_id)

            if add is not None:
                await engine.add(*add)
            if remove is not None:
                await engine.remove(remove)

            if duration is not None:
                await asyncio.sleep(duration)
            else:
                await asyncio.Event().wait()
            return 1 if engine.state.error else 0
    except Exception as e:
        logger.exception("watch_failed")
        print(f"\nERROR: {e}")
        return 1


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Watch a user's bookmarks stay in sync")
    parser.add_argument("--user-id", required=True, help="Identity whose bookmarks to show")
    parser.add_argument(
        "--add",
        nargs=2,
        metavar=("TITLE", "URL"),
        default=None,
        help="Add a bookmark after the first load",
    )
    parser.add_argument("--remove", default=None, help="Remove the bookmark with this id")
    parser.add_argument(
        "--duration",
        type=float,
        default=None,
        help="Stop after this many seconds (default: run until interrupted)",
    )
    parser.add_argument(
        "--memory",
        action="store_true",
        help="Use an in-process store instead of the REST API and Redis",
    )
    args = parser.parse_args()

    try:
        exit_code = asyncio.run(
            run_watch(
                args.user_id,
                add=tuple(args.add) if args.add else None,
                remove=args.remove,
                duration=args.duration,
                use_memory=args.memory,
            )
        )
    except KeyboardInterrupt:
        exit_code = 0
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
