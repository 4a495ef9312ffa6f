"""Live queries: full result sets re-delivered whenever the matched documents change."""

import asyncio
import contextlib
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Generic, TypeVar

from taskboard.core import db_client
from taskboard.core.change_feed import ChangeFeed, change_feed
from taskboard.core.config import settings


logger = logging.getLogger(__name__)

T = TypeVar("T")

SnapshotCallback = Callable[[list[T]], Awaitable[None] | None]

_CLOSED = object()


class LiveQuery(Generic[T]):
    """Cancellable stream of full result sets for one filtered, sorted query.

    The query is re-run every time its collection changes; a snapshot is delivered
    only when the transformed result differs from the previous one. The first
    snapshot is always delivered, even when empty.

    Snapshots are consumed either by iterating (`async for snapshot in live`,
    `await live.next_snapshot()`) or through an `on_snapshot` callback, which may
    be sync or async. `close()` tears the query down from any owner.

    Usage:
        async with LiveQuery(collection="tasks", filter_query='category_id = "7"', sort="+order") as live:
            snapshot = await live.next_snapshot(timeout=1)
    """

    def __init__(
        self,
        *,
        collection: str,
        filter_query: str = "",
        sort: str = "",
        transform: Callable[[list[dict[str, Any]]], list[T]] | None = None,
        on_snapshot: SnapshotCallback | None = None,
        feed: ChangeFeed | None = None,
    ) -> None:
        self.collection = collection
        self.filter_query = filter_query
        self.sort = sort
        self._transform = transform
        self._on_snapshot = on_snapshot
        self._feed = feed or change_feed
        self._queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=settings.live_query_queue_size)
        self._dirty = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        self._last: list[T] | None = None
        self._closed = False

    @property
    def is_closed(self) -> bool:
        """Whether the live query has been torn down."""
        return self._closed

    def _mark_dirty(self) -> None:
        self._dirty.set()

    async def start(self) -> "LiveQuery[T]":
        """Register on the change feed and schedule the initial snapshot."""
        if self._closed:
            msg = "Cannot restart a closed live query"
            raise RuntimeError(msg)
        if self._task is None:
            self._feed.add_listener(self.collection, self._mark_dirty)
            self._dirty.set()
            self._task = asyncio.create_task(self._run(), name=f"live_query:{self.collection}")
            logger.debug("Live query started", extra={"collection": self.collection, "filter": self.filter_query})
        return self

    async def _run(self) -> None:
        while True:
            await self._dirty.wait()
            self._dirty.clear()

            try:
                records = await db_client.get_full_list(
                    collection=self.collection,
                    filter_query=self.filter_query,
                    sort=self.sort,
                )
                snapshot = self._transform(records) if self._transform else records
            except Exception:
                # The next change notification retries the query
                logger.exception(
                    "Live query refresh failed",
                    extra={"collection": self.collection, "filter": self.filter_query},
                )
                continue

            if snapshot == self._last:
                continue

            self._last = snapshot
            await self._deliver(snapshot)

    async def _deliver(self, snapshot: list[T]) -> None:
        if self._on_snapshot is None:
            self._put(snapshot)
            return

        try:
            result = self._on_snapshot(snapshot)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Snapshot callback failed", extra={"collection": self.collection})

    def _put(self, item: Any) -> None:  # noqa: ANN401
        if self._queue.full():
            # Newer snapshots supersede older undelivered ones
            self._queue.get_nowait()
        self._queue.put_nowait(item)

    async def next_snapshot(self, timeout: float | None = None) -> list[T]:
        """Wait for the next delivered snapshot.

        Raises:
            StopAsyncIteration: If the live query was closed
            TimeoutError: If no snapshot arrives within `timeout` seconds
        """
        item = await asyncio.wait_for(self._queue.get(), timeout)
        if item is _CLOSED:
            self._put(_CLOSED)
            raise StopAsyncIteration
        return item

    def __aiter__(self) -> "LiveQuery[T]":
        return self

    async def __anext__(self) -> list[T]:
        return await self.next_snapshot()

    async def close(self) -> None:
        """Stop listening for changes and end iteration. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self._feed.remove_listener(self.collection, self._mark_dirty)

        if self._task is not None:
            self._task.cancel()
            if self._task is not asyncio.current_task():
                with contextlib.suppress(asyncio.CancelledError):
                    await self._task

        self._put(_CLOSED)
        logger.debug("Live query closed", extra={"collection": self.collection, "filter": self.filter_query})

    async def __aenter__(self) -> "LiveQuery[T]":
        return await self.start()

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
