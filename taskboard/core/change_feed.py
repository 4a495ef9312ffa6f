"""In-process change notification for live queries."""

import logging
from collections import defaultdict
from collections.abc import Callable


logger = logging.getLogger(__name__)


class ChangeFeed:
    """Fan-out of "collection changed" notifications to registered listeners.

    The database client publishes after every successful mutation. Listeners are
    plain callables invoked synchronously on the publishing event loop, so they
    must only schedule work (e.g. set an asyncio.Event), never block.
    """

    def __init__(self) -> None:
        self._listeners: dict[str, set[Callable[[], None]]] = defaultdict(set)

    def add_listener(self, collection: str, listener: Callable[[], None]) -> None:
        """Register a listener for changes to a collection."""
        self._listeners[collection].add(listener)

    def remove_listener(self, collection: str, listener: Callable[[], None]) -> None:
        """Unregister a listener. Unknown listeners are ignored."""
        self._listeners[collection].discard(listener)

    def listener_count(self, collection: str) -> int:
        """Return the number of listeners registered on a collection."""
        return len(self._listeners[collection])

    def publish(self, collection: str) -> None:
        """Notify every listener registered on the collection."""
        for listener in list(self._listeners[collection]):
            try:
                listener()
            except Exception:
                logger.exception("Change listener failed", extra={"collection": collection})


# Global change feed instance
change_feed = ChangeFeed()
