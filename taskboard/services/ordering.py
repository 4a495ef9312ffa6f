"""Drag-and-drop reordering shared by categories and tasks.

A move relocates one item and then re-indexes the whole list with contiguous
0-based positions, so `order` values never drift or collide. The cost is one
write per item on every move. Two sessions moving items in the same list at
once race per document (last write wins); the result is still a gap-free
permutation of one of the two orderings, with no guaranteed winner.
"""

import logging
from collections.abc import Sequence
from typing import Protocol, TypeVar

from pydantic import BaseModel

from taskboard.core import db_client
from taskboard.core.bulk_writes import converge
from taskboard.core.logging import span


logger = logging.getLogger(__name__)


class Orderable(Protocol):
    """Anything persisted with an id and an integer order."""

    id: str
    order: int


OrderableT = TypeVar("OrderableT", bound=BaseModel)


def move_item(items: Sequence[OrderableT], from_index: int, to_index: int) -> list[OrderableT]:
    """Return a new list with the item at from_index moved to to_index.

    All other items keep their relative order.

    Raises:
        IndexError: If either index is outside the list
    """
    size = len(items)
    if not 0 <= from_index < size or not 0 <= to_index < size:
        msg = f"Move {from_index} -> {to_index} is out of range for {size} item(s)"
        raise IndexError(msg)

    moved = list(items)
    moved.insert(to_index, moved.pop(from_index))
    return moved


def next_position(items: Sequence[Orderable]) -> int:
    """Order value for appending after every item: one past the highest, 0 for an empty list."""
    return max((item.order for item in items), default=-1) + 1


def assign_positions(items: Sequence[OrderableT]) -> list[OrderableT]:
    """Return copies of the items with order set to their 0-based position."""
    return [item.model_copy(update={"order": position}) for position, item in enumerate(items)]


async def persist_positions(*, collection: str, items: Sequence[Orderable], operation: str = "reorder") -> None:
    """Write order = position for every item, concurrently, converging on failure.

    Raises:
        PartialFailureError: If some writes still fail after retrying
    """

    def _write(record_id: str, position: int):  # noqa: ANN202
        return lambda: db_client.update_record(collection=collection, record_id=record_id, data={"order": position})

    await converge(
        operation=operation,
        writes={item.id: _write(item.id, position) for position, item in enumerate(items)},
    )


async def reorder(
    *,
    collection: str,
    items: Sequence[OrderableT],
    from_index: int,
    to_index: int,
) -> list[OrderableT]:
    """Apply a drag-and-drop move to an ordered list and persist the new positions.

    Args:
        collection: Collection the items live in ("categories" or "tasks")
        items: Current list, sorted by ascending order
        from_index: Position the item was dragged from
        to_index: Position the item was dropped at

    Returns:
        The reordered list with contiguous order values. When from_index equals
        to_index the input is returned unchanged and nothing is written.

    Raises:
        IndexError: If either index is out of range
        PartialFailureError: If some order writes did not converge
    """
    with span(f"ordering.reorder.{collection}"):
        if from_index == to_index:
            return list(items)

        moved = assign_positions(move_item(items, from_index, to_index))
        await persist_positions(collection=collection, items=moved, operation=f"reorder_{collection}")

        logger.info(
            "Reordered %d %s (moved %d -> %d)",
            len(moved),
            collection,
            from_index,
            to_index,
        )
        return moved
