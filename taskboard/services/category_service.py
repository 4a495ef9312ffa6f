"""Category store: CRUD, ordering, cascading delete, and live views."""

import logging
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Any

from taskboard.core import db_client
from taskboard.core.bulk_writes import converge
from taskboard.core.config import settings
from taskboard.core.errors import DuplicateRecordError, NotFoundError, ShareCodeCollisionError
from taskboard.core.live_query import LiveQuery, SnapshotCallback
from taskboard.core.logging import log_with_user_context, span
from taskboard.domain.category import Category
from taskboard.domain.validators import clean_label
from taskboard.services import membership_service, ordering


logger = logging.getLogger(__name__)

COLLECTION = "categories"


def _personal_only(records: list[dict[str, Any]]) -> list[Category]:
    return [Category.model_validate(record) for record in records if not record.get("is_shared")]


def _shared_only(records: list[dict[str, Any]]) -> list[Category]:
    return [Category.model_validate(record) for record in records if record.get("is_shared")]


def _personal_filter(user_id: str) -> str:
    return f'owner_id = "{db_client.sanitize_param(user_id)}"'


def _shared_filter(user_id: str) -> str:
    return f'members ?= "{db_client.sanitize_param(user_id)}"'


async def get_category(*, category_id: str) -> Category:
    """Get a category by ID.

    Raises:
        NotFoundError: If the category does not exist
    """
    try:
        record = await db_client.get_record(collection=COLLECTION, record_id=category_id)
    except KeyError as e:
        msg = f"Category not found: {category_id}"
        raise NotFoundError(msg) from e
    return Category.model_validate(record)


async def list_owned(*, owner_id: str) -> list[Category]:
    """All categories created by a user, personal and shared, by ascending order."""
    records = await db_client.get_full_list(
        collection=COLLECTION, filter_query=_personal_filter(owner_id), sort="+order"
    )
    return [Category.model_validate(record) for record in records]


async def list_personal(*, user_id: str) -> list[Category]:
    """The user's personal list, by ascending order."""
    records = await db_client.get_full_list(
        collection=COLLECTION, filter_query=_personal_filter(user_id), sort="+order"
    )
    return _personal_only(records)


async def list_shared(*, user_id: str) -> list[Category]:
    """Shared categories the user is a member of, oldest first."""
    records = await db_client.get_full_list(
        collection=COLLECTION,
        filter_query=_shared_filter(user_id),
        sort="+created_at",
    )
    return _shared_only(records)


async def _create_with_share_code(category_data: dict[str, Any]) -> dict[str, Any]:
    """Insert a shared category, drawing a new code whenever the store reports it taken."""
    for attempt in range(settings.share_code_max_attempts):
        category_data["share_code"] = await membership_service.generate_unique_share_code()
        try:
            return await db_client.create_record(collection=COLLECTION, data=category_data)
        except DuplicateRecordError:
            logger.warning("Share code taken at insert, regenerating (attempt %d)", attempt + 1)

    msg = f"No unused share code could be stored after {settings.share_code_max_attempts} attempts"
    raise ShareCodeCollisionError(msg)


async def create_category(
    *,
    owner_id: str,
    name: str,
    order: int | None = None,
    shared: bool = False,
) -> Category:
    """Create a category.

    Args:
        owner_id: Creator's user ID
        name: Category name (stripped; must not be blank)
        order: Position in the list; None appends after the current list
        shared: Create as a shared category with a share code and the owner as member

    Returns:
        Created category

    Raises:
        ValidationError: If the name is blank
        ShareCodeCollisionError: If no unused share code could be generated and stored
    """
    with span("category_service.create_category"):
        cleaned = clean_label(name, field="name")

        if order is None:
            current = await (list_shared(user_id=owner_id) if shared else list_personal(user_id=owner_id))
            order = ordering.next_position(current)

        category_data: dict[str, Any] = {
            "owner_id": owner_id,
            "name": cleaned,
            "order": order,
            "created_at": datetime.now(UTC).isoformat(),
            "is_shared": shared,
        }

        if shared:
            category_data["members"] = [owner_id]
            record = await _create_with_share_code(category_data)
        else:
            record = await db_client.create_record(collection=COLLECTION, data=category_data)
        log_with_user_context(
            logger,
            "info",
            "Created category",
            user_id=owner_id,
            category_id=record["id"],
            shared=shared,
        )
        return Category.model_validate(record)


async def rename_category(*, category_id: str, new_name: str, actor_id: str | None = None) -> Category:
    """Rename a category.

    A blank name or the current name is a no-op and returns the category unchanged.

    Raises:
        NotFoundError: If the category does not exist
        PermissionDeniedError: If actor_id is given and cannot access the category
    """
    with span("category_service.rename_category"):
        category = await get_category(category_id=category_id)
        if actor_id is not None:
            membership_service.assert_can_access(category, actor_id)

        cleaned = new_name.strip() if isinstance(new_name, str) else ""
        if not cleaned or cleaned == category.name:
            logger.debug("Skipping rename of category %s: name blank or unchanged", category_id)
            return category

        record = await db_client.update_record(collection=COLLECTION, record_id=category_id, data={"name": cleaned})
        logger.info("Renamed category %s", category_id)
        return Category.model_validate(record)


async def _delete_tasks_of(category_id: str) -> int:
    """Delete every task of a category, converging on partial failure. Returns the count."""
    tasks = await db_client.get_full_list(
        collection="tasks",
        filter_query=f'category_id = "{db_client.sanitize_param(category_id)}"',
    )
    if not tasks:
        return 0

    def _delete(task_id: str):  # noqa: ANN202
        return lambda: db_client.delete_record(collection="tasks", record_id=task_id)

    await converge(
        operation="cascade_delete",
        writes={task["id"]: _delete(task["id"]) for task in tasks},
    )
    return len(tasks)


async def delete_category(*, category_id: str, actor_id: str | None = None) -> None:
    """Delete a category and every task in it.

    Tasks are deleted first; the category document is deleted only once no task
    remains, so a failed delete leaves the category in place and repeating the
    call converges. Tasks added by another session mid-delete are swept after
    the category is gone.

    Raises:
        NotFoundError: If the category does not exist
        PermissionDeniedError: If actor_id is given and is not the owner
        PartialFailureError: If some task deletes did not converge
    """
    with span("category_service.delete_category"):
        category = await get_category(category_id=category_id)
        if actor_id is not None:
            membership_service.assert_is_owner(category, actor_id)

        deleted = 0
        for _ in range(max(settings.write_max_retries, 1)):
            removed = await _delete_tasks_of(category_id)
            if removed == 0:
                break
            deleted += removed

        await db_client.delete_record(collection=COLLECTION, record_id=category_id)
        deleted += await _delete_tasks_of(category_id)

        logger.info("Deleted category %s and %d task(s)", category_id, deleted)


async def reorder_categories(*, ordered_categories: Sequence[Category]) -> list[Category]:
    """Persist a new category order: each category gets its position in the given list.

    Raises:
        PartialFailureError: If some order writes did not converge
    """
    with span("category_service.reorder_categories"):
        reordered = ordering.assign_positions(ordered_categories)
        await ordering.persist_positions(collection=COLLECTION, items=reordered, operation="reorder_categories")
        return reordered


async def move_category(*, user_id: str, from_index: int, to_index: int) -> list[Category]:
    """Apply a drag-and-drop move to the user's personal list.

    Raises:
        IndexError: If either index is out of range
        PartialFailureError: If some order writes did not converge
    """
    with span("category_service.move_category"):
        categories = await list_personal(user_id=user_id)
        return await ordering.reorder(
            collection=COLLECTION,
            items=categories,
            from_index=from_index,
            to_index=to_index,
        )


async def subscribe_personal(
    *,
    user_id: str,
    on_snapshot: SnapshotCallback | None = None,
) -> LiveQuery[Category]:
    """Live view of the user's personal categories by ascending order (shared ones excluded)."""
    live: LiveQuery[Category] = LiveQuery(
        collection=COLLECTION,
        filter_query=_personal_filter(user_id),
        sort="+order",
        transform=_personal_only,
        on_snapshot=on_snapshot,
    )
    return await live.start()


async def subscribe_shared(
    *,
    user_id: str,
    on_snapshot: SnapshotCallback | None = None,
) -> LiveQuery[Category]:
    """Live view of the shared categories the user is a member of."""
    live: LiveQuery[Category] = LiveQuery(
        collection=COLLECTION,
        filter_query=_shared_filter(user_id),
        sort="+created_at",
        transform=_shared_only,
        on_snapshot=on_snapshot,
    )
    return await live.start()


def _creation_key(category: Category) -> tuple[str, int, str]:
    # Numeric-aware id tie-break for categories created in the same instant
    return (category.created_at, len(category.id), category.id)


async def ensure_default_category(*, user_id: str) -> Category | None:
    """Create the default category for a user who owns none.

    Concurrent calls may each create one; afterwards every caller keeps the
    earliest default category and deletes the rest, so all callers converge on
    the same single category.

    Returns:
        The default category if one was created, None if the user already had categories
    """
    with span("category_service.ensure_default_category"):
        if await list_owned(owner_id=user_id):
            return None

        created = await create_category(owner_id=user_id, name=settings.default_category_name, order=0)

        defaults = [
            category
            for category in await list_owned(owner_id=user_id)
            if not category.is_shared and category.name == settings.default_category_name and category.order == 0
        ]
        if len(defaults) <= 1:
            return created

        keeper = min(defaults, key=_creation_key)
        for duplicate in defaults:
            if duplicate.id == keeper.id:
                continue
            try:
                await delete_category(category_id=duplicate.id)
            except KeyError:
                logger.debug("Duplicate default category %s already removed", duplicate.id)

        log_with_user_context(
            logger,
            "warning",
            "Removed duplicate default categories",
            user_id=user_id,
            removed=len(defaults) - 1,
        )
        return keeper
