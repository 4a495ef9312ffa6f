"""Task store: CRUD, ordering of the active partition, live views, import and export."""

import logging
import re
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Any

from taskboard.core import db_client
from taskboard.core.errors import NotFoundError, ValidationError
from taskboard.core.live_query import LiveQuery, SnapshotCallback
from taskboard.core.logging import log_with_user_context, span
from taskboard.domain.category import Category
from taskboard.domain.task import Task
from taskboard.domain.validators import clean_label
from taskboard.services import category_service, membership_service, ordering


logger = logging.getLogger(__name__)

COLLECTION = "tasks"

UPDATABLE_FIELDS = frozenset({"title", "completed", "order"})

_LIST_MARKER = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s+")


def _to_tasks(records: list[dict[str, Any]]) -> list[Task]:
    return [Task.model_validate(record) for record in records]


def _task_filter(category_id: str, owner_id: str | None) -> str:
    filter_query = f'category_id = "{db_client.sanitize_param(category_id)}"'
    if owner_id is not None:
        filter_query += f' && owner_id = "{db_client.sanitize_param(owner_id)}"'
    return filter_query


def owner_filter_for(category: Category, user_id: str) -> str | None:
    """Owner filter for a category's task view: personal lists see only the user's tasks."""
    return None if category.is_shared else user_id


async def _accessible_category(category_id: str, actor_id: str | None) -> Category:
    category = await category_service.get_category(category_id=category_id)
    if actor_id is not None:
        membership_service.assert_can_access(category, actor_id)
    return category


async def get_task(*, task_id: str) -> Task:
    """Get a task by ID.

    Raises:
        NotFoundError: If the task does not exist
    """
    try:
        record = await db_client.get_record(collection=COLLECTION, record_id=task_id)
    except KeyError as e:
        msg = f"Task not found: {task_id}"
        raise NotFoundError(msg) from e
    return Task.model_validate(record)


async def list_tasks(*, category_id: str, owner_id: str | None = None) -> list[Task]:
    """Tasks of a category by ascending order, optionally only those of one owner."""
    records = await db_client.get_full_list(
        collection=COLLECTION,
        filter_query=_task_filter(category_id, owner_id),
        sort="+order",
    )
    return _to_tasks(records)


async def list_visible_tasks(*, category_id: str, user_id: str) -> list[Task]:
    """Tasks of a category as the user sees them, by ascending order.

    Raises:
        NotFoundError: If the category does not exist
        PermissionDeniedError: If the user cannot access the category
    """
    category = await _accessible_category(category_id, user_id)
    return await list_tasks(category_id=category_id, owner_id=owner_filter_for(category, user_id))


def split_active_completed(tasks: Sequence[Task]) -> tuple[list[Task], list[Task]]:
    """Partition tasks into (active, completed), each kept in ascending order."""
    ordered = sorted(tasks, key=lambda task: task.order)
    active = [task for task in ordered if not task.completed]
    completed = [task for task in ordered if task.completed]
    return active, completed


async def create_task(
    *,
    owner_id: str,
    title: str,
    category_id: str,
    order: int | None = None,
    actor_id: str | None = None,
) -> Task:
    """Create an active task in a category.

    Args:
        owner_id: Creator's user ID
        title: Task title (stripped; must not be blank)
        category_id: Category the task belongs to (must exist)
        order: Position among active tasks; None appends after them
        actor_id: When given, must be able to access the category

    Raises:
        ValidationError: If the title is blank
        NotFoundError: If the category does not exist
        PermissionDeniedError: If actor_id cannot access the category
    """
    with span("task_service.create_task"):
        cleaned = clean_label(title, field="title")
        category = await _accessible_category(category_id, actor_id)

        if order is None:
            current = await list_tasks(category_id=category_id, owner_id=owner_filter_for(category, owner_id))
            active, _ = split_active_completed(current)
            order = ordering.next_position(active)

        record = await db_client.create_record(
            collection=COLLECTION,
            data={
                "owner_id": owner_id,
                "category_id": category_id,
                "title": cleaned,
                "completed": False,
                "order": order,
                "created_at": datetime.now(UTC).isoformat(),
            },
        )
        log_with_user_context(
            logger, "info", "Created task", user_id=owner_id, category_id=category_id, task_id=record["id"]
        )
        return Task.model_validate(record)


async def update_task(*, task_id: str, fields: dict[str, Any], actor_id: str | None = None) -> Task:
    """Partially update a task (title, completed, order).

    Completing or restoring a task re-indexes the remaining active tasks; a
    restored task is appended after them unless an order is given.

    Raises:
        ValidationError: If no field is given, a field is not updatable, or the title is blank
        NotFoundError: If the task does not exist
        PermissionDeniedError: If actor_id cannot access the task's category
        PartialFailureError: If some re-index writes did not converge
    """
    with span("task_service.update_task"):
        if not fields:
            raise ValidationError("No fields to update")
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            msg = f"Fields cannot be updated: {', '.join(sorted(unknown))}"
            raise ValidationError(msg)

        changes = dict(fields)
        if "title" in changes:
            changes["title"] = clean_label(changes["title"], field="title")

        task = await get_task(task_id=task_id)
        completion_changed = "completed" in changes and bool(changes["completed"]) != task.completed
        category = None
        if actor_id is not None or completion_changed:
            category = await _accessible_category(task.category_id, actor_id)

        if completion_changed and not changes["completed"] and "order" not in changes:
            siblings = await list_tasks(
                category_id=task.category_id, owner_id=owner_filter_for(category, task.owner_id)
            )
            active, _ = split_active_completed(siblings)
            changes["order"] = ordering.next_position(active)

        try:
            record = await db_client.update_record(collection=COLLECTION, record_id=task_id, data=changes)
        except KeyError as e:
            msg = f"Task not found: {task_id}"
            raise NotFoundError(msg) from e

        logger.info("Updated task %s", task_id, extra={"fields": sorted(changes)})
        if completion_changed:
            await _compact_active(category, task.owner_id)
            return await get_task(task_id=task_id)
        return Task.model_validate(record)


async def _compact_active(category: Category, owner_id: str) -> None:
    """Re-index the active tasks to 0..n-1 after a task enters or leaves the partition."""
    tasks = await list_tasks(category_id=category.id, owner_id=owner_filter_for(category, owner_id))
    active, _ = split_active_completed(tasks)
    if [task.order for task in active] == list(range(len(active))):
        return
    await ordering.persist_positions(
        collection=COLLECTION,
        items=ordering.assign_positions(active),
        operation="compact_tasks",
    )


async def toggle_completed(*, task_id: str, actor_id: str | None = None) -> Task:
    """Flip a task between active and completed."""
    task = await get_task(task_id=task_id)
    return await update_task(task_id=task_id, fields={"completed": not task.completed}, actor_id=actor_id)


async def rename_task(*, task_id: str, new_title: str, actor_id: str | None = None) -> Task:
    """Rename a task. A blank title or the current title is a no-op."""
    task = await get_task(task_id=task_id)
    cleaned = new_title.strip() if isinstance(new_title, str) else ""
    if not cleaned or cleaned == task.title:
        return task
    return await update_task(task_id=task_id, fields={"title": cleaned}, actor_id=actor_id)


async def delete_task(*, task_id: str, actor_id: str | None = None) -> None:
    """Delete a single task.

    Raises:
        NotFoundError: If the task does not exist
        PermissionDeniedError: If actor_id cannot access the task's category
    """
    with span("task_service.delete_task"):
        task = await get_task(task_id=task_id)
        if actor_id is not None:
            await _accessible_category(task.category_id, actor_id)

        try:
            await db_client.delete_record(collection=COLLECTION, record_id=task_id)
        except KeyError as e:
            msg = f"Task not found: {task_id}"
            raise NotFoundError(msg) from e
        logger.info("Deleted task %s", task_id)


async def reorder_tasks(*, category_id: str, user_id: str, from_index: int, to_index: int) -> list[Task]:
    """Apply a drag-and-drop move to the category's active tasks.

    Completed tasks keep their order values and are never rewritten.

    Raises:
        NotFoundError: If the category does not exist
        PermissionDeniedError: If the user cannot access the category
        IndexError: If either index is outside the active list
        PartialFailureError: If some order writes did not converge
    """
    with span("task_service.reorder_tasks"):
        category = await _accessible_category(category_id, user_id)
        tasks = await list_tasks(category_id=category_id, owner_id=owner_filter_for(category, user_id))
        active, _ = split_active_completed(tasks)
        return await ordering.reorder(collection=COLLECTION, items=active, from_index=from_index, to_index=to_index)


async def subscribe_to_tasks(
    *,
    category_id: str,
    on_snapshot: SnapshotCallback | None = None,
    owner_id: str | None = None,
) -> LiveQuery[Task]:
    """Live view of a category's tasks by ascending order.

    Pass owner_id for a personal category (only that user's tasks); leave it
    None for a shared category, where every member sees every task.
    """
    live: LiveQuery[Task] = LiveQuery(
        collection=COLLECTION,
        filter_query=_task_filter(category_id, owner_id),
        sort="+order",
        transform=_to_tasks,
        on_snapshot=on_snapshot,
    )
    return await live.start()


def format_as_text(name: str, tasks: Sequence[Task]) -> str:
    """Render a list as plain text: the name, active titles, then completed titles."""
    active, completed = split_active_completed(tasks)
    return "\n".join([name, *(task.title for task in active), *(task.title for task in completed)])


async def export_as_text(*, category_id: str, user_id: str) -> str:
    """Plain-text copy of a category as the user sees it."""
    with span("task_service.export_as_text"):
        category = await _accessible_category(category_id, user_id)
        tasks = await list_tasks(category_id=category_id, owner_id=owner_filter_for(category, user_id))
        return format_as_text(category.name, tasks)


def parse_import_lines(text: str, *, category_name: str | None = None) -> list[str]:
    """Turn pasted text into task titles.

    Blank lines are dropped, a first line equal to the category name is
    skipped, and bullet or numbering markers are stripped.
    """
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    if lines and category_name is not None and lines[0] == category_name.strip():
        lines = lines[1:]

    titles = []
    for line in lines:
        title = _LIST_MARKER.sub("", line).strip()
        if title:
            titles.append(title)
    return titles


async def import_tasks(*, category_id: str, user_id: str, text: str) -> list[Task]:
    """Append one task per line of pasted text, in order, after the active tasks.

    Raises:
        NotFoundError: If the category does not exist
        PermissionDeniedError: If the user cannot access the category
    """
    with span("task_service.import_tasks"):
        category = await _accessible_category(category_id, user_id)
        titles = parse_import_lines(text, category_name=category.name)
        if not titles:
            return []

        current = await list_tasks(category_id=category_id, owner_id=owner_filter_for(category, user_id))
        active, _ = split_active_completed(current)
        start = ordering.next_position(active)

        created = []
        for offset, title in enumerate(titles):
            created.append(
                await create_task(owner_id=user_id, title=title, category_id=category_id, order=start + offset),
            )

        log_with_user_context(
            logger, "info", "Imported tasks", user_id=user_id, category_id=category_id, count=len(created)
        )
        return created
