"""Share codes, join/leave, and access control for categories.

A category is either personal (owner-only) or shared, fixed at creation. A
shared category carries a share code and an explicit member list that always
contains the owner. Joining appends one member; leaving removes one. Neither
changes the category kind.
"""

import logging
import secrets

from taskboard.core import db_client
from taskboard.core.config import constants, settings
from taskboard.core.errors import (
    AlreadyMemberError,
    NotFoundError,
    PermissionDeniedError,
    ShareCodeCollisionError,
    ValidationError,
)
from taskboard.core.logging import log_with_user_context, span
from taskboard.domain.category import Category
from taskboard.domain.user import UserProfile
from taskboard.services import user_service


logger = logging.getLogger(__name__)


def generate_share_code(length: int | None = None) -> str:
    """Generate a random uppercase alphanumeric share code."""
    size = length or settings.share_code_length
    return "".join(secrets.choice(constants.SHARE_CODE_ALPHABET) for _ in range(size))


def normalize_share_code(code: str) -> str:
    """Normalize user input to the stored code format."""
    return code.strip().upper()


async def share_code_exists(*, code: str) -> bool:
    """Check whether any category already uses the share code."""
    record = await db_client.get_first_record(
        collection="categories",
        filter_query=f'share_code = "{db_client.sanitize_param(code)}"',
    )
    return record is not None


async def generate_unique_share_code() -> str:
    """Generate a share code not used by any existing category.

    Raises:
        ShareCodeCollisionError: If every attempt collided
    """
    for attempt in range(settings.share_code_max_attempts):
        code = generate_share_code()
        if not await share_code_exists(code=code):
            return code
        logger.warning("Share code collision, regenerating (attempt %d)", attempt + 1)

    msg = f"No unused share code found after {settings.share_code_max_attempts} attempts"
    raise ShareCodeCollisionError(msg)


def is_owner(category: Category, user_id: str) -> bool:
    """Whether the user created the category."""
    return category.owner_id == user_id


def can_access(category: Category, user_id: str) -> bool:
    """Whether the user may read and edit the category and its tasks.

    Owners always have access; other users only through membership of a
    shared category.
    """
    if is_owner(category, user_id):
        return True
    return category.is_shared and user_id in category.members


def assert_can_access(category: Category, user_id: str) -> None:
    """Raise PermissionDeniedError unless the user can access the category."""
    if not can_access(category, user_id):
        log_with_user_context(logger, "warning", "Category access denied", user_id=user_id, category_id=category.id)
        msg = f"User {user_id} cannot access category {category.id}"
        raise PermissionDeniedError(msg)


def assert_is_owner(category: Category, user_id: str) -> None:
    """Raise PermissionDeniedError unless the user owns the category."""
    if not is_owner(category, user_id):
        log_with_user_context(logger, "warning", "Owner-only action denied", user_id=user_id, category_id=category.id)
        msg = f"User {user_id} does not own category {category.id}"
        raise PermissionDeniedError(msg)


async def join_by_code(*, user_id: str, code: str) -> Category:
    """Add a user to the shared category identified by a share code.

    Args:
        user_id: User joining the category
        code: Share code as typed by the user (case-insensitive)

    Returns:
        The updated category

    Raises:
        NotFoundError: If no shared category uses the code
        AlreadyMemberError: If the user is already a member
    """
    with span("membership_service.join_by_code"):
        normalized = normalize_share_code(code)
        record = None
        if normalized:
            record = await db_client.get_first_record(
                collection="categories",
                filter_query=f'share_code = "{db_client.sanitize_param(normalized)}" && is_shared = "true"',
            )

        if record is None:
            log_with_user_context(logger, "info", "Join failed: unknown share code", user_id=user_id)
            msg = f"No shared category matches share code {normalized!r}"
            raise NotFoundError(msg)

        category = Category.model_validate(record)
        if user_id in category.members:
            msg = f"User {user_id} is already a member of category {category.id}"
            raise AlreadyMemberError(msg)

        updated = await db_client.update_record(
            collection="categories",
            record_id=category.id,
            data={"members": [*category.members, user_id]},
        )

        log_with_user_context(logger, "info", "Joined shared category", user_id=user_id, category_id=category.id)
        return Category.model_validate(updated)


async def leave_shared(*, category_id: str, user_id: str) -> Category:
    """Remove a user from a shared category's members.

    The category and its tasks are kept. Leaving a category the user is not a
    member of is a no-op.

    Raises:
        NotFoundError: If the category does not exist
        ValidationError: If the category is personal
        PermissionDeniedError: If the user is the owner (owners delete instead)
    """
    from taskboard.services import category_service

    with span("membership_service.leave_shared"):
        category = await category_service.get_category(category_id=category_id)

        if not category.is_shared:
            msg = f"Category {category_id} is personal and cannot be left"
            raise ValidationError(msg)

        if is_owner(category, user_id):
            msg = f"Owner {user_id} cannot leave category {category_id}; delete it instead"
            raise PermissionDeniedError(msg)

        if user_id not in category.members:
            return category

        members = [member for member in category.members if member != user_id]
        updated = await db_client.update_record(
            collection="categories",
            record_id=category_id,
            data={"members": members},
        )

        log_with_user_context(logger, "info", "Left shared category", user_id=user_id, category_id=category_id)
        return Category.model_validate(updated)


async def remove_or_leave(*, category_id: str, user_id: str) -> str:
    """Remove a category from a user's view: owners delete it, members leave it.

    Returns:
        "deleted" or "left"

    Raises:
        NotFoundError: If the category does not exist
        PermissionDeniedError: If the user neither owns nor belongs to it
    """
    from taskboard.services import category_service

    with span("membership_service.remove_or_leave"):
        category = await category_service.get_category(category_id=category_id)
        assert_can_access(category, user_id)

        if is_owner(category, user_id):
            await category_service.delete_category(category_id=category_id, actor_id=user_id)
            return "deleted"

        await leave_shared(category_id=category_id, user_id=user_id)
        return "left"


async def get_member_profiles(*, category_id: str, user_id: str) -> list[UserProfile]:
    """Resolve the members of a category the user can access to their profiles."""
    from taskboard.services import category_service

    with span("membership_service.get_member_profiles"):
        category = await category_service.get_category(category_id=category_id)
        assert_can_access(category, user_id)

        member_ids = category.members if category.is_shared else [category.owner_id]
        return await user_service.get_profiles(uids=member_ids)
