"""Tests for the category store."""

import asyncio

import pytest

from taskboard.core.config import settings
from taskboard.core.errors import (
    NotFoundError,
    PartialFailureError,
    PermissionDeniedError,
    ShareCodeCollisionError,
    ValidationError,
)
from taskboard.services import category_service, membership_service, task_service


async def _never_exists(*, code: str) -> bool:
    return False


@pytest.mark.unit
class TestCreateCategory:
    """Category creation."""

    async def test_personal_category_defaults(self, patched_db, owner_id):
        category = await category_service.create_category(owner_id=owner_id, name="  Work  ")

        assert category.name == "Work"
        assert category.owner_id == owner_id
        assert category.is_shared is False
        assert category.share_code is None
        assert category.members == []
        assert category.order == 0

    async def test_appends_after_existing_personal_categories(self, patched_db, owner_id):
        await category_service.create_category(owner_id=owner_id, name="One")
        await category_service.create_category(owner_id=owner_id, name="Two")
        third = await category_service.create_category(owner_id=owner_id, name="Three")

        assert third.order == 2

    async def test_explicit_order_is_kept(self, patched_db, owner_id):
        category = await category_service.create_category(owner_id=owner_id, name="Pinned", order=5)
        assert category.order == 5

    async def test_shared_category_has_code_and_owner_member(self, patched_db, owner_id):
        category = await category_service.create_category(owner_id=owner_id, name="House", shared=True)

        assert category.is_shared is True
        assert category.share_code is not None
        assert len(category.share_code) == settings.share_code_length
        assert category.members == [owner_id]

    async def test_shared_categories_do_not_shift_personal_order(self, patched_db, owner_id):
        await category_service.create_category(owner_id=owner_id, name="House", shared=True)
        personal = await category_service.create_category(owner_id=owner_id, name="Mine")

        assert personal.order == 0

    async def test_appends_after_highest_order_when_list_has_gaps(self, patched_db, owner_id):
        created = [await category_service.create_category(owner_id=owner_id, name=name) for name in ("X", "Y", "Z")]
        await category_service.delete_category(category_id=created[0].id, actor_id=owner_id)

        await category_service.create_category(owner_id=owner_id, name="W")

        personal = await category_service.list_personal(user_id=owner_id)
        assert [(c.name, c.order) for c in personal] == [("Y", 1), ("Z", 2), ("W", 3)]
        orders = [c.order for c in personal]
        assert len(orders) == len(set(orders))

    async def test_shared_category_retries_when_code_is_taken_at_insert(self, patched_db, owner_id, monkeypatch):
        # Two creators both see the code as free; the store rejects the second insert
        monkeypatch.setattr(membership_service, "share_code_exists", _never_exists)
        codes = iter(["SAME0001", "SAME0001", "FRESH002"])
        monkeypatch.setattr(membership_service, "generate_share_code", lambda length=None: next(codes))

        first = await category_service.create_category(owner_id=owner_id, name="House", shared=True)
        second = await category_service.create_category(owner_id=owner_id, name="Flat", shared=True)

        assert (first.share_code, second.share_code) == ("SAME0001", "FRESH002")
        assert len([r for r in patched_db.records("categories") if r.get("share_code") == "SAME0001"]) == 1

    async def test_shared_category_gives_up_when_every_code_is_taken(self, patched_db, owner_id, monkeypatch):
        monkeypatch.setattr(membership_service, "share_code_exists", _never_exists)
        monkeypatch.setattr(membership_service, "generate_share_code", lambda length=None: "SAME0001")
        await category_service.create_category(owner_id=owner_id, name="House", shared=True)

        with pytest.raises(ShareCodeCollisionError):
            await category_service.create_category(owner_id=owner_id, name="Flat", shared=True)

    @pytest.mark.parametrize("name", ["", "   ", "\n\t"])
    async def test_blank_name_rejected(self, patched_db, owner_id, name):
        with pytest.raises(ValidationError, match="cannot be empty"):
            await category_service.create_category(owner_id=owner_id, name=name)

        assert patched_db.records("categories") == []


@pytest.mark.unit
class TestRenameCategory:
    """Category rename."""

    async def test_rename(self, patched_db, owner_id):
        category = await category_service.create_category(owner_id=owner_id, name="Old")

        renamed = await category_service.rename_category(category_id=category.id, new_name=" New ")

        assert renamed.name == "New"
        assert (await category_service.get_category(category_id=category.id)).name == "New"

    @pytest.mark.parametrize("new_name", ["", "   ", "Old"])
    async def test_blank_or_unchanged_is_noop(self, patched_db, owner_id, new_name):
        category = await category_service.create_category(owner_id=owner_id, name="Old")
        writes_before = patched_db.write_calls

        result = await category_service.rename_category(category_id=category.id, new_name=new_name)

        assert result.name == "Old"
        assert patched_db.write_calls == writes_before

    async def test_outsider_cannot_rename(self, patched_db, owner_id, member_id):
        category = await category_service.create_category(owner_id=owner_id, name="Private")

        with pytest.raises(PermissionDeniedError):
            await category_service.rename_category(category_id=category.id, new_name="Mine", actor_id=member_id)

    async def test_member_can_rename_shared(self, patched_db, owner_id, member_id):
        category = await category_service.create_category(owner_id=owner_id, name="House", shared=True)
        await membership_service.join_by_code(user_id=member_id, code=category.share_code)

        renamed = await category_service.rename_category(category_id=category.id, new_name="Home", actor_id=member_id)

        assert renamed.name == "Home"

    async def test_missing_category(self, patched_db):
        with pytest.raises(NotFoundError):
            await category_service.rename_category(category_id="9999", new_name="x")


@pytest.mark.unit
class TestDeleteCategory:
    """Cascading delete."""

    async def test_deletes_category_and_its_tasks(self, patched_db, owner_id):
        doomed = await category_service.create_category(owner_id=owner_id, name="Doomed")
        kept = await category_service.create_category(owner_id=owner_id, name="Kept")
        for title in ("a", "b", "c"):
            await task_service.create_task(owner_id=owner_id, title=title, category_id=doomed.id)
        await task_service.create_task(owner_id=owner_id, title="stay", category_id=kept.id)

        await category_service.delete_category(category_id=doomed.id, actor_id=owner_id)

        assert await task_service.list_tasks(category_id=doomed.id) == []
        assert [task.title for task in await task_service.list_tasks(category_id=kept.id)] == ["stay"]
        with pytest.raises(NotFoundError):
            await category_service.get_category(category_id=doomed.id)

    async def test_only_owner_can_delete(self, patched_db, owner_id, member_id):
        category = await category_service.create_category(owner_id=owner_id, name="House", shared=True)
        await membership_service.join_by_code(user_id=member_id, code=category.share_code)

        with pytest.raises(PermissionDeniedError):
            await category_service.delete_category(category_id=category.id, actor_id=member_id)

        assert (await category_service.get_category(category_id=category.id)).id == category.id

    async def test_transient_task_delete_failure_converges(self, patched_db, owner_id):
        category = await category_service.create_category(owner_id=owner_id, name="Flaky")
        task = await task_service.create_task(owner_id=owner_id, title="a", category_id=category.id)
        patched_db.fail_writes(task.id, times=1)

        await category_service.delete_category(category_id=category.id)

        assert patched_db.records("tasks") == []
        assert patched_db.records("categories") == []

    async def test_persistent_failure_keeps_category_and_repeat_converges(self, patched_db, owner_id):
        category = await category_service.create_category(owner_id=owner_id, name="Stuck")
        stuck = await task_service.create_task(owner_id=owner_id, title="stuck", category_id=category.id)
        await task_service.create_task(owner_id=owner_id, title="fine", category_id=category.id)
        patched_db.fail_writes(stuck.id, times=settings.write_max_retries)

        with pytest.raises(PartialFailureError) as exc_info:
            await category_service.delete_category(category_id=category.id)

        assert exc_info.value.failed_ids == [stuck.id]
        assert [task.id for task in await task_service.list_tasks(category_id=category.id)] == [stuck.id]
        assert (await category_service.get_category(category_id=category.id)).name == "Stuck"

        await category_service.delete_category(category_id=category.id)

        assert await task_service.list_tasks(category_id=category.id) == []
        assert patched_db.records("categories") == []


@pytest.mark.unit
class TestCategoryOrdering:
    """Personal list reordering."""

    async def test_move_category(self, patched_db, owner_id):
        for name in ("A", "B", "C"):
            await category_service.create_category(owner_id=owner_id, name=name)

        result = await category_service.move_category(user_id=owner_id, from_index=0, to_index=2)

        assert [(c.name, c.order) for c in result] == [("B", 0), ("C", 1), ("A", 2)]
        stored = await category_service.list_personal(user_id=owner_id)
        assert [(c.name, c.order) for c in stored] == [("B", 0), ("C", 1), ("A", 2)]

    async def test_reorder_categories_assigns_positions(self, patched_db, owner_id):
        created = [await category_service.create_category(owner_id=owner_id, name=name) for name in ("A", "B", "C")]

        await category_service.reorder_categories(ordered_categories=list(reversed(created)))

        stored = await category_service.list_personal(user_id=owner_id)
        assert [(c.name, c.order) for c in stored] == [("C", 0), ("B", 1), ("A", 2)]

    async def test_personal_list_excludes_shared(self, patched_db, owner_id):
        await category_service.create_category(owner_id=owner_id, name="Mine")
        await category_service.create_category(owner_id=owner_id, name="Ours", shared=True)

        assert [c.name for c in await category_service.list_personal(user_id=owner_id)] == ["Mine"]
        assert [c.name for c in await category_service.list_shared(user_id=owner_id)] == ["Ours"]


@pytest.mark.unit
class TestEnsureDefaultCategory:
    """First-login default category."""

    async def test_creates_default_for_new_user(self, patched_db, owner_id):
        category = await category_service.ensure_default_category(user_id=owner_id)

        assert category is not None
        assert category.name == settings.default_category_name
        assert category.order == 0

    async def test_noop_when_user_has_categories(self, patched_db, owner_id):
        await category_service.create_category(owner_id=owner_id, name="Existing")

        assert await category_service.ensure_default_category(user_id=owner_id) is None
        assert len(await category_service.list_owned(owner_id=owner_id)) == 1

    async def test_concurrent_calls_converge_on_one_category(self, patched_db, owner_id):
        results = await asyncio.gather(
            category_service.ensure_default_category(user_id=owner_id),
            category_service.ensure_default_category(user_id=owner_id),
            category_service.ensure_default_category(user_id=owner_id),
        )

        owned = await category_service.list_owned(owner_id=owner_id)
        assert len(owned) == 1
        assert {result.id for result in results if result is not None} == {owned[0].id}
