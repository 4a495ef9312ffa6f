"""REST endpoints over the category, task and profile stores."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Response
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from taskboard.core.config import constants
from taskboard.domain.category import Category
from taskboard.domain.create_models import CategoryCreate, JoinRequest, TaskCreate, TaskImport
from taskboard.domain.task import Task
from taskboard.domain.update_models import CategoryUpdate, ReorderRequest, TaskUpdate
from taskboard.domain.user import Identity, UserProfile
from taskboard.interface.identity import current_user_id
from taskboard.services import category_service, membership_service, task_service, user_service


logger = logging.getLogger(__name__)

router = APIRouter(tags=["taskboard"])

UserId = Annotated[str, Depends(current_user_id)]


class ProfileRequest(BaseModel):
    """Identity fields reported by the identity provider at login."""

    display_name: str | None = None
    email: str | None = None
    photo_url: str | None = None


class RemovalResult(BaseModel):
    """Outcome of removing a category from the caller's view."""

    result: str


@router.post("/profiles/me", response_model=UserProfile)
async def save_my_profile(body: ProfileRequest, user_id: UserId) -> UserProfile:
    """Upsert the caller's profile and make sure they have a first category."""
    identity = Identity(uid=user_id, **body.model_dump())
    profile = await user_service.save_profile(identity=identity)
    await category_service.ensure_default_category(user_id=user_id)
    return profile


@router.get("/categories", response_model=list[Category])
async def list_personal_categories(user_id: UserId) -> list[Category]:
    """The caller's personal categories in display order."""
    return await category_service.list_personal(user_id=user_id)


@router.get("/categories/shared", response_model=list[Category])
async def list_shared_categories(user_id: UserId) -> list[Category]:
    """Shared categories the caller belongs to."""
    return await category_service.list_shared(user_id=user_id)


@router.post("/categories", response_model=Category, status_code=constants.HTTP_CREATED)
async def create_category(body: CategoryCreate, user_id: UserId) -> Category:
    return await category_service.create_category(
        owner_id=user_id,
        name=body.name,
        order=body.order,
        shared=body.shared,
    )


@router.post("/categories/reorder", response_model=list[Category])
async def reorder_categories(body: ReorderRequest, user_id: UserId) -> list[Category]:
    """Move one personal category and return the renumbered list."""
    return await category_service.move_category(user_id=user_id, from_index=body.from_index, to_index=body.to_index)


@router.post("/categories/join", response_model=Category)
async def join_category(body: JoinRequest, user_id: UserId) -> Category:
    return await membership_service.join_by_code(user_id=user_id, code=body.code)


@router.patch("/categories/{category_id}", response_model=Category)
async def rename_category(category_id: str, body: CategoryUpdate, user_id: UserId) -> Category:
    return await category_service.rename_category(category_id=category_id, new_name=body.name, actor_id=user_id)


@router.delete("/categories/{category_id}", response_model=RemovalResult)
async def remove_category(category_id: str, user_id: UserId) -> RemovalResult:
    """Owners delete the category with its tasks; members leave it."""
    outcome = await membership_service.remove_or_leave(category_id=category_id, user_id=user_id)
    return RemovalResult(result=outcome)


@router.get("/categories/{category_id}/members", response_model=list[UserProfile])
async def list_members(category_id: str, user_id: UserId) -> list[UserProfile]:
    return await membership_service.get_member_profiles(category_id=category_id, user_id=user_id)


@router.get("/categories/{category_id}/export", response_class=PlainTextResponse)
async def export_category(category_id: str, user_id: UserId) -> str:
    """Plain-text copy of the list."""
    return await task_service.export_as_text(category_id=category_id, user_id=user_id)


@router.get("/categories/{category_id}/tasks", response_model=list[Task])
async def list_tasks(category_id: str, user_id: UserId) -> list[Task]:
    return await task_service.list_visible_tasks(category_id=category_id, user_id=user_id)


@router.post("/categories/{category_id}/tasks", response_model=Task, status_code=constants.HTTP_CREATED)
async def create_task(category_id: str, body: TaskCreate, user_id: UserId) -> Task:
    return await task_service.create_task(
        owner_id=user_id,
        title=body.title,
        category_id=category_id,
        actor_id=user_id,
    )


@router.post("/categories/{category_id}/tasks/import", response_model=list[Task], status_code=constants.HTTP_CREATED)
async def import_tasks(category_id: str, body: TaskImport, user_id: UserId) -> list[Task]:
    """Append one task per line of pasted text."""
    return await task_service.import_tasks(category_id=category_id, user_id=user_id, text=body.text)


@router.post("/categories/{category_id}/tasks/reorder", response_model=list[Task])
async def reorder_tasks(category_id: str, body: ReorderRequest, user_id: UserId) -> list[Task]:
    """Move one active task and return the renumbered active list."""
    return await task_service.reorder_tasks(
        category_id=category_id,
        user_id=user_id,
        from_index=body.from_index,
        to_index=body.to_index,
    )


@router.patch("/tasks/{task_id}", response_model=Task)
async def update_task(task_id: str, body: TaskUpdate, user_id: UserId) -> Task:
    return await task_service.update_task(task_id=task_id, fields=body.model_dump(exclude_none=True), actor_id=user_id)


@router.delete("/tasks/{task_id}", status_code=constants.HTTP_NO_CONTENT)
async def delete_task(task_id: str, user_id: UserId) -> Response:
    await task_service.delete_task(task_id=task_id, actor_id=user_id)
    return Response(status_code=constants.HTTP_NO_CONTENT)
