"""Domain models and DTOs."""

from taskboard.domain.category import Category, CategoryKind
from taskboard.domain.create_models import CategoryCreate, JoinRequest, TaskCreate, TaskImport
from taskboard.domain.task import Task
from taskboard.domain.update_models import CategoryUpdate, ReorderRequest, TaskUpdate
from taskboard.domain.user import Identity, UserProfile


__all__ = [
    "Category",
    "CategoryCreate",
    "CategoryKind",
    "CategoryUpdate",
    "Identity",
    "JoinRequest",
    "ReorderRequest",
    "Task",
    "TaskCreate",
    "TaskImport",
    "TaskUpdate",
    "UserProfile",
]
