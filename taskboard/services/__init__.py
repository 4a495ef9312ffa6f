from taskboard.services import (
    category_service,
    membership_service,
    ordering,
    task_service,
    user_service,
)


__all__ = [
    "category_service",
    "membership_service",
    "ordering",
    "task_service",
    "user_service",
]
