"""Task domain models."""

from pydantic import BaseModel, Field


class Task(BaseModel):
    """Task data transfer object."""

    id: str = Field(..., description="Unique task ID from database")
    owner_id: str = Field(..., description="User ID of the creator")
    category_id: str = Field(..., description="Category the task belongs to")
    title: str = Field(..., description="Task title")
    completed: bool = Field(default=False, description="Whether the task is done")
    order: int = Field(default=0, description="Position among the category's active tasks (ascending)")
    created_at: str = Field(..., description="Creation timestamp (ISO format)")
