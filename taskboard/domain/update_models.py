"""Update models for API operations."""

from pydantic import BaseModel, Field, field_validator, model_validator

from taskboard.domain.validators import clean_label


class CategoryUpdate(BaseModel):
    """Rename payload for a category."""

    name: str

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Reject blank names."""
        return clean_label(v, field="name")


class TaskUpdate(BaseModel):
    """Partial update payload for a task."""

    title: str | None = None
    completed: bool | None = None
    order: int | None = Field(default=None, ge=0)

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str | None) -> str | None:
        """Reject blank titles when a title is given."""
        return None if v is None else clean_label(v, field="title")

    @model_validator(mode="after")
    def require_a_field(self) -> "TaskUpdate":
        """Reject empty updates."""
        if not self.model_dump(exclude_none=True):
            raise ValueError("At least one field must be provided")
        return self


class ReorderRequest(BaseModel):
    """Drag-and-drop move: relocate the item at from_index to to_index."""

    from_index: int = Field(..., ge=0)
    to_index: int = Field(..., ge=0)
