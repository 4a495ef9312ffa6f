"""Pydantic models for creating records through the API."""

from pydantic import BaseModel, Field, field_validator

from taskboard.domain.validators import clean_label


class CategoryCreate(BaseModel):
    """Request body for creating a category."""

    name: str = Field(..., description="Category name")
    shared: bool = Field(default=False, description="Create as a shared category with a join code")
    order: int | None = Field(default=None, ge=0, description="Explicit position; appended at the end when omitted")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Reject blank names."""
        return clean_label(v, field="name")


class TaskCreate(BaseModel):
    """Request body for creating a task."""

    title: str = Field(..., description="Task title")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        """Reject blank titles."""
        return clean_label(v, field="title")


class TaskImport(BaseModel):
    """Request body for importing tasks from pasted text, one per line."""

    text: str = Field(..., min_length=1, description="Pasted list text")


class JoinRequest(BaseModel):
    """Request body for joining a shared category."""

    code: str = Field(..., description="Share code (case-insensitive)")

    @field_validator("code")
    @classmethod
    def validate_code(cls, v: str) -> str:
        """Reject blank codes."""
        return clean_label(v, field="code")
