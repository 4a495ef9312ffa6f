"""Category domain models and enums."""

from enum import StrEnum

from pydantic import BaseModel, Field


class CategoryKind(StrEnum):
    """Whether a category is owner-only or shared through a join code."""

    PERSONAL = "personal"
    SHARED = "shared"


class Category(BaseModel):
    """Category data transfer object."""

    id: str = Field(..., description="Unique category ID from database")
    owner_id: str = Field(..., description="User ID of the creator")
    name: str = Field(..., description="Display name")
    order: int = Field(default=0, description="Position in the owner's personal list (ascending)")
    created_at: str = Field(..., description="Creation timestamp (ISO format)")
    is_shared: bool = Field(default=False, description="Whether the category is shared through a join code")
    share_code: str | None = Field(default=None, description="Join code, present only on shared categories")
    members: list[str] = Field(default_factory=list, description="Member user IDs, owner included")

    @property
    def kind(self) -> CategoryKind:
        """Personal or shared; fixed at creation."""
        return CategoryKind.SHARED if self.is_shared else CategoryKind.PERSONAL
