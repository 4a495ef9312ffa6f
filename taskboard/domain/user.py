"""User profile domain models."""

from pydantic import BaseModel, Field


class Identity(BaseModel):
    """Signed-in user as reported by the identity provider."""

    uid: str = Field(..., description="Identity provider user ID")
    display_name: str | None = Field(default=None, description="Display name, if the provider has one")
    email: str | None = Field(default=None, description="Email address")
    photo_url: str | None = Field(default=None, description="Avatar URL")


class UserProfile(BaseModel):
    """Read-mostly projection of an identity, used to render category members."""

    uid: str = Field(..., description="Identity provider user ID")
    name: str = Field(..., description="Display name")
    email: str | None = Field(default=None, description="Email address")
    photo_url: str | None = Field(default=None, description="Avatar URL")
    last_login: str | None = Field(default=None, description="Last login timestamp (ISO format)")
