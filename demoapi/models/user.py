"""
Pydantic models for the users API.

``UserResponse`` mirrors the envelope every users endpoint returns:
``status`` is always present, the remaining fields only when set.
"""

from pydantic import BaseModel, Field


class User(BaseModel):
    """A user record as exposed by the API."""

    id: int
    name: str


class UserCreate(BaseModel):
    """Request body for ``POST /api/users``."""

    name: str = Field(..., min_length=1, description="Display name of the new user.")

    model_config = {"extra": "ignore"}


class UserResponse(BaseModel):
    """Standard envelope for user responses. Unset fields are omitted."""

    status: str = "success"
    message: str | None = None
    user: User | None = None
    users: list[User] | None = None
