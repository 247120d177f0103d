"""User identity entity."""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class User(BaseModel):
    """Signed-in identity exposed by the session gate."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    id: int = Field(..., description="User ID")
    username: str = Field(..., description="Login name")
    email: str | None = Field(None, description="Contact email")
    is_admin: bool = Field(False, description="Admin flag")
