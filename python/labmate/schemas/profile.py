"""Profile schema."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict


class ProfileOut(BaseModel):
    """Researcher profile shown in the sidebar header."""

    user_id: UUID
    email: str | None = None
    full_name: str | None = None
    institution: str | None = None
    research_field: str | None = None

    model_config = ConfigDict(from_attributes=True)
