"""Profile read service."""

from uuid import UUID

from sqlalchemy.orm import Session

from labmate.db.models import Profile
from labmate.errors import NotFoundError
from labmate.schemas.profile import ProfileOut


def get_profile(db: Session, viewer_id: UUID) -> ProfileOut:
    """Return the viewer's profile.

    Raises:
        NotFoundError: If bootstrap never ran for this viewer.
    """
    profile = db.get(Profile, viewer_id)
    if profile is None:
        raise NotFoundError(message="Profile not found")
    return ProfileOut.model_validate(profile)
