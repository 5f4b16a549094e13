"""Current user endpoint."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from labmate.api.deps import get_db
from labmate.auth.middleware import Viewer, get_viewer
from labmate.responses import success_response
from labmate.services import profiles as profiles_service

router = APIRouter()


@router.get("/me")
def get_me(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Get the authenticated researcher's profile.

    The profile is created from the identity token on first request; a
    profile without an email falls back to the token email.
    """
    profile = profiles_service.get_profile(db, viewer.user_id)
    if profile.email is None and viewer.email:
        profile = profile.model_copy(update={"email": viewer.email})
    return success_response(profile.model_dump(mode="json"))
