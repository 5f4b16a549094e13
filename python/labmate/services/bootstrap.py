"""User and profile bootstrap service.

Provides race-safe user and profile creation on first authenticated request.
The profile is seeded from the identity token: email plus the sign-up
metadata (full_name, institution, research_field).
"""

import logging
from collections.abc import Callable, Mapping
from typing import Any
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from labmate.db.models import Profile, User
from labmate.db.session import transaction

logger = logging.getLogger(__name__)

PROFILE_METADATA_FIELDS = ("full_name", "institution", "research_field")


def profile_fields_from_claims(claims: Mapping[str, Any]) -> dict[str, str | None]:
    """Extract profile columns from JWT claims or an identity-service user object."""
    metadata = claims.get("user_metadata") or {}
    fields: dict[str, str | None] = {"email": claims.get("email")}
    for name in PROFILE_METADATA_FIELDS:
        value = metadata.get(name) if isinstance(metadata, Mapping) else None
        fields[name] = value if isinstance(value, str) and value else None
    return fields


def ensure_user_and_profile(db: Session, user_id: UUID, claims: Mapping[str, Any]) -> None:
    """Ensure the user row and its profile exist.

    Idempotent and race-safe: a concurrent first request that inserts the
    same rows makes this call roll back and re-check instead of failing.
    Existing profiles are never overwritten.
    """
    if db.get(User, user_id) is not None and db.get(Profile, user_id) is not None:
        return

    try:
        with transaction(db):
            if db.get(User, user_id) is None:
                db.add(User(id=user_id))
                db.flush()
            if db.get(Profile, user_id) is None:
                db.add(Profile(user_id=user_id, **profile_fields_from_claims(claims)))
                db.flush()
                logger.info("Created profile for user %s", user_id)
    except IntegrityError:
        # Lost race: another request created the rows first
        if db.get(User, user_id) is None or db.get(Profile, user_id) is None:
            logger.error("Failed to find user/profile after race recovery for user %s", user_id)
            raise RuntimeError(f"Failed to bootstrap user {user_id}") from None
        logger.info("Found existing user/profile for %s after race", user_id)


def create_bootstrap_callback(
    session_factory: sessionmaker[Session],
) -> Callable[[UUID, Mapping[str, Any]], None]:
    """Create the auth middleware callback. Each call uses a short-lived session."""

    def callback(user_id: UUID, claims: Mapping[str, Any]) -> None:
        db = session_factory()
        try:
            ensure_user_and_profile(db, user_id, claims)
        finally:
            db.close()

    return callback
