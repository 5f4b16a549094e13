"""Chat and message API routes.

Routes are transport-only: each calls exactly one service function.

All routes require authentication.
Response envelope: {"data": ...} or {"data": [...], "page": {...}}
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from labmate.api.deps import get_db
from labmate.auth.middleware import Viewer, get_viewer
from labmate.responses import success_response
from labmate.services import chats as chats_service

router = APIRouter(tags=["chats"])


@router.get("/chats")
def list_chats(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    limit: int = Query(default=50, ge=1, le=100, description="Maximum results (1-100)"),
    cursor: str | None = Query(default=None, description="Pagination cursor"),
) -> dict:
    """List the viewer's chats ordered by updated_at DESC, id DESC."""
    chats, page = chats_service.list_chats(
        db=db,
        viewer_id=viewer.user_id,
        limit=limit,
        cursor=cursor,
    )
    return {
        "data": [c.model_dump(mode="json") for c in chats],
        "page": page.model_dump(mode="json"),
    }


@router.get("/chats/{chat_id}")
def get_chat(
    chat_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Errors:
    E_CHAT_NOT_FOUND (404): Chat doesn't exist or viewer is not owner.
    """
    result = chats_service.get_chat(db=db, viewer_id=viewer.user_id, chat_id=chat_id)
    return success_response(result.model_dump(mode="json"))


@router.delete("/chats/{chat_id}", status_code=204)
def delete_chat(
    chat_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> Response:
    """Delete a chat and its messages."""
    chats_service.delete_chat(db=db, viewer_id=viewer.user_id, chat_id=chat_id)
    return Response(status_code=204)


@router.get("/chats/{chat_id}/messages")
def list_messages(
    chat_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    limit: int = Query(default=50, ge=1, le=100, description="Maximum results (1-100)"),
    cursor: str | None = Query(default=None, description="Pagination cursor"),
) -> dict:
    """List a chat's messages oldest first."""
    messages, page = chats_service.list_messages(
        db=db,
        viewer_id=viewer.user_id,
        chat_id=chat_id,
        limit=limit,
        cursor=cursor,
    )
    return {
        "data": [m.model_dump(mode="json") for m in messages],
        "page": page.model_dump(mode="json"),
    }
