"""Message relay route.

POST /chat-with-ai
    Body:    {"messages": [{"role", "content"}, ...], "chatId"?: uuid, "title"?: str}
    200:     {"response": str, "chatId": uuid}
    Errors:  {"error": str, "details": str, "code": str, "request_id": str}
             401 unauthenticated, 400 invalid body, 408 timeout,
             502 provider unavailable / invalid response, 500 configuration / persistence
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from labmate.api.deps import get_app_settings, get_completion_client, get_db
from labmate.auth.middleware import Viewer, get_viewer
from labmate.config import Settings
from labmate.schemas.chat import RelayRequest
from labmate.services import relay as relay_service
from labmate.services.llm import CompletionClient

router = APIRouter(tags=["relay"])


@router.post("/chat-with-ai")
async def chat_with_ai(
    body: RelayRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    completion: Annotated[CompletionClient, Depends(get_completion_client)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> dict:
    result = await relay_service.relay_message(
        db=db,
        viewer_id=viewer.user_id,
        request=body,
        completion=completion,
        settings=settings,
    )
    return result.model_dump(mode="json", by_alias=True)
