"""Client assembly from ClientSettings.

Builds the controllers a front end needs and wires them to one shared
httpx client:

    client = create_client()
    await client.session.mount(on_change)
    await client.conversations.refresh()
    ...
    await client.aclose()

The API client reads the bearer token from the session controller on every
request, so sign-in, refresh and sign-out take effect without rewiring.
"""

from dataclasses import dataclass

import httpx

from labmate.client.api import ApiClient
from labmate.client.config import ClientSettings, get_client_settings
from labmate.client.conversations import ConversationListController
from labmate.client.identity import IdentityClient
from labmate.client.session import FileSessionStorage, MemorySessionStorage, SessionController
from labmate.client.transcript import TranscriptController
from labmate.logging import get_logger

logger = get_logger(__name__)


@dataclass
class LabmateClient:
    http: httpx.AsyncClient
    identity: IdentityClient
    session: SessionController
    api: ApiClient
    transcript: TranscriptController
    conversations: ConversationListController

    async def aclose(self) -> None:
        self.session.unmount()
        await self.http.aclose()


def create_client(
    settings: ClientSettings | None = None,
    http: httpx.AsyncClient | None = None,
) -> LabmateClient:
    """Create the client controllers.

    Args:
        settings: Defaults to get_client_settings().
        http: Shared transport (for testing). Created when omitted and
            closed by LabmateClient.aclose() either way.
    """
    settings = settings or get_client_settings()
    http = http or httpx.AsyncClient(timeout=httpx.Timeout(settings.client_timeout_s))

    storage = (
        FileSessionStorage(settings.session_file)
        if settings.session_file
        else MemorySessionStorage()
    )
    identity = IdentityClient(settings.supabase_url, settings.supabase_anon_key, http)
    session = SessionController(identity, storage=storage, redirect_url=settings.auth_redirect_url)
    api = ApiClient(
        settings.api_url, session.access_token, http, timeout_s=settings.client_timeout_s
    )
    transcript = TranscriptController(api)
    conversations = ConversationListController(api, transcript)

    logger.info(
        "client_initialized",
        api_url=settings.api_url,
        timeout_s=settings.client_timeout_s,
        persistent_session=settings.session_file is not None,
    )
    return LabmateClient(
        http=http,
        identity=identity,
        session=session,
        api=api,
        transcript=transcript,
        conversations=conversations,
    )
