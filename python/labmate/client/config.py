"""Client settings loaded from environment variables.

    LABMATE_API_URL: Base URL of the Labmate API (required)
    SUPABASE_URL / SUPABASE_ANON_KEY: Identity service used for sign-in (required)
    CLIENT_TIMEOUT_S: Budget for one relay round trip (default 30)
    AUTH_REDIRECT_URL: Where the sign-up confirmation email points (optional)
    LABMATE_SESSION_FILE: Persist the session to this JSON file (optional)
"""

from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings

from labmate.config import DEFAULT_COMPLETION_TIMEOUT_S

# The client budget must exceed the server default so server timeouts
# surface as 408 responses rather than client aborts.
SERVER_TIMEOUT_S = DEFAULT_COMPLETION_TIMEOUT_S


class ClientSettings(BaseSettings):
    api_url: str = Field(alias="LABMATE_API_URL")
    supabase_url: str = Field(alias="SUPABASE_URL")
    supabase_anon_key: str = Field(alias="SUPABASE_ANON_KEY")
    client_timeout_s: float = Field(default=30.0, alias="CLIENT_TIMEOUT_S")
    auth_redirect_url: str | None = Field(default=None, alias="AUTH_REDIRECT_URL")
    session_file: str | None = Field(default=None, alias="LABMATE_SESSION_FILE")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @model_validator(mode="after")
    def validate_timeout(self) -> "ClientSettings":
        if self.client_timeout_s <= SERVER_TIMEOUT_S:
            raise ValueError(
                f"CLIENT_TIMEOUT_S must be greater than the server budget ({SERVER_TIMEOUT_S:g}s)"
            )
        return self


@lru_cache
def get_client_settings() -> ClientSettings:
    return ClientSettings()


def clear_client_settings_cache() -> None:
    get_client_settings.cache_clear()
