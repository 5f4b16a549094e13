"""Application settings loaded from environment variables.

Environment Configuration:
    LABMATE_ENV: Deployment environment (local | test | staging | prod)
    DATABASE_URL: SQLAlchemy connection string (required)
    CORS_ALLOW_ORIGINS: Comma-separated list of allowed origins (default "*")

Auth Configuration (one mode required):
    SUPABASE_JWKS_URL: Full URL to Supabase JWKS endpoint
    SUPABASE_ISSUER: Expected JWT issuer (trailing slash stripped)
    SUPABASE_AUDIENCES: Comma-separated list of allowed audiences
  or
    SUPABASE_URL: Supabase project URL, used to resolve users via /auth/v1/user
    SUPABASE_ANON_KEY / SUPABASE_SERVICE_ROLE_KEY: API key sent with that lookup

Completion Provider Configuration:
    AIML_API_KEY: Provider key. Server-only. Checked per request, not at startup.
    AIML_API_BASE_URL: OpenAI-compatible base URL
    COMPLETION_MODEL / COMPLETION_MAX_TOKENS / COMPLETION_TEMPERATURE
    COMPLETION_TIMEOUT_S: Server-side budget for one provider call
"""

from enum import Enum
from functools import lru_cache
from typing import Annotated

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings

# Server budget for one provider call; clients must allow longer.
DEFAULT_COMPLETION_TIMEOUT_S = 25.0


class Environment(str, Enum):
    """Valid deployment environments."""

    LOCAL = "local"
    TEST = "test"
    STAGING = "staging"
    PROD = "prod"


class Settings(BaseSettings):
    """Application configuration.

    Validation rules:
    - DATABASE_URL is always required
    - either the JWKS triple or SUPABASE_URL plus a key must be set
    - COMPLETION_TIMEOUT_S must be positive
    """

    labmate_env: Environment = Field(default=Environment.LOCAL, alias="LABMATE_ENV")
    database_url: Annotated[str, Field(alias="DATABASE_URL")]
    cors_allow_origins: str = Field(default="*", alias="CORS_ALLOW_ORIGINS")

    # Supabase auth settings
    supabase_jwks_url: str | None = Field(default=None, alias="SUPABASE_JWKS_URL")
    supabase_issuer: str | None = Field(default=None, alias="SUPABASE_ISSUER")
    supabase_audiences: str | None = Field(default=None, alias="SUPABASE_AUDIENCES")
    supabase_url: str | None = Field(default=None, alias="SUPABASE_URL")
    supabase_anon_key: str | None = Field(default=None, alias="SUPABASE_ANON_KEY")
    supabase_service_role_key: str | None = Field(default=None, alias="SUPABASE_SERVICE_ROLE_KEY")

    # Test auth settings (optional, with defaults)
    test_token_issuer: str = Field(default="test-issuer", alias="TEST_TOKEN_ISSUER")
    test_token_audiences: str = Field(default="test-audience", alias="TEST_TOKEN_AUDIENCES")

    # Completion provider
    aiml_api_key: str | None = Field(default=None, alias="AIML_API_KEY")
    aiml_api_base_url: str = Field(default="https://api.aimlapi.com/v1", alias="AIML_API_BASE_URL")
    completion_model: str = Field(default="openai/gpt-5-2025-08-07", alias="COMPLETION_MODEL")
    completion_max_tokens: int = Field(default=2048, alias="COMPLETION_MAX_TOKENS")
    completion_temperature: float = Field(default=0.7, alias="COMPLETION_TEMPERATURE")
    completion_timeout_s: float = Field(
        default=DEFAULT_COMPLETION_TIMEOUT_S, alias="COMPLETION_TIMEOUT_S"
    )

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @model_validator(mode="after")
    def validate_required_settings(self) -> "Settings":
        """Ensure an identity mode is configured and budgets are sane."""
        jwks_fields = {
            "SUPABASE_JWKS_URL": self.supabase_jwks_url,
            "SUPABASE_ISSUER": self.supabase_issuer,
            "SUPABASE_AUDIENCES": self.supabase_audiences,
        }
        missing_jwks = [name for name, value in jwks_fields.items() if not value]

        if missing_jwks and len(missing_jwks) < len(jwks_fields):
            raise ValueError(
                f"Incomplete Supabase JWKS settings, missing: {', '.join(missing_jwks)}"
            )

        if missing_jwks and not (self.supabase_url and self.identity_api_key):
            raise ValueError(
                "Missing Supabase auth settings: set SUPABASE_JWKS_URL, SUPABASE_ISSUER and "
                "SUPABASE_AUDIENCES, or SUPABASE_URL with SUPABASE_ANON_KEY."
            )

        if self.completion_timeout_s <= 0:
            raise ValueError("COMPLETION_TIMEOUT_S must be positive")

        return self

    @property
    def uses_jwks(self) -> bool:
        """Whether tokens are verified locally against the JWKS endpoint."""
        return bool(self.supabase_jwks_url)

    @property
    def identity_api_key(self) -> str | None:
        """Key sent to the identity service. The service-role key wins when set."""
        return self.supabase_service_role_key or self.supabase_anon_key

    @property
    def audience_list(self) -> list[str]:
        """Parse comma-separated audiences into a list."""
        if self.supabase_audiences:
            return [a.strip() for a in self.supabase_audiences.split(",") if a.strip()]
        return []

    @property
    def normalized_issuer(self) -> str | None:
        """Return issuer with trailing slash stripped."""
        if self.supabase_issuer:
            return self.supabase_issuer.rstrip("/")
        return None

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_allow_origins.split(",") if o.strip()] or ["*"]

    @property
    def completions_url(self) -> str:
        return f"{self.aiml_api_base_url.rstrip('/')}/chat/completions"


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings instance loaded from environment.

    Raises:
        ValidationError: If required settings are missing or invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache. Useful for testing."""
    get_settings.cache_clear()
