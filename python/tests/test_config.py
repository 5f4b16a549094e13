"""Tests for application and client configuration."""

import pytest
from pydantic import ValidationError

from labmate.client.config import ClientSettings, clear_client_settings_cache, get_client_settings
from labmate.config import DEFAULT_COMPLETION_TIMEOUT_S, Settings

JWKS_MODE = {
    "SUPABASE_JWKS_URL": "http://localhost:54321/auth/v1/.well-known/jwks.json",
    "SUPABASE_ISSUER": "http://localhost:54321/auth/v1/",
    "SUPABASE_AUDIENCES": "authenticated, anon",
}
NO_JWKS = {"SUPABASE_JWKS_URL": None, "SUPABASE_ISSUER": None, "SUPABASE_AUDIENCES": None}


def _make_settings(**overrides) -> Settings:
    """Build a Settings instance with test defaults + overrides."""
    defaults = {
        "DATABASE_URL": "postgresql+psycopg://localhost/test",
        "LABMATE_ENV": "test",
        **JWKS_MODE,
    }
    defaults.update(overrides)
    return Settings(**defaults)


class TestSettings:
    def test_completion_defaults(self):
        s = _make_settings()

        assert s.completion_model == "openai/gpt-5-2025-08-07"
        assert s.completion_max_tokens == 2048
        assert s.completion_temperature == 0.7
        assert s.completion_timeout_s == 25.0
        assert s.completions_url == "https://api.aimlapi.com/v1/chat/completions"

    def test_jwks_mode_parsing(self):
        s = _make_settings()

        assert s.uses_jwks
        assert s.normalized_issuer == "http://localhost:54321/auth/v1"
        assert s.audience_list == ["authenticated", "anon"]

    def test_partial_jwks_settings_rejected(self):
        with pytest.raises(ValidationError, match="SUPABASE_AUDIENCES"):
            _make_settings(SUPABASE_AUDIENCES=None)

    def test_user_endpoint_mode(self):
        s = _make_settings(
            **NO_JWKS, SUPABASE_URL="https://project.supabase.co", SUPABASE_ANON_KEY="anon"
        )

        assert not s.uses_jwks
        assert s.identity_api_key == "anon"

    def test_service_role_key_wins(self):
        s = _make_settings(
            **NO_JWKS,
            SUPABASE_URL="https://project.supabase.co",
            SUPABASE_ANON_KEY="anon",
            SUPABASE_SERVICE_ROLE_KEY="service",
        )

        assert s.identity_api_key == "service"

    def test_no_identity_mode_rejected(self):
        with pytest.raises(ValidationError, match="Missing Supabase auth settings"):
            _make_settings(**NO_JWKS, SUPABASE_URL=None)

    def test_non_positive_timeout_rejected(self):
        with pytest.raises(ValidationError, match="COMPLETION_TIMEOUT_S"):
            _make_settings(COMPLETION_TIMEOUT_S=0)

    def test_cors_origins(self):
        assert _make_settings(CORS_ALLOW_ORIGINS="").cors_origin_list == ["*"]
        assert _make_settings(
            CORS_ALLOW_ORIGINS="https://a.example.org, https://b.example.org"
        ).cors_origin_list == ["https://a.example.org", "https://b.example.org"]

    def test_base_url_trailing_slash(self):
        s = _make_settings(AIML_API_BASE_URL="https://llm.example.org/v1/")

        assert s.completions_url == "https://llm.example.org/v1/chat/completions"


class TestClientSettings:
    def _make(self, **overrides) -> ClientSettings:
        defaults = {
            "LABMATE_API_URL": "http://localhost:8000",
            "SUPABASE_URL": "https://project.supabase.co",
            "SUPABASE_ANON_KEY": "anon",
        }
        defaults.update(overrides)
        return ClientSettings(**defaults)

    def test_defaults(self):
        s = self._make()

        assert s.client_timeout_s == 30.0
        assert s.session_file is None

    def test_client_budget_must_exceed_server_budget(self):
        with pytest.raises(ValidationError, match="CLIENT_TIMEOUT_S"):
            self._make(CLIENT_TIMEOUT_S=20)

    def test_budget_check_tracks_server_default(self):
        assert _make_settings().completion_timeout_s == DEFAULT_COMPLETION_TIMEOUT_S

        with pytest.raises(ValidationError, match="CLIENT_TIMEOUT_S"):
            self._make(CLIENT_TIMEOUT_S=DEFAULT_COMPLETION_TIMEOUT_S)
        s = self._make(CLIENT_TIMEOUT_S=DEFAULT_COMPLETION_TIMEOUT_S + 1)
        assert s.client_timeout_s == DEFAULT_COMPLETION_TIMEOUT_S + 1

    def test_cached_from_environment(self, monkeypatch):
        monkeypatch.setenv("LABMATE_API_URL", "http://api.example")
        monkeypatch.setenv("SUPABASE_URL", "https://project.supabase.co")
        monkeypatch.setenv("SUPABASE_ANON_KEY", "anon")
        clear_client_settings_cache()
        try:
            first = get_client_settings()
            assert first.api_url == "http://api.example"
            assert get_client_settings() is first
        finally:
            clear_client_settings_cache()
