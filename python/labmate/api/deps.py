"""FastAPI dependencies for route handlers."""

from fastapi import Request

from labmate.config import Settings, get_settings
from labmate.db.session import get_db
from labmate.services.llm import CompletionClient

__all__ = ["get_db", "get_app_settings", "get_completion_client"]


def get_app_settings() -> Settings:
    """Settings as a dependency so tests can override them per app."""
    return get_settings()


def get_completion_client(request: Request) -> CompletionClient:
    """Get the shared completion client created in the app lifespan."""
    return request.app.state.completion_client
