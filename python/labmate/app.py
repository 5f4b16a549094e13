"""FastAPI application creation and configuration.

This module creates and configures the FastAPI application instance.
It registers exception handlers, auth middleware, CORS, request-id
middleware, and routes.

Token Verification:
- SupabaseJwksVerifier when SUPABASE_JWKS_URL is configured
- SupabaseUserVerifier (GET /auth/v1/user) otherwise

Middleware Ordering (Critical):
- Middleware runs in reverse order of registration
- RequestIDMiddleware is added LAST so it runs FIRST (outermost)

Actual execution order per request:
1. RequestIDMiddleware (sets request_id, starts timer)
2. CORSMiddleware (answers preflight, adds CORS headers to every response)
3. AuthMiddleware (verifies bearer token, bootstraps user, sets viewer)
4. Route handler

Completion Client Lifecycle:
- httpx.AsyncClient is created at startup, stored in app.state
- CompletionClient wraps the shared client for connection pooling
- Client is closed gracefully at shutdown
"""

import json
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from labmate.api.routes import create_api_router
from labmate.auth.middleware import AuthMiddleware, BootstrapCallback
from labmate.auth.verifier import SupabaseJwksVerifier, SupabaseUserVerifier, TokenVerifier
from labmate.config import get_settings
from labmate.db.session import get_session_factory
from labmate.errors import ApiError, ApiErrorCode
from labmate.logging import configure_logging, get_logger
from labmate.middleware.cors import CORSMiddleware
from labmate.middleware.request_id import RequestIDMiddleware
from labmate.responses import (
    api_error_handler,
    error_response,
    http_exception_handler,
    unhandled_exception_handler,
)
from labmate.services.bootstrap import create_bootstrap_callback
from labmate.services.llm import CompletionClient, OpenAICompatibleAdapter

# Configure structured logging at import time
configure_logging()

logger = get_logger(__name__)


def create_token_verifier() -> TokenVerifier:
    """Create the token verifier for the configured identity mode."""
    settings = get_settings()

    if settings.uses_jwks:
        return SupabaseJwksVerifier(
            jwks_url=settings.supabase_jwks_url,  # type: ignore[arg-type]
            issuer=settings.normalized_issuer,  # type: ignore[arg-type]
            audiences=settings.audience_list,
        )

    return SupabaseUserVerifier(
        supabase_url=settings.supabase_url,  # type: ignore[arg-type]
        api_key=settings.identity_api_key,  # type: ignore[arg-type]
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the shared HTTP client and completion client; close them on shutdown."""
    settings = get_settings()

    app.state.httpx_client = httpx.AsyncClient(
        timeout=httpx.Timeout(settings.completion_timeout_s, connect=10.0),
        limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
    )
    adapter = OpenAICompatibleAdapter(app.state.httpx_client, settings.completions_url)
    app.state.completion_client = CompletionClient(adapter, timeout_s=settings.completion_timeout_s)

    logger.info(
        "completion_client_initialized",
        model_name=settings.completion_model,
        timeout_s=settings.completion_timeout_s,
        api_key_configured=bool(settings.aiml_api_key),
    )

    yield

    await app.state.httpx_client.aclose()
    verifier = getattr(app.state, "token_verifier", None)
    if isinstance(verifier, SupabaseUserVerifier):
        verifier.close()
    logger.info("httpx_client_closed")


def create_app(
    skip_auth_middleware: bool = False,
    token_verifier: TokenVerifier | None = None,
    bootstrap_callback: BootstrapCallback | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        skip_auth_middleware: If True, skip adding auth middleware (for testing).
        token_verifier: Optional custom token verifier (for testing).
        bootstrap_callback: Optional user/profile bootstrap (for testing).
    """
    settings = get_settings()

    app = FastAPI(
        title="Labmate API",
        description="AI research assistant chat backend",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Handle request validation errors (including malformed JSON)."""
        errors = exc.errors()
        details = errors[0].get("msg", "Invalid request body") if errors else "Invalid request body"
        return JSONResponse(
            status_code=400,
            content=error_response(ApiErrorCode.E_INVALID_REQUEST, "Invalid request body", details),
        )

    @app.middleware("http")
    async def catch_json_decode_errors(request: Request, call_next):
        """Catch JSON decode errors before they reach route handlers."""
        if request.method in ("POST", "PUT", "PATCH"):
            content_type = request.headers.get("content-type", "")
            if "application/json" in content_type:
                body = await request.body()
                if body:
                    try:
                        json.loads(body)
                    except json.JSONDecodeError:
                        return JSONResponse(
                            status_code=400,
                            content=error_response(
                                ApiErrorCode.E_INVALID_REQUEST, "Malformed JSON body"
                            ),
                        )
        return await call_next(request)

    app.include_router(create_api_router())

    if not skip_auth_middleware:
        verifier = token_verifier or create_token_verifier()
        app.state.token_verifier = verifier
        app.add_middleware(
            AuthMiddleware,
            verifier=verifier,
            bootstrap_callback=bootstrap_callback
            or create_bootstrap_callback(get_session_factory()),
        )
        logger.info(
            "auth_middleware_enabled",
            env=settings.labmate_env.value,
            verifier=type(verifier).__name__,
        )

    # Added after auth so it runs before it: preflights never need a token
    app.add_middleware(CORSMiddleware, allowed_origins=settings.cors_origin_list)

    return app


def add_request_id_middleware(app: FastAPI, log_requests: bool = True) -> None:
    """Add request-id middleware to the app.

    Call AFTER all other middleware is added, so it runs FIRST and every
    response (auth failures and preflights included) carries X-Request-ID.
    """
    app.add_middleware(RequestIDMiddleware, log_requests=log_requests)
    logger.info("request_id_middleware_enabled")
