"""Pure ASGI CORS middleware.

- Answers OPTIONS preflight before any auth runs.
- Injects CORS headers on the http.response.start message of every response,
  including auth failures and errors.
- "*" in allowed_origins allows every origin.
"""

from starlette.datastructures import Headers, MutableHeaders
from starlette.responses import Response
from starlette.types import ASGIApp, Message, Receive, Scope, Send

ALLOWED_HEADERS = "authorization, x-client-info, apikey, content-type, x-request-id"
ALLOWED_METHODS = "GET, POST, DELETE, OPTIONS"
EXPOSED_HEADERS = "X-Request-ID"


class CORSMiddleware:
    """Pure ASGI CORS middleware. Does not buffer response bodies."""

    def __init__(self, app: ASGIApp, allowed_origins: list[str]):
        self.app = app
        self.allow_all = "*" in allowed_origins
        self.allowed_origins = set(allowed_origins)

    def _allow_origin_value(self, origin: str | None) -> str | None:
        if self.allow_all:
            return "*"
        if origin is not None and origin in self.allowed_origins:
            return origin
        return None

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        origin = Headers(scope=scope).get("origin")
        allow_origin = self._allow_origin_value(origin)

        if scope["method"] == "OPTIONS":
            if allow_origin is None:
                response = Response(status_code=403, content="origin not allowed")
            else:
                response = Response(
                    status_code=200,
                    headers={
                        "access-control-allow-origin": allow_origin,
                        "access-control-allow-methods": ALLOWED_METHODS,
                        "access-control-allow-headers": ALLOWED_HEADERS,
                        "access-control-max-age": "600",
                    },
                )
            await response(scope, receive, send)
            return

        if allow_origin is None:
            await self.app(scope, receive, send)
            return

        async def send_with_cors(message: Message) -> None:
            if message["type"] == "http.response.start":
                resp_headers = MutableHeaders(scope=message)
                resp_headers["access-control-allow-origin"] = allow_origin
                resp_headers["access-control-expose-headers"] = EXPOSED_HEADERS
                if not self.allow_all:
                    resp_headers.add_vary_header("Origin")
            await send(message)

        await self.app(scope, receive, send_with_cors)
