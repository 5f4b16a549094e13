"""Uvicorn entrypoint for the Labmate API.

Run with: uvicorn main:app --reload

Settings are read at import time here; labmate.app itself stays importable
without a configured environment so tests can build their own app.
"""

from labmate.app import add_request_id_middleware, create_app

app = create_app()
# Registered last so it wraps everything, including auth rejections
add_request_id_middleware(app)

__all__ = ["app"]
