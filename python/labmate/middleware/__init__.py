"""Middleware modules for the Labmate API."""

from labmate.middleware.cors import CORSMiddleware
from labmate.middleware.request_id import REQUEST_ID_HEADER, RequestIDMiddleware

__all__ = ["CORSMiddleware", "RequestIDMiddleware", "REQUEST_ID_HEADER"]
