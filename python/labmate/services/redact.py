"""Hashing and log guard utilities.

Never-log policy:
- API keys and bearer tokens
- Rendered prompts and the system instruction
- Message content (user or assistant)
- Passwords from the sign-in / sign-up forms

Allowed (with suffix):
- _chars, _length: length of text
- _sha256, _hash: hash of text
- Token counts, provider request ID
"""

import hashlib
import os

import structlog

FORBIDDEN_KEYS = frozenset(
    {
        "prompt",
        "content",
        "api_key",
        "bearer",
        "token",
        "secret",
        "password",
        "message_text",
        "response_text",
        "transcript",
        "raw_body",
    }
)

REDACTED_SUFFIXES = ("_sha256", "_hash", "_length", "_chars")


def hash_text(value: str) -> str:
    """Stable SHA-256 hex digest, used to correlate log lines without exposing text."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def _has_redacted_suffix(key: str) -> bool:
    return any(key.endswith(suffix) for suffix in REDACTED_SUFFIXES)


def safe_kv(*, _env: str | None = None, **kwargs) -> dict:
    """Validate that no forbidden keys are present unless already redacted.

    Raises ValueError in local/test environments if a forbidden key is used
    without a redacted suffix. In staging/prod, logs a warning instead.

    Usage:
        logger.info("llm.request.started", **safe_kv(
            model_name="openai/gpt-5-2025-08-07",
            message_chars=1234,       # OK: _chars suffix
            # prompt="hello world",   # BLOCKED: forbidden key
        ))

    Args:
        _env: Override for LABMATE_ENV (test-only). If None, reads from env.
        **kwargs: Keyword arguments to validate and return.
    """
    violations = [
        key for key in kwargs if key in FORBIDDEN_KEYS and not _has_redacted_suffix(key)
    ]

    if violations:
        msg = f"Forbidden log keys without redacted suffix: {violations}"
        env = _env or os.environ.get("LABMATE_ENV", "local")
        if env in ("local", "test"):
            raise ValueError(msg)
        structlog.get_logger("labmate.services.redact").warning(
            "safe_kv_violation", forbidden_keys=violations
        )

    return kwargs
