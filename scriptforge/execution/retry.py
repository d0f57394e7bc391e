"""
Retry policy for generation attempts.

Two pure pieces, kept apart from any network call:

- ``classify_error`` maps whatever the backend raised onto an ``ErrorKind``.
- ``next_retry_delay_ms`` decides, from the attempt number and the kind,
  whether to try again and how long to wait first.

    kind                 decision
    ──────────────────   ─────────────────────────────────────────────
    timeout              retry only while attempt < timeout_attempt_cap
    rate_limited         fixed cooldown, then retry
    invalid_credentials  stop immediately
    schema_validation    exponential backoff
    other                exponential backoff
"""

import asyncio
import json
from typing import Optional

from pydantic import BaseModel, Field, ValidationError
from langchain_core.exceptions import OutputParserException

from scriptforge.config import settings
from scriptforge.errors import ErrorKind, GenerationError


class RetryPolicy(BaseModel):
    """Timing constants of the retry policy (milliseconds)."""
    rate_limit_cooldown_ms: int = Field(
        default_factory=lambda: int(settings.rate_limit_cooldown_seconds * 1000)
    )
    backoff_base_ms: int = Field(default_factory=lambda: settings.backoff_base_ms)
    backoff_cap_ms: int = Field(default_factory=lambda: settings.backoff_cap_ms)
    timeout_attempt_cap: int = Field(default_factory=lambda: settings.timeout_attempt_cap)


_RATE_LIMIT_MARKERS = ("429", "rate limit", "rate_limit", "ratelimit", "too many requests", "resource exhausted")
_CREDENTIAL_MARKERS = ("401", "403", "api key", "api_key", "unauthorized", "authentication", "permission denied")


def classify_error(error: BaseException) -> ErrorKind:
    """Map a backend exception onto an ``ErrorKind``."""
    if isinstance(error, GenerationError):
        return error.kind

    if isinstance(error, (asyncio.TimeoutError, TimeoutError)):
        return ErrorKind.TIMEOUT

    if isinstance(error, (ValidationError, OutputParserException, json.JSONDecodeError)):
        return ErrorKind.SCHEMA_VALIDATION

    # Provider SDK errors (openai, anthropic, httpx) expose an HTTP status code
    status_code = getattr(error, "status_code", None)
    if status_code is None:
        response = getattr(error, "response", None)
        status_code = getattr(response, "status_code", None)
    if status_code == 429:
        return ErrorKind.RATE_LIMITED
    if status_code in (401, 403):
        return ErrorKind.INVALID_CREDENTIALS

    name = type(error).__name__.lower()
    message = str(error).lower()

    if "timeout" in name or "timed out" in message or "timeout" in message:
        return ErrorKind.TIMEOUT
    if "ratelimit" in name or any(marker in message for marker in _RATE_LIMIT_MARKERS):
        return ErrorKind.RATE_LIMITED
    if "authentication" in name or "permissiondenied" in name or any(
        marker in message for marker in _CREDENTIAL_MARKERS
    ):
        return ErrorKind.INVALID_CREDENTIALS

    return ErrorKind.OTHER


def backoff_delay_ms(attempt: int, policy: Optional[RetryPolicy] = None) -> int:
    """Exponential backoff: min(base * 2^(attempt-1), cap)."""
    policy = policy or RetryPolicy()
    return min(policy.backoff_base_ms * (2 ** (attempt - 1)), policy.backoff_cap_ms)


def next_retry_delay_ms(
    attempt: int,
    kind: ErrorKind,
    max_retries: int,
    policy: Optional[RetryPolicy] = None,
) -> Optional[int]:
    """
    Decide what happens after ``attempt`` (1-based) failed with ``kind``.

    Returns:
        Milliseconds to wait before the next attempt, or None to stop.
    """
    policy = policy or RetryPolicy()

    if attempt >= max_retries:
        return None
    if kind == ErrorKind.INVALID_CREDENTIALS:
        return None
    if kind == ErrorKind.TIMEOUT and attempt >= policy.timeout_attempt_cap:
        return None
    if kind == ErrorKind.RATE_LIMITED:
        return policy.rate_limit_cooldown_ms
    return backoff_delay_ms(attempt, policy)
