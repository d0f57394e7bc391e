"""
Structured generation primitive.

Wraps one prompt (+ optional schema) into a validated, retried, timed-out
result. ``StructuredGenerator.generate`` never raises past its boundary for
generation failures: exhausting the retry budget yields
``GenerationResult(success=False, error=...)`` carrying the last error.
"""

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional

from pydantic import BaseModel, ConfigDict, TypeAdapter

from scriptforge.errors import ErrorKind, GenerationError, GenerationTimeoutError, SchemaValidationError
from scriptforge.execution.retry import RetryPolicy, classify_error, next_retry_delay_ms
from scriptforge.services.generation import GenerationBackend, GenerationOptions


class GenerationAttempt(BaseModel):
    """One call to the backend, as recorded by the generator."""
    attempt: int
    timestamp: datetime
    elapsed_ms: int
    outcome: str                     # "success" or an ErrorKind value
    error: Optional[str] = None


class GenerationResult(BaseModel):
    """Outcome of a whole generation (all attempts)."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    success: bool
    value: Any = None
    error: Optional[BaseException] = None
    attempts: list[GenerationAttempt] = []

    @property
    def error_message(self) -> Optional[str]:
        return str(self.error) if self.error is not None else None


class StructuredGenerator:
    """
    Retry / timeout / validation wrapper around a ``GenerationBackend``.

    ``sleep`` is injectable so tests can skip real waits.
    """

    def __init__(
        self,
        backend: GenerationBackend,
        policy: Optional[RetryPolicy] = None,
        logger: Optional[logging.Logger] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.backend = backend
        self.policy = policy or RetryPolicy()
        self.logger = logger or logging.getLogger(__name__)
        self._sleep = sleep

    async def _call_backend(self, prompt: str, schema: Any, options: GenerationOptions) -> Any:
        if schema is None:
            return await self.backend.generate_text(prompt, options)

        raw = await self.backend.generate_structured(prompt, schema, options)
        if raw is None:
            raise SchemaValidationError("Model returned no structured output")
        # Validate before declaring success; a mismatch is a retryable failure
        return TypeAdapter(schema).validate_python(raw)

    async def generate(
        self,
        prompt: str,
        schema: Any = None,
        options: Optional[GenerationOptions] = None,
    ) -> GenerationResult:
        """
        Run ``prompt`` through the backend until it succeeds or the retry
        policy gives up.

        Args:
            prompt: Full prompt text
            schema: Optional pydantic model (or any type ``TypeAdapter`` accepts).
                    With a schema the structured call is used and the output validated;
                    without one, plain text is returned.
            options: Generation options (retries, timeout, temperature, tokens, tier)

        Returns:
            GenerationResult with the validated value or the last error
        """
        options = options or GenerationOptions()
        mode = "structured" if schema is not None else "text"
        started = time.monotonic()
        attempts: list[GenerationAttempt] = []
        last_error: Optional[BaseException] = None

        for attempt in range(1, options.max_retries + 1):
            attempt_started = time.monotonic()
            timestamp = datetime.now(timezone.utc)
            try:
                value = await asyncio.wait_for(
                    self._call_backend(prompt, schema, options),
                    timeout=options.timeout_seconds,
                )
            except asyncio.TimeoutError:
                last_error = GenerationTimeoutError(
                    f"Generation attempt {attempt} timed out after {options.timeout_seconds}s"
                )
                kind = ErrorKind.TIMEOUT
            except Exception as e:
                last_error = e
                kind = classify_error(e)
            else:
                elapsed_ms = int((time.monotonic() - attempt_started) * 1000)
                attempts.append(GenerationAttempt(
                    attempt=attempt,
                    timestamp=timestamp,
                    elapsed_ms=elapsed_ms,
                    outcome="success",
                ))
                self.logger.info(
                    f"generate {mode} success (tier={options.model_tier}, "
                    f"attempt {attempt}/{options.max_retries}, {elapsed_ms}ms)",
                    extra={
                        "model_tier": options.model_tier,
                        "attempt": attempt,
                        "elapsed_ms": elapsed_ms,
                        "outcome": "success",
                    },
                )
                return GenerationResult(success=True, value=value, attempts=attempts)

            elapsed_ms = int((time.monotonic() - attempt_started) * 1000)
            attempts.append(GenerationAttempt(
                attempt=attempt,
                timestamp=timestamp,
                elapsed_ms=elapsed_ms,
                outcome=kind.value,
                error=str(last_error),
            ))
            self.logger.warning(
                f"generate {mode} attempt {attempt}/{options.max_retries} failed "
                f"(tier={options.model_tier}, {kind.value}, {elapsed_ms}ms): {last_error}",
                extra={
                    "model_tier": options.model_tier,
                    "attempt": attempt,
                    "elapsed_ms": elapsed_ms,
                    "outcome": kind.value,
                },
            )

            delay_ms = next_retry_delay_ms(attempt, kind, options.max_retries, self.policy)
            if delay_ms is None:
                if kind == ErrorKind.INVALID_CREDENTIALS:
                    self.logger.error("Invalid credentials, not retrying")
                elif kind == ErrorKind.TIMEOUT and attempt < options.max_retries:
                    self.logger.warning(f"Timeout on attempt {attempt}, giving up")
                break

            if kind == ErrorKind.RATE_LIMITED:
                self.logger.warning(f"Rate limited, waiting {delay_ms}ms...")
            else:
                self.logger.debug(f"Waiting {delay_ms}ms before retry...")
            await self._sleep(delay_ms / 1000)

        total_ms = int((time.monotonic() - started) * 1000)
        if last_error is None:
            last_error = GenerationError("Unknown error after retries")
        self.logger.error(
            f"generate {mode} failed after {len(attempts)} attempt(s) in {total_ms}ms "
            f"(tier={options.model_tier}): {last_error}"
        )
        return GenerationResult(success=False, error=last_error, attempts=attempts)
