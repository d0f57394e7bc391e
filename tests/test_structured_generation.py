"""
Tests for the structured generation primitive: retries, timeouts, validation.
"""

import asyncio
import logging

import pytest

from conftest import FakeBackend, fail_with, sample_result
from scriptforge.agents.tasks import StoryContextOutput
from scriptforge.constants import STORY_INTELLIGENCE
from scriptforge.errors import (
    GenerationTimeoutError,
    InvalidCredentialsError,
    RateLimitedError,
    SchemaValidationError,
)
from scriptforge.execution.structured import StructuredGenerator


def scripted(*steps):
    """Handler that plays ``steps`` in order: exceptions are raised, values returned."""
    remaining = list(steps)

    def handler(prompt, schema, options):
        step = remaining.pop(0) if len(remaining) > 1 else remaining[0]
        if isinstance(step, BaseException):
            raise step
        return step
    return handler


class SlowSecondCallBackend:
    """Fails fast on the first call, then hangs past the attempt timeout."""

    def __init__(self):
        self.calls = 0

    async def generate_structured(self, prompt, schema, options):
        self.calls += 1
        if self.calls == 1:
            raise RuntimeError("boom")
        await asyncio.sleep(5)
        return sample_result(STORY_INTELLIGENCE)

    async def generate_text(self, prompt, options):
        raise NotImplementedError


@pytest.fixture
def make_generator(fast_policy, no_sleep):
    def _make(backend):
        return StructuredGenerator(backend, policy=fast_policy, sleep=no_sleep)
    return _make


class TestSuccess:

    @pytest.mark.asyncio
    async def test_structured_value_is_validated(self, make_generator, fast_options):
        generator = make_generator(FakeBackend())
        result = await generator.generate("analyze", StoryContextOutput, fast_options)

        assert result.success is True
        assert isinstance(result.value, StoryContextOutput)
        assert result.value.genre == "heist thriller"
        assert len(result.attempts) == 1
        assert result.attempts[0].outcome == "success"

    @pytest.mark.asyncio
    async def test_text_mode_returns_text(self, make_generator, fast_options):
        backend = FakeBackend(text=lambda prompt, schema, options: "plain words")
        result = await make_generator(backend).generate("say something", None, fast_options)

        assert result.success is True
        assert result.value == "plain words"
        assert backend.calls_of("structured") == []

    @pytest.mark.asyncio
    async def test_attempts_are_logged_with_fields(self, make_generator, fast_options, caplog):
        caplog.set_level(logging.INFO, logger="scriptforge.execution.structured")
        await make_generator(FakeBackend()).generate("analyze", StoryContextOutput, fast_options)

        records = [r for r in caplog.records if hasattr(r, "outcome")]
        assert records
        assert records[0].model_tier == "flash"
        assert records[0].attempt == 1
        assert records[0].outcome == "success"
        assert isinstance(records[0].elapsed_ms, int)


class TestRetryBudget:

    @pytest.mark.asyncio
    async def test_timeout_on_second_attempt_stops_after_two(self, make_generator, fast_options, sleeps):
        backend = SlowSecondCallBackend()
        options = fast_options.model_copy(update={"max_retries": 3, "timeout_seconds": 0.05})

        result = await make_generator(backend).generate("analyze", StoryContextOutput, options)

        assert result.success is False
        assert backend.calls == 2
        assert len(result.attempts) == 2
        assert [a.outcome for a in result.attempts] == ["other", "timeout"]
        assert isinstance(result.error, GenerationTimeoutError)
        assert sleeps == [1.0]

    @pytest.mark.asyncio
    async def test_rate_limit_waits_fixed_cooldown(self, make_generator, fast_options, sleeps):
        backend = FakeBackend(structured=scripted(
            RateLimitedError("429 Too Many Requests"),
            sample_result(STORY_INTELLIGENCE),
        ))
        result = await make_generator(backend).generate("analyze", StoryContextOutput, fast_options)

        assert result.success is True
        assert len(result.attempts) == 2
        assert sleeps == [5.0]

    @pytest.mark.asyncio
    async def test_invalid_credentials_fail_immediately(self, make_generator, fast_options, sleeps):
        backend = FakeBackend(structured=fail_with(InvalidCredentialsError("bad key")))
        result = await make_generator(backend).generate("analyze", StoryContextOutput, fast_options)

        assert result.success is False
        assert len(backend.calls) == 1
        assert isinstance(result.error, InvalidCredentialsError)
        assert sleeps == []

    @pytest.mark.asyncio
    async def test_off_schema_output_is_retried(self, make_generator, fast_options, sleeps):
        backend = FakeBackend(structured=scripted(
            {"genre": "heist thriller"},
            sample_result(STORY_INTELLIGENCE),
        ))
        result = await make_generator(backend).generate("analyze", StoryContextOutput, fast_options)

        assert result.success is True
        assert [a.outcome for a in result.attempts] == ["schema_validation", "success"]
        assert sleeps == [1.0]

    @pytest.mark.asyncio
    async def test_exhaustion_returns_last_error(self, make_generator, fast_options, sleeps):
        backend = FakeBackend(structured=lambda prompt, schema, options: None)
        result = await make_generator(backend).generate("analyze", StoryContextOutput, fast_options)

        assert result.success is False
        assert len(result.attempts) == 3
        assert isinstance(result.error, SchemaValidationError)
        assert result.error_message == "Model returned no structured output"
        assert sleeps == [1.0, 2.0]
