"""
Agent executor: runs one agent type against a context through an ordered
list of strategy tiers.

``run`` is strict and surfaces the last tier's error once every attempted
tier has failed. ``execute_agent`` is the never-failing entry point used by
callers that always need a well-shaped result: it resolves to the agent's
documented fallback value instead.
"""

import asyncio
import logging
import time
from typing import Any, Optional, Sequence

from pydantic import BaseModel, ConfigDict

from scriptforge.agents.context import AgentContext
from scriptforge.agents.tasks import AgentResult, get_agent_task, parse_agent_result
from scriptforge.config import settings
from scriptforge.constants import MODEL_TIER_FLASH, STRATEGY_FALLBACK_DEFAULT
from scriptforge.errors import GenerationError
from scriptforge.execution.retry import RetryPolicy
from scriptforge.execution.strategies import ExecutorStrategy, LegacyJsonStrategy, StructuredStrategy
from scriptforge.execution.structured import StructuredGenerator
from scriptforge.services.generation import GenerationBackend, GenerationOptions


class AgentExecution(BaseModel):
    """Result of one agent execution plus the context to hand to the next agent."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    agent_type: str
    result: Any
    updated_context: AgentContext
    strategy: str
    elapsed_ms: int

    @property
    def parsed_result(self) -> AgentResult:
        """``result`` narrowed to the agent's schema (or ``UnstructuredResult``)."""
        return parse_agent_result(self.agent_type, self.result)


class HealthStatus(BaseModel):
    healthy: bool
    elapsed_ms: int
    error: Optional[str] = None


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


class AgentExecutor:
    def __init__(
        self,
        strategies: Sequence[ExecutorStrategy],
        fallback_enabled: Optional[bool] = None,
        logger: Optional[logging.Logger] = None,
    ):
        if not strategies:
            raise ValueError("AgentExecutor needs at least one strategy")
        self.strategies = list(strategies)
        self.fallback_enabled = (
            settings.executor_fallback_enabled if fallback_enabled is None else fallback_enabled
        )
        self.logger = logger or logging.getLogger(__name__)

    @property
    def active_strategies(self) -> list[ExecutorStrategy]:
        return self.strategies if self.fallback_enabled else self.strategies[:1]

    async def run(self, agent_type: str, context: AgentContext) -> AgentExecution:
        """
        Execute ``agent_type`` through the strategy tiers in order.

        Raises:
            UnknownAgentTypeError: before any tier runs
            Exception: the last attempted tier's error, unchanged
        """
        task = get_agent_task(agent_type)
        started = time.monotonic()
        last_error: Optional[BaseException] = None

        for index, strategy in enumerate(self.active_strategies):
            tier_started = time.monotonic()
            label = "primary" if index == 0 else "fallback"
            self.logger.info(
                f"{agent_type}: {label} strategy '{strategy.name}' attempted",
                extra={"strategy": strategy.name},
            )
            try:
                result = await strategy.execute(task, context)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                last_error = e
                self.logger.warning(
                    f"{agent_type}: {label} strategy '{strategy.name}' failed after "
                    f"{_elapsed_ms(tier_started)}ms: {e}",
                    extra={"strategy": strategy.name, "elapsed_ms": _elapsed_ms(tier_started)},
                )
                continue

            elapsed_ms = _elapsed_ms(started)
            self.logger.info(
                f"{agent_type}: {label} strategy '{strategy.name}' succeeded in {elapsed_ms}ms",
                extra={"strategy": strategy.name, "elapsed_ms": elapsed_ms},
            )
            return AgentExecution(
                agent_type=agent_type,
                result=result,
                updated_context=context.with_result(agent_type, result),
                strategy=strategy.name,
                elapsed_ms=elapsed_ms,
            )

        if last_error is None:
            raise GenerationError(f"{agent_type}: no strategy tier was attempted")
        raise last_error

    async def execute_agent(self, agent_type: str, context: AgentContext) -> AgentExecution:
        """
        Like ``run``, but never raises for a known agent type.

        When every tier fails the result is the agent's fallback value with
        an ``_error`` message, and the returned context carries the plain
        fallback so downstream agents still see the documented shape.
        """
        task = get_agent_task(agent_type)
        started = time.monotonic()
        try:
            return await self.run(agent_type, context)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            fallback = task.fallback_result()
            elapsed_ms = _elapsed_ms(started)
            self.logger.error(
                f"{agent_type}: all strategies failed after {elapsed_ms}ms, using fallback: {e}",
                extra={"strategy": STRATEGY_FALLBACK_DEFAULT, "elapsed_ms": elapsed_ms},
            )
            return AgentExecution(
                agent_type=agent_type,
                result={**fallback, "_error": str(e)},
                updated_context=context.with_result(agent_type, fallback),
                strategy=STRATEGY_FALLBACK_DEFAULT,
                elapsed_ms=elapsed_ms,
            )

    async def check_health(self) -> HealthStatus:
        """Quick text generation through the primary tier's generator."""
        generator = self.strategies[0].generator
        started = time.monotonic()
        options = GenerationOptions(max_retries=1, timeout_seconds=10, max_tokens=16, model_tier=MODEL_TIER_FLASH)
        result = await generator.generate("Say OK", None, options)
        status = HealthStatus(
            healthy=result.success,
            elapsed_ms=_elapsed_ms(started),
            error=result.error_message,
        )
        self.logger.info(f"Health check: healthy={status.healthy} ({status.elapsed_ms}ms)")
        return status


def build_default_executor(
    backend: GenerationBackend,
    options: Optional[GenerationOptions] = None,
    policy: Optional[RetryPolicy] = None,
    fallback_enabled: Optional[bool] = None,
    logger: Optional[logging.Logger] = None,
    sleep=asyncio.sleep,
) -> AgentExecutor:
    """Structured tier first, legacy JSON tier second, sharing one generator."""
    logger = logger or logging.getLogger(__name__)
    generator = StructuredGenerator(backend, policy=policy, logger=logger, sleep=sleep)
    strategies = [
        StructuredStrategy(generator, options=options, logger=logger),
        LegacyJsonStrategy(generator, options=options, logger=logger),
    ]
    return AgentExecutor(strategies, fallback_enabled=fallback_enabled, logger=logger)
