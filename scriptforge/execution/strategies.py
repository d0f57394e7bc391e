"""
Executor strategy tiers.

Each strategy turns (task, context) into a result dict or raises. The
executor tries them in order:

- ``StructuredStrategy``: structured generation against the agent schema,
  validated before it is accepted.
- ``LegacyJsonStrategy``: free-text generation with JSON instructions, then
  best-effort extraction and loose coercion over the fallback shape. Trades
  strictness for availability when the schema keeps rejecting output.
"""

import json
import logging
from typing import Any, Optional

from pydantic import ValidationError

from scriptforge.agents.context import AgentContext
from scriptforge.agents.tasks import AgentTask
from scriptforge.config import settings
from scriptforge.constants import STRATEGY_LEGACY, STRATEGY_STRUCTURED
from scriptforge.errors import GenerationError, SchemaValidationError
from scriptforge.execution.json_extraction import parse_llm_json_response
from scriptforge.execution.structured import GenerationResult, StructuredGenerator
from scriptforge.services.generation import GenerationOptions


LEGACY_JSON_INSTRUCTIONS = """

Return ONLY a valid JSON object (no markdown fences, no commentary) that matches this JSON schema:
{schema}"""


def _raise_failure(result: GenerationResult) -> None:
    if result.error is not None:
        raise result.error
    raise GenerationError("Generation failed without an error")


class ExecutorStrategy:
    """One tier of the agent executor."""

    name: str = "base"

    def __init__(
        self,
        generator: StructuredGenerator,
        options: Optional[GenerationOptions] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.generator = generator
        self.base_options = options
        self.logger = logger or logging.getLogger(__name__)

    def options_for(self, task: AgentTask, temperature: float) -> GenerationOptions:
        """Generation options for ``task``: tier and token limit come from the task."""
        base = self.base_options or GenerationOptions(temperature=temperature)
        update: dict[str, Any] = {"model_tier": task.model_tier}
        if task.max_tokens is not None:
            update["max_tokens"] = task.max_tokens
        return base.model_copy(update=update)

    async def execute(self, task: AgentTask, context: AgentContext) -> dict:
        raise NotImplementedError


class StructuredStrategy(ExecutorStrategy):
    name = STRATEGY_STRUCTURED

    async def execute(self, task: AgentTask, context: AgentContext) -> dict:
        options = self.options_for(task, settings.structured_temperature)
        result = await self.generator.generate(task.prompt(context), task.schema, options)
        if not result.success:
            _raise_failure(result)
        return result.value.model_dump()


def coerce_result(task: AgentTask, data: Any) -> dict:
    """
    Loosely fit extracted JSON onto the agent's result shape.

    Valid data is normalised through the schema. A dict that does not
    validate is layered over the fallback value so the documented keys are
    always present. Anything else cannot stand in for a result.
    """
    try:
        return task.schema.model_validate(data).model_dump()
    except ValidationError:
        pass
    if isinstance(data, dict):
        return {**task.fallback_result(), **data}
    raise SchemaValidationError(
        f"Expected a JSON object for {task.agent_type}, got {type(data).__name__}"
    )


class LegacyJsonStrategy(ExecutorStrategy):
    name = STRATEGY_LEGACY

    def build_prompt(self, task: AgentTask, context: AgentContext) -> str:
        schema = json.dumps(task.schema.model_json_schema(), indent=2)
        return task.prompt(context) + LEGACY_JSON_INSTRUCTIONS.format(schema=schema)

    async def execute(self, task: AgentTask, context: AgentContext) -> dict:
        options = self.options_for(task, settings.generation_temperature)
        result = await self.generator.generate(self.build_prompt(task, context), None, options)
        if not result.success:
            _raise_failure(result)

        try:
            data = parse_llm_json_response(result.value)
        except json.JSONDecodeError as e:
            self.logger.warning(
                f"{task.agent_type}: no JSON in legacy response "
                f"(first 200 chars: {result.value[:200]!r})"
            )
            raise SchemaValidationError(f"Could not extract JSON from response: {e}") from e

        return coerce_result(task, data)
