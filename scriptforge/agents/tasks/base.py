import json
from dataclasses import dataclass
from typing import Any, Callable, Optional

from pydantic import BaseModel, ValidationError

from scriptforge.agents.context import AgentContext
from scriptforge.constants import MODEL_TIER_FLASH


class UnstructuredResult(BaseModel):
    """Result that did not validate against its agent's schema."""
    agent_type: str
    data: Any = None


@dataclass(frozen=True)
class AgentTask:
    """
    One agent type bound to its prompt, result schema and fallback value.

    ``fallback`` is returned (as a fresh dict) when generation fails
    completely, so downstream agents always receive a well-shaped object.
    """
    agent_type: str
    schema: type[BaseModel]
    build_prompt: Callable[[AgentContext], str]
    fallback: BaseModel
    model_tier: str = MODEL_TIER_FLASH
    max_tokens: Optional[int] = None

    def prompt(self, context: AgentContext) -> str:
        return apply_custom_prompt(self.build_prompt(context), context.custom_prompt)

    def fallback_result(self) -> dict:
        return self.fallback.model_dump()

    def parse(self, data: Any) -> BaseModel:
        if isinstance(data, self.schema):
            return data
        try:
            return self.schema.model_validate(data)
        except ValidationError:
            return UnstructuredResult(agent_type=self.agent_type, data=data)


def apply_custom_prompt(default_prompt: str, custom_prompt: Optional[str] = None) -> str:
    """Put a user-provided instruction first, keeping the default prompt as reference."""
    if custom_prompt and custom_prompt.strip():
        return f"""{custom_prompt.strip()}

--- DEFAULT CONTEXT (for reference) ---
{default_prompt}"""
    return default_prompt


def render_json(value: Any) -> str:
    """Pretty JSON for embedding prior results in prompts."""
    return json.dumps(value if value is not None else {}, indent=2, default=str)


def story_section(context: AgentContext) -> str:
    """Brief plus, when present, the full manuscript."""
    if context.manuscript:
        return f"{context.story_brief}\n\nFULL MANUSCRIPT:\n{context.manuscript}"
    return context.story_brief
