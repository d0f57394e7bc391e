"""
Generation backend collaborator.

``GenerationBackend`` is the seam between the orchestration core and the
language model: two async, fallible calls. ``LangChainGenerationBackend``
implements it on the LangChain chat models returned by ``get_llm``; tests
substitute a scripted fake.
"""

from typing import Any, Callable, Optional, Protocol

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage
from pydantic import BaseModel, Field

from scriptforge.config import settings
from scriptforge.constants import MODEL_TIER_FLASH


class GenerationOptions(BaseModel):
    """Per-call generation options; defaults come from settings."""
    max_retries: int = Field(default_factory=lambda: settings.generation_max_retries, ge=1)
    timeout_seconds: float = Field(default_factory=lambda: settings.generation_timeout_seconds, gt=0)
    temperature: float = Field(default_factory=lambda: settings.generation_temperature)
    max_tokens: int = Field(default_factory=lambda: settings.generation_max_tokens, gt=0)
    model_tier: str = MODEL_TIER_FLASH


class GenerationBackend(Protocol):
    async def generate_text(self, prompt: str, options: GenerationOptions) -> str:
        ...

    async def generate_structured(self, prompt: str, schema: Any, options: GenerationOptions) -> Any:
        ...


def message_text(message: Any) -> str:
    """Flatten a chat message's content (string or content blocks) into text."""
    content = getattr(message, "content", message)
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(str(block.get("text", "")))
        return "".join(parts)
    return str(content)


class LangChainGenerationBackend:
    """Generation backend on top of LangChain chat models."""

    def __init__(
        self,
        provider: Optional[str] = None,
        llm_factory: Optional[Callable[..., BaseChatModel]] = None,
    ):
        if llm_factory is None:
            from scriptforge.services.llm import get_llm
            llm_factory = get_llm
        self.provider = provider
        self._llm_factory = llm_factory

    def _llm(self, options: GenerationOptions) -> BaseChatModel:
        return self._llm_factory(
            self.provider,
            tier=options.model_tier,
            temperature=options.temperature,
            max_tokens=options.max_tokens,
        )

    async def generate_text(self, prompt: str, options: GenerationOptions) -> str:
        llm = self._llm(options)
        response = await llm.ainvoke([HumanMessage(content=prompt)])
        return message_text(response)

    async def generate_structured(self, prompt: str, schema: Any, options: GenerationOptions) -> Any:
        llm = self._llm(options)
        # Use structured output to get reliable parsing
        structured_llm = llm.with_structured_output(schema)
        return await structured_llm.ainvoke([HumanMessage(content=prompt)])
