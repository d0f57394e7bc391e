from langchain_openai import ChatOpenAI
from langchain_anthropic import ChatAnthropic
from langchain_ollama import ChatOllama
from langchain_core.language_models import BaseChatModel
from scriptforge.config import settings
from scriptforge.constants import MODEL_TIER_PRO
from typing import Literal, Optional
import logging

logger = logging.getLogger(__name__)

# Module-level cache for LLM clients (keyed by provider, tier and sampling params)
_llm_cache: dict[tuple, BaseChatModel] = {}


def _create_llm(provider: str, tier: str, temperature: float, max_tokens: int) -> BaseChatModel:
    """Internal function to create a new LLM instance."""
    if provider == "openai":
        if not settings.openai_api_key:
            raise ValueError("OPENAI_API_KEY is required when using OpenAI")
        model = settings.openai_pro_model if tier == MODEL_TIER_PRO else settings.openai_flash_model
        logger.debug(f"Creating ChatOpenAI instance (model: {model}, tier: {tier})")
        return ChatOpenAI(
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
            api_key=settings.openai_api_key,
            max_retries=0,
        )
    elif provider == "anthropic":
        if not settings.anthropic_api_key:
            raise ValueError("ANTHROPIC_API_KEY is required when using Anthropic")
        model = settings.anthropic_pro_model if tier == MODEL_TIER_PRO else settings.anthropic_flash_model
        logger.debug(f"Creating ChatAnthropic instance (model: {model}, tier: {tier})")
        return ChatAnthropic(
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
            api_key=settings.anthropic_api_key,
            max_retries=0,
        )
    elif provider == "ollama":
        model = settings.ollama_pro_model if tier == MODEL_TIER_PRO else settings.ollama_model
        logger.debug(f"Creating ChatOllama instance (model: {model}, base_url: {settings.ollama_base_url})")
        return ChatOllama(
            model=model,
            base_url=settings.ollama_base_url,
            temperature=temperature,
            num_predict=max_tokens,
        )
    else:
        raise ValueError(f"Unsupported LLM provider: {provider}")


def get_llm(
    provider: Optional[Literal["openai", "anthropic", "ollama"]] = None,
    tier: str = "flash",
    temperature: Optional[float] = None,
    max_tokens: Optional[int] = None,
) -> BaseChatModel:
    """
    Factory function to get the configured LLM provider.
    Caches instances to avoid creating new clients on every call.

    Provider-side retries are disabled (``max_retries=0``): the structured
    generation layer owns the retry budget.

    Args:
        provider: Optional LLM provider to use. If None, uses the default from settings.
        tier: "flash" (general agents) or "pro" (heavy extraction)
        temperature: Sampling temperature; defaults to settings.generation_temperature
        max_tokens: Output token limit; defaults to settings.generation_max_tokens

    Returns:
        BaseChatModel instance (ChatOpenAI, ChatAnthropic, or ChatOllama)
    """
    key_provider = provider or settings.llm_provider
    temp = settings.generation_temperature if temperature is None else temperature
    tokens = max_tokens or settings.generation_max_tokens
    key = (key_provider, tier, temp, tokens)

    if key not in _llm_cache:
        _llm_cache[key] = _create_llm(key_provider, tier, temp, tokens)

    return _llm_cache[key]
