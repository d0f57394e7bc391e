from pydantic_settings import BaseSettings
from typing import Literal
from dotenv import load_dotenv

# Load .env file if it exists
load_dotenv()


class Settings(BaseSettings):
    # LLM Provider
    llm_provider: Literal["openai", "anthropic", "ollama"] = "ollama"
    openai_api_key: str = ""
    anthropic_api_key: str = ""

    # Model tiers: "flash" for general agents, "pro" for heavy extraction (knowledge graph)
    openai_flash_model: str = "gpt-4o-mini"
    openai_pro_model: str = "gpt-4o"
    anthropic_flash_model: str = "claude-3-5-haiku-20241022"
    anthropic_pro_model: str = "claude-3-5-sonnet-20241022"

    # Ollama
    ollama_base_url: str = "http://localhost:11434"
    ollama_model: str = "llama3.2"
    ollama_pro_model: str = "llama3.1:70b"

    # ── Generation defaults (per generation attempt) ──
    generation_max_retries: int = 3
    generation_timeout_seconds: float = 120.0          # per attempt, not per node
    generation_temperature: float = 0.8
    structured_temperature: float = 0.7                # lower for schema-bound output
    generation_max_tokens: int = 8192

    # ── Retry policy ──
    rate_limit_cooldown_seconds: float = 5.0
    backoff_base_ms: int = 1000
    backoff_cap_ms: int = 10000
    timeout_attempt_cap: int = 2                       # a timeout on this attempt (or later) aborts

    # ── Executor ──
    executor_fallback_enabled: bool = True             # try the legacy JSON path when structured output fails

    # ── Scheduling ──
    schedule_by_edges: bool = False                    # opt-in topological order; default is node order

    # Database (script version history)
    database_url: str = "sqlite:///scriptforge.db"
    log_sql: bool = False

    # Logging
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
