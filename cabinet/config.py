# =============================================================================
# Application Configuration — Pydantic Settings
# =============================================================================
#
# DESIGN DECISION: Pydantic V2 `BaseSettings` for configuration.
# Values are validated at startup and can come from the environment or a
# .env file, with defaults suitable for local development.
#
# HOW IT WORKS:
# Pydantic Settings loads values in this priority order (highest first):
#   1. Environment variables (e.g., `LLM_MODEL=...`)
#   2. Values from the .env file
#   3. Default values defined below
#
# USAGE:
#   from cabinet.config import settings
#   print(settings.llm_model)
# =============================================================================

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Every setting has a default so the agents can be constructed in tests
    without any environment. API keys have no usable default on purpose.
    """

    # -------------------------------------------------------------------------
    # Application
    # -------------------------------------------------------------------------
    app_name: str = "Cabinet Multi-Agent Core"
    app_version: str = "0.1.0"
    debug: bool = True
    log_level: str = "INFO"

    # -------------------------------------------------------------------------
    # LLM Configuration — Completion Provider
    # -------------------------------------------------------------------------
    # Two provider families are supported:
    #   - "anthropic": Claude via the native Anthropic SDK
    #   - "openai_compatible": any OpenAI-compatible API (OpenAI, Azure
    #     gateways, DeepSeek, Mistral...)
    #
    # llm_temperature is only used when an agent does not pass its own.
    # Every agent operation does, so it mostly applies to ad hoc calls.
    #
    # llm_timeout_seconds bounds every provider call made by an agent.
    # Expiry is handled exactly like a provider error.
    # -------------------------------------------------------------------------
    llm_provider: str = "anthropic"  # "anthropic" or "openai_compatible"
    llm_base_url: str | None = None  # Only needed for openai_compatible
    llm_api_key: str | None = None   # Overrides provider-specific key if set
    anthropic_api_key: str = ""
    openai_api_key: str = ""
    llm_model: str = "claude-sonnet-4-6"
    llm_temperature: float = 0.7
    llm_max_tokens: int = 4096
    llm_timeout_seconds: float = 60.0

    # -------------------------------------------------------------------------
    # News / Retrieval Provider
    # -------------------------------------------------------------------------
    # Sector and client news are fetched from Perplexity, which exposes an
    # OpenAI-compatible chat endpoint. The answer is plain prose that the
    # sectoral and client-strategy agents embed in their own prompts.
    # -------------------------------------------------------------------------
    news_api_key: str = ""
    news_base_url: str = "https://api.perplexity.ai"
    news_model: str = "sonar"

    # -------------------------------------------------------------------------
    # Insights Engine
    # -------------------------------------------------------------------------
    # Admission filter and retention policy. An insight is kept only when
    # its confidence and relevance both reach the minimums; each insight
    # type keeps at most `insights_max_per_type` entries.
    # context_window_days is informational and not used for eviction.
    # -------------------------------------------------------------------------
    insights_min_confidence: Literal["low", "medium", "high"] = "medium"
    insights_min_relevance: int = 5
    insights_max_per_type: int = 10
    insights_context_window_days: int = 30

    # -------------------------------------------------------------------------
    # Conscience Journal
    # -------------------------------------------------------------------------
    # Audit entries quote message content truncated to this many characters.
    # -------------------------------------------------------------------------
    conscience_preview_chars: int = 100

    # -------------------------------------------------------------------------
    # Data Warehouse
    # -------------------------------------------------------------------------
    # JSON file holding the mutualised company records (a list of objects
    # with siren, raisonSociale, secteur, ca, resultat, effectif...). The
    # warehouse agent starts empty when unset.
    # -------------------------------------------------------------------------
    warehouse_data_path: str | None = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """
    Create and cache a Settings instance.

    In tests, override with FastAPI's dependency_overrides:
        app.dependency_overrides[get_settings] = lambda: Settings(debug=False)
    """
    return Settings()


# ---------------------------------------------------------------------------
# Module-level convenience instance
# ---------------------------------------------------------------------------
settings = Settings()
