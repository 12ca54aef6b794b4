"""Application settings loaded from environment variables via pydantic-settings.

# ─── HOW SETTINGS WORK (Junior Developer Guide) ───────────────────────
#
# pydantic-settings reads configuration from two sources, highest
# priority first:
#
#   1. **Environment variables**, e.g. OPENAI_API_KEY=sk-abc123
#   2. **.env file** in the project root (local development only)
#
# Field names map to upper-cased env vars automatically:
# `enrichment_stage_pause` is read from `ENRICHMENT_STAGE_PAUSE`.
#
# Empty-string API keys mean "not configured".  main.py and the CLI use
# that to decide which providers to build; services that need a missing
# provider raise ConfigurationError when they are called.
# ──────────────────────────────────────────────────────────────────────
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """techno.dog knowledge-layer settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # === LLM Providers ===
    openai_api_key: str = ""
    openai_base_url: str = ""  # OpenAI-compatible gateway (TogetherAI, Lovable, ...)
    openai_text_model: str = ""  # Defaults to gpt-4o-mini when empty
    openai_embedding_model: str = ""  # Defaults to text-embedding-3-small when empty
    embedding_dimensions: int = 768
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-20250514"

    # === Storage ===
    database_path: str = "data/technodog.db"
    feature_flags_path: str = "data/knowledge_flags.json"

    # === Enrichment pacing ===
    # Fixed pauses between pipeline stages and between queue items.  Tests
    # set both to 0.
    enrichment_stage_pause: float = 2.0
    enrichment_queue_pause: float = 5.0
    enrichment_max_attempts: int = 3
    research_request_interval: float = 0.5
    research_max_retries: int = 3

    # === Wikipedia ===
    wikipedia_api_url: str = "https://en.wikipedia.org/w/api.php"

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"

    def get_available_llm_providers(self) -> list[str]:
        """Return LLM provider names that have non-empty API keys configured."""
        providers: list[str] = []
        if self.anthropic_api_key:
            providers.append("anthropic")
        if self.openai_api_key:
            providers.append("openai")
        return providers
