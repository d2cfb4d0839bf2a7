"""Deployment settings: secrets, file locations and the calendar timezone.

Read by pydantic-settings from the environment, then from a local ``.env``;
each field maps to the upper-cased env var (``state_dir`` -> ``STATE_DIR``).
Tuning lives in ``config/config.yaml`` instead, see :mod:`venue_refresh.config.loader`.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === LLM Providers ===
    # Empty string = "not configured"; the factory in main.py skips
    # providers with empty values and falls through to the next.
    llm_provider: str = ""  # Force one of: anthropic, openai, ollama
    openai_api_key: str = ""
    openai_base_url: str = ""  # OpenAI-compatible endpoint, e.g. https://api.x.ai/v1
    openai_text_model: str = ""
    anthropic_api_key: str = ""
    anthropic_model: str = ""
    ollama_base_url: str = ""  # e.g. http://localhost:11434
    ollama_model: str = ""

    # === Notifications ===
    telegram_bot_token: str = ""
    telegram_chat_id: str = ""

    # === Storage ===
    state_dir: str = "data/pipeline"  # snapshots, generation marker, lock, run state
    results_db_path: str = "data/results.db"
    venues_path: str = "data/venues.json"
    config_path: str = "config/config.yaml"

    # === App Config ===
    timezone: str = "UTC"  # calendar day used for rotation
    app_env: str = "development"
    log_level: str = "INFO"

    def get_available_llm_providers(self) -> list[str]:
        """Return LLM provider names that have non-empty credentials configured.

        Order is the fallback priority used when ``llm_provider`` is unset.
        """
        providers: list[str] = []
        if self.anthropic_api_key:
            providers.append("anthropic")
        if self.openai_api_key:
            providers.append("openai")
        if self.ollama_base_url:
            providers.append("ollama")
        return providers

    def telegram_configured(self) -> bool:
        return bool(self.telegram_bot_token and self.telegram_chat_id)
