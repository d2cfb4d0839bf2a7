"""Wiring for the venue refresh pipeline.

Builds every provider and service from :class:`Settings` and
``config/config.yaml`` and assembles a :class:`RefreshPipeline`.  The CLI
(``venue_refresh.cli.refresh``) is the only production caller; tests build
the pipeline directly with in-memory collaborators.
"""

from __future__ import annotations

from dataclasses import dataclass

from venue_refresh.config.loader import load_pipeline_config
from venue_refresh.config.schema import PipelineConfig
from venue_refresh.config.settings import Settings
from venue_refresh.interfaces.llm_provider import ILLMProvider
from venue_refresh.pipeline.orchestrator import RefreshPipeline
from venue_refresh.providers.fetch.http_page_fetcher import HttpPageFetcher
from venue_refresh.providers.llm.anthropic_provider import AnthropicLLMProvider
from venue_refresh.providers.llm.ollama_provider import OllamaLLMProvider
from venue_refresh.providers.llm.openai_provider import OpenAILLMProvider
from venue_refresh.providers.notify.telegram_notifier import TelegramNotifier
from venue_refresh.providers.registry.json_venue_registry import JsonVenueRegistry
from venue_refresh.providers.results.sqlite_result_store import SQLiteResultStore
from venue_refresh.providers.state.file_state_store import FileStateStore
from venue_refresh.services.llm_hours_extractor import LLMHoursExtractor
from venue_refresh.utils.clock import Clock, SystemClock
from venue_refresh.utils.errors import ConfigurationError
from venue_refresh.utils.logging import get_logger

logger = get_logger(__name__)

_LLM_PROVIDERS = {
    "anthropic": AnthropicLLMProvider,
    "openai": OpenAILLMProvider,
    "ollama": OllamaLLMProvider,
}


def build_llm_provider(app_settings: Settings, config: PipelineConfig | None = None) -> ILLMProvider | None:
    """Select the LLM provider.

    ``LLM_PROVIDER`` forces one; otherwise the first configured provider in
    priority order Anthropic -> OpenAI -> Ollama.  Returns ``None`` when none
    is configured.

    Raises:
        ConfigurationError: ``LLM_PROVIDER`` names an unknown or unconfigured provider.
    """
    config = config or PipelineConfig()
    timeout = max(config.tier2.timeout_seconds, config.tier3.timeout_seconds)
    available = app_settings.get_available_llm_providers()

    forced = app_settings.llm_provider.strip().lower()
    if forced:
        if forced not in _LLM_PROVIDERS:
            raise ConfigurationError(
                f"Unknown LLM_PROVIDER {forced!r}; expected one of {sorted(_LLM_PROVIDERS)}"
            )
        if forced not in available:
            raise ConfigurationError(f"LLM_PROVIDER={forced} but its credentials are not set")
        name = forced
    elif available:
        name = available[0]
    else:
        return None

    provider = _LLM_PROVIDERS[name](settings=app_settings, timeout_seconds=timeout)
    logger.info("llm_provider_selected", provider=provider.get_provider_name(), model=provider.get_model_name())
    return provider


@dataclass
class PipelineComponents:
    """Everything :func:`build_pipeline` created; ``aclose`` releases network clients."""

    pipeline: RefreshPipeline
    fetcher: HttpPageFetcher
    llm: ILLMProvider | None

    async def aclose(self) -> None:
        await self.fetcher.close()
        if self.llm is not None:
            await self.llm.aclose()


def build_pipeline(
    app_settings: Settings | None = None,
    config_path: str | None = None,
    clock: Clock | None = None,
) -> PipelineComponents:
    """Construct the production pipeline from settings and YAML config."""
    app_settings = app_settings or Settings()
    config = load_pipeline_config(config_path or app_settings.config_path, settings=app_settings)
    clock = clock or SystemClock(app_settings.timezone)

    llm = build_llm_provider(app_settings, config)
    extractor = (
        LLMHoursExtractor(llm, llm_config=config.llm, tier2_config=config.tier2, tier3_config=config.tier3)
        if llm is not None
        else None
    )
    fetcher = HttpPageFetcher(config=config.fetch, clock=clock)

    pipeline = RefreshPipeline(
        store=FileStateStore(app_settings.state_dir),
        clock=clock,
        registry=JsonVenueRegistry(app_settings.venues_path),
        result_store=SQLiteResultStore(app_settings.results_db_path),
        fetcher=fetcher,
        extractor=extractor,
        notifier=TelegramNotifier(app_settings),
        config=config,
    )
    return PipelineComponents(pipeline=pipeline, fetcher=fetcher, llm=llm)
