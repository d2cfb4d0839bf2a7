"""Typed view of the merged YAML + environment configuration.

``load_config`` returns a plain dict (YAML deep-merged with env overrides);
:class:`PipelineConfig` validates the parts the pipeline actually reads so
a typo in ``config.yaml`` fails at startup instead of mid-run.  Unknown keys
are ignored; every section has working defaults.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class RunConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = "venue-refresh"
    # Entities with less usable page text than this skip tiers 1-2.
    min_content_chars: int = Field(default=50, ge=0)
    # 0 = unlimited.  When more entities need LLM tiers than this, the LLM
    # tiers are skipped for the run (guards against a mass re-render).
    max_llm_entities: int = Field(default=0, ge=0)


class Tier1Config(BaseModel):
    model_config = ConfigDict(frozen=True)

    min_days: int = Field(default=3, ge=1, le=7)


class Tier2Config(BaseModel):
    model_config = ConfigDict(frozen=True)

    max_content_chars: int = Field(default=8000, gt=0)
    interval_seconds: float = Field(default=0.5, gt=0)
    timeout_seconds: float = Field(default=30.0, gt=0)


class Tier3Config(BaseModel):
    model_config = ConfigDict(frozen=True)

    batch_size: int = Field(default=8, ge=1)
    interval_seconds: float = Field(default=1.0, gt=0)
    timeout_seconds: float = Field(default=60.0, gt=0)
    # Appended to venues without an address in the knowledge prompt.
    default_location: str = ""


class LLMConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    temperature: float = Field(default=0.0, ge=0.0, le=2.0)
    max_tokens: int = Field(default=2000, gt=0)


class BackoffConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    initial_seconds: float = Field(default=3600.0, gt=0)
    multiplier: float = Field(default=1.5, ge=1.0)
    max_seconds: float = Field(default=7200.0, gt=0)
    max_retries: int = Field(default=100, ge=0)


class LockConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    # Must exceed the longest backoff wait; the holder refreshes the record
    # before each wait so a live run never looks stale.
    stale_after_seconds: float = Field(default=10800.0, gt=0)


class FetchConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    timeout_seconds: float = Field(default=20.0, gt=0)
    max_chars_per_page: int = Field(default=50000, gt=0)
    user_agent: str = "Mozilla/5.0 (compatible; venue-refresh/0.1)"


class PipelineConfig(BaseModel):
    """Root of the validated configuration tree."""

    model_config = ConfigDict(frozen=True)

    pipeline: RunConfig = Field(default_factory=RunConfig)
    tier1: Tier1Config = Field(default_factory=Tier1Config)
    tier2: Tier2Config = Field(default_factory=Tier2Config)
    tier3: Tier3Config = Field(default_factory=Tier3Config)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    backoff: BackoffConfig = Field(default_factory=BackoffConfig)
    lock: LockConfig = Field(default_factory=LockConfig)
    fetch: FetchConfig = Field(default_factory=FetchConfig)
