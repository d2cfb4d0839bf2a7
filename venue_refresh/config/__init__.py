"""Configuration module -- exports Settings, PipelineConfig and the loaders."""

from venue_refresh.config.loader import load_config, load_pipeline_config
from venue_refresh.config.schema import PipelineConfig
from venue_refresh.config.settings import Settings

__all__ = ["PipelineConfig", "Settings", "load_config", "load_pipeline_config"]
