"""Turn ``config/config.yaml`` plus the process environment into settings.

The YAML file holds tuning (tier thresholds, batch size, backoff, lock
staleness) and is optional: a missing file means built-in defaults.  Values
that belong to the deployment (paths, timezone, which LLM keys are present)
come from :class:`Settings` and are layered over the YAML, so a checked-in
file can never point a production run at a developer's state directory.
"""

from pathlib import Path

import yaml
from pydantic import ValidationError

from venue_refresh.config.schema import PipelineConfig
from venue_refresh.config.settings import Settings
from venue_refresh.utils.errors import ConfigurationError

DEFAULT_CONFIG_PATH = "config/config.yaml"


def _read_yaml(config_path: Path) -> dict:
    if not config_path.is_file():
        return {}
    try:
        data = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"{config_path} is not valid YAML: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{config_path}: expected a mapping, got {type(data).__name__}")
    return data


def _environment_layer(settings: Settings) -> dict:
    return {
        "app": {"env": settings.app_env, "timezone": settings.timezone},
        "llm": {"available_providers": settings.get_available_llm_providers()},
        "paths": {
            "state_dir": settings.state_dir,
            "results_db": settings.results_db_path,
            "venues": settings.venues_path,
        },
        "logging": {"level": settings.log_level},
    }


def _overlay(target: dict, layer: dict) -> dict:
    # Nested mappings merge key by key; anything else in ``layer`` wins.
    for key, value in layer.items():
        current = target.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            _overlay(current, value)
        else:
            target[key] = value
    return target


def load_config(path: str = DEFAULT_CONFIG_PATH, settings: Settings | None = None) -> dict:
    """Return the merged configuration as a plain dict.

    Raises:
        ConfigurationError: The file exists but is not a YAML mapping.
    """
    return _overlay(_read_yaml(Path(path)), _environment_layer(settings or Settings()))


def load_pipeline_config(path: str = DEFAULT_CONFIG_PATH, settings: Settings | None = None) -> PipelineConfig:
    """:func:`load_config`, validated into a frozen :class:`PipelineConfig`."""
    try:
        return PipelineConfig.model_validate(load_config(path, settings=settings))
    except ValidationError as exc:
        raise ConfigurationError(f"{path}: {exc}") from exc
