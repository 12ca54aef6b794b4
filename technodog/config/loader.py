"""YAML configuration loader with environment variable overrides.

Configuration is layered, later layers winning:

    1. config/config.yaml  (static defaults, optional)
    2. .env file           (local developer overrides)
    3. Environment vars    (deploy time)

``load_config()`` reads the YAML file and deep-merges the values derived
from :class:`Settings` on top of it.
"""

from pathlib import Path

import yaml

from technodog.config.settings import Settings


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict:
    """Load YAML config and merge with environment-based Settings.

    Args:
        path: Path to the YAML configuration file.  A missing file is not
            an error; the environment values alone are returned.
        settings: Pre-built settings object.  A fresh ``Settings()`` is
            created when omitted.

    Returns:
        Fully resolved configuration dictionary.
    """
    config_path = Path(path)
    if config_path.exists():
        with open(config_path) as f:
            yaml_config = yaml.safe_load(f) or {}
    else:
        yaml_config = {}

    settings = settings or Settings()
    env_overrides = {
        "app": {
            "host": settings.app_host,
            "port": settings.app_port,
            "env": settings.app_env,
        },
        "llm": {
            "available_providers": settings.get_available_llm_providers(),
            "anthropic_model": settings.anthropic_model,
        },
        "storage": {
            "database_path": settings.database_path,
            "feature_flags_path": settings.feature_flags_path,
        },
        "enrichment": {
            "stage_pause": settings.enrichment_stage_pause,
            "queue_pause": settings.enrichment_queue_pause,
            "max_attempts": settings.enrichment_max_attempts,
        },
        "logging": {
            "level": settings.log_level,
        },
    }

    _deep_merge(yaml_config, env_overrides)
    return yaml_config


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
