from functools import lru_cache

import yaml

from tinyclaw.errors import ConfigError

from . import paths

DEFAULT_CONFIG = {
    "poll_interval": 1.0,
    "max_messages": 50,
    "conversation_timeout": 900,
    "invoke_timeout": 600,
    "max_reply_length": 4000,
    "log_level": "INFO",
}


def clear_cache():
    load_config.cache_clear()


@lru_cache(maxsize=1)
def load_config() -> dict:
    """Load config.yaml merged over DEFAULT_CONFIG. Missing file means defaults."""
    path = paths.config_file()
    if not path.exists():
        return dict(DEFAULT_CONFIG)
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping, got {type(data).__name__}")
    return {**DEFAULT_CONFIG, **data}


def get(key: str):
    return load_config()[key]
