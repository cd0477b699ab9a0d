"""Stratus configuration.

    from stratus.config import get_settings

    settings = get_settings()
    settings.sessions.idle_timeout_seconds

Values are layered, later layers winning: model defaults, config/default.toml,
config/{STRATUS_ENV}.toml, a local .env file, then STRATUS_* variables.
"""

from functools import lru_cache

from stratus.config.loader import load_config
from stratus.config.settings import Settings, set_toml_config


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build Settings once per process; use reload_settings() to rebuild."""
    try:
        layers = load_config()
    except FileNotFoundError:
        # Outside the project tree: defaults and environment only
        layers = {}
    set_toml_config(layers)
    return Settings()


def reload_settings() -> Settings:
    get_settings.cache_clear()
    return get_settings()


__all__ = ["Settings", "get_settings", "reload_settings"]
