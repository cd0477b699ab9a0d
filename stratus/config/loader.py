"""Locate and merge the layered TOML configuration files.

Layers, lowest precedence first:
    config/default.toml      required base values
    config/{STRATUS_ENV}.toml  optional per-environment overrides
"""

import os
import tomllib
from pathlib import Path
from typing import Any

CONFIG_DIR_ENV = "STRATUS_CONFIG_DIR"
ENVIRONMENT_ENV = "STRATUS_ENV"
DEFAULT_ENVIRONMENT = "development"

# How far above the working directory to look for config/
_SEARCH_DEPTH = 5


def get_config_dir() -> Path:
    """Return the directory holding the TOML layers.

    STRATUS_CONFIG_DIR wins when set and must exist. Otherwise the nearest
    `config/` directory at or above the working directory is used, falling
    back to a relative `config/` that may not exist.

    Raises:
        FileNotFoundError: STRATUS_CONFIG_DIR points at a missing directory
    """
    override = os.environ.get(CONFIG_DIR_ENV)
    if override:
        path = Path(override)
        if not path.is_dir():
            raise FileNotFoundError(f"{CONFIG_DIR_ENV} does not exist: {override}")
        return path

    search_from = Path.cwd()
    for candidate in [search_from, *search_from.parents][:_SEARCH_DEPTH]:
        if (candidate / "config").is_dir():
            return candidate / "config"

    return Path("config")


def get_environment() -> str:
    """Name of the active environment layer (STRATUS_ENV, default development)."""
    return os.environ.get(ENVIRONMENT_ENV, DEFAULT_ENVIRONMENT)


def load_toml(file_path: Path) -> dict[str, Any]:
    """Parse one TOML file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        tomllib.TOMLDecodeError: If the TOML syntax is invalid
    """
    if not file_path.is_file():
        raise FileNotFoundError(f"Configuration file not found: {file_path}")

    with file_path.open("rb") as f:
        return tomllib.load(f)


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge override into a copy of base.

    Tables merge key by key; any other value in override replaces the
    one in base. Neither argument is mutated.
    """
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def load_config() -> dict[str, Any]:
    """Read default.toml and overlay the active environment's file if present.

    Raises:
        FileNotFoundError: default.toml is missing from the config directory
    """
    config_dir = get_config_dir()

    base_file = config_dir / "default.toml"
    if not base_file.is_file():
        raise FileNotFoundError(
            f"Missing {base_file}: add config/default.toml or point "
            f"{CONFIG_DIR_ENV} at a directory containing default.toml"
        )
    config = load_toml(base_file)

    env_file = config_dir / f"{get_environment()}.toml"
    if env_file.is_file():
        config = deep_merge(config, load_toml(env_file))

    return config
