"""Layered TOML configuration: default.toml plus an environment overlay."""

import os
import tomllib
from pathlib import Path
from typing import Any

CONFIG_DIR_ENV = "CONDUCTOR_CONFIG_DIR"
ENVIRONMENT_ENV = "CONDUCTOR_ENV"
DEFAULT_FILE = "default.toml"

# How many ancestors of the working directory are searched for config/
SEARCH_DEPTH = 5


def get_config_dir() -> Path:
    """Locate the configuration directory.

    CONDUCTOR_CONFIG_DIR wins when set. Otherwise the nearest ``config/``
    directory in the working directory or its parents is used.

    Raises:
        FileNotFoundError: If CONDUCTOR_CONFIG_DIR names a missing directory
    """
    configured = os.environ.get(CONFIG_DIR_ENV)
    if configured:
        path = Path(configured)
        if not path.exists():
            raise FileNotFoundError(f"Config directory not found: {configured}")
        return path

    cwd = Path.cwd()
    candidates = [cwd, *cwd.parents][:SEARCH_DEPTH]
    return next(
        (base / "config" for base in candidates if (base / "config").is_dir()),
        Path("config"),
    )


def get_environment() -> str:
    return os.environ.get(ENVIRONMENT_ENV, "development")


def load_toml(file_path: Path) -> dict[str, Any]:
    """Parse one TOML file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        tomllib.TOMLDecodeError: If the TOML syntax is invalid
    """
    try:
        return tomllib.loads(file_path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise FileNotFoundError(f"Configuration file not found: {file_path}") from None


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge override into a copy of base.

    Tables merge recursively; any other value in override replaces the
    one in base. Neither argument is modified.
    """
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def load_config(config_dir: Path | None = None, env: str | None = None) -> dict[str, Any]:
    """Read default.toml and overlay ``{env}.toml`` when present.

    Args:
        config_dir: Directory holding the TOML files (default: discovered)
        env: Environment name (default: CONDUCTOR_ENV)

    Raises:
        FileNotFoundError: If default.toml is missing
    """
    config_dir = config_dir or get_config_dir()
    env = env or get_environment()

    default_path = config_dir / DEFAULT_FILE
    if not default_path.is_file():
        raise FileNotFoundError(
            f"Default configuration file not found: {default_path}. "
            f"Create config/{DEFAULT_FILE} or set {CONFIG_DIR_ENV}."
        )

    layers = [default_path, config_dir / f"{env}.toml"]
    config: dict[str, Any] = {}
    for path in layers:
        if path.is_file():
            config = deep_merge(config, load_toml(path))
    return config
