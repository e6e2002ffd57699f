"""Utility file for parsing yaml configuration file."""

import copy
import logging
import os
from pathlib import Path

import yaml

BASE = Path(__file__).resolve().parent.parent
CONFIG_PATH = Path(os.environ.get("PAIRLINK_CONFIG", BASE.parent / "config.yaml"))

DEFAULTS: dict = {
    "engine": {"match_score": 10, "resolve_delay": 0.3, "level_step": 2},
    "clock": {"interval": 1, "default_time_limit": 600},
    "player": {"name": "Player"},
    "records": {"path": "./records.json", "max_records": 100},
    "levels": {"path": "./levels.yaml"},
    "generation": {"seed": 42},
    "simulation": {"output": {"dir": "./stuck_boards"}},
    "logging": {"verbose": False},
}


def _merge(base: dict, override: dict) -> dict:
    """Recursively merge override into a copy of base."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(path: Path = CONFIG_PATH) -> dict:
    """Read the yaml file at path on top of the built-in defaults."""
    if not path.exists():
        return copy.deepcopy(DEFAULTS)
    return _merge(DEFAULTS, yaml.safe_load(path.read_text()) or {})


config: dict = load_config()


def get_key(key: str, default=None):  # noqa: ANN001, ANN201
    """
    Get a configuration value by key. Search through nested keys using dot notation.

    Args:
        key (str): The key to look up in the configuration.
        default: The default value to return if the key is not found.

    Returns:
        The value associated with the key, or the default value if the key is not found.
    """
    keys = key.split(".")
    value = config
    for k in keys:
        if isinstance(value, dict) and k in value:
            value = value[k]
        else:
            return default  # Return default if key is not found
    return value


def print_config() -> None:
    """Print the entire configuration."""
    for key, value in config.items():
        print(f"{key}: {value}")


def is_verbose() -> bool:
    """
    Check if verbose logging is enabled.

    Returns:
        bool: True if verbose logging is enabled, False otherwise.
    """
    return bool(get_key("logging.verbose", False))


def configure_logging() -> None:
    """Configure application-wide logging with a standard format."""
    logging.basicConfig(
        level=logging.DEBUG if is_verbose() else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


if __name__ == "__main__":
    print_config()
