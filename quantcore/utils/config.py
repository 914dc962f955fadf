"""Configuration management for quantcore.

Settings live in a YAML file (``config/default.yaml``); a handful of engine
knobs can be overridden from the environment or a ``.env`` file.
"""

import os
from pathlib import Path
from typing import Any, Callable

import yaml
from dotenv import load_dotenv

from quantcore.utils.exceptions import ConfigurationError

ROOT_DIR = Path(__file__).parent.parent.parent
DEFAULT_CONFIG_PATH = ROOT_DIR / "config" / "default.yaml"

# Environment variable -> (dotted config key, parser)
ENV_OVERRIDES: dict[str, tuple[str, Callable[[str], Any]]] = {
    "QUANTCORE_LOG_LEVEL": ("logging.level", str),
    "QUANTCORE_INITIAL_CASH": ("engine.initial_cash", float),
    "QUANTCORE_RATE_LIMIT": ("engine.rate_limit", int),
    "QUANTCORE_SETTLEMENT_DELAY": ("engine.settlement_delay", float),
}


class Config:
    """YAML-backed configuration with dot-notation access.

    Example:
        >>> config = Config.from_file("config/default.yaml")
        >>> rate_limit = config.get("engine.rate_limit", 5)
    """

    def __init__(self, config_dict: dict[str, Any]) -> None:
        self._config = config_dict

    @classmethod
    def from_file(cls, filepath: str | Path) -> "Config":
        """Load configuration from YAML file.

        Raises:
            FileNotFoundError: If config file doesn't exist
            yaml.YAMLError: If YAML parsing fails
        """
        path = Path(filepath)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {filepath}")

        with open(path, "r", encoding="utf-8") as f:
            config_dict = yaml.safe_load(f)

        if config_dict is None:
            config_dict = {}

        return cls(config_dict)

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value using dot notation (e.g. "engine.rate_limit").

        Returns:
            Configuration value or default
        """
        value = self._config

        for k in key.split("."):
            if isinstance(value, dict):
                value = value.get(k)
                if value is None:
                    return default
            else:
                return default

        return value

    def set(self, key: str, value: Any) -> None:
        """Set a configuration value, creating intermediate sections."""
        keys = key.split(".")
        section = self._config
        for k in keys[:-1]:
            if not isinstance(section.get(k), dict):
                section[k] = {}
            section = section[k]
        section[keys[-1]] = value

    def __getitem__(self, key: str) -> Any:
        value = self.get(key)
        if value is None:
            raise KeyError(f"Configuration key not found: {key}")
        return value

    def to_dict(self) -> dict[str, Any]:
        """Get the full configuration as dictionary."""
        return self._config.copy()


def load_config(filepath: str | Path | None = None) -> Config:
    """Load configuration, defaulting to ``config/default.yaml``."""
    if filepath is None:
        filepath = DEFAULT_CONFIG_PATH
    return Config.from_file(filepath)


def load_engine_config(
    config_file: str | Path | None = None,
    env_file: str | Path | None = None,
) -> Config:
    """Load engine configuration from YAML plus environment overrides.

    The ``.env`` file is optional; variables already present in the
    environment take precedence over it.

    Args:
        config_file: YAML file. If None, uses ``config/default.yaml``.
        env_file: ``.env`` file. If None, ``<project root>/.env`` is used
            when it exists.

    Returns:
        Config with overrides applied

    Raises:
        ConfigurationError: If an override cannot be parsed

    Example:
        >>> os.environ["QUANTCORE_RATE_LIMIT"] = "3"
        >>> load_engine_config().get("engine.rate_limit")
        3
    """
    env_path = Path(env_file) if env_file is not None else ROOT_DIR / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    config = load_config(config_file)

    for var, (key, parser) in ENV_OVERRIDES.items():
        raw = os.getenv(var)
        if raw is None or raw == "":
            continue
        try:
            config.set(key, parser(raw))
        except ValueError as e:
            raise ConfigurationError(f"Invalid value for {var}: {raw!r}") from e

    return config
