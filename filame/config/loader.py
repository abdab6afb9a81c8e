"""Configuration file loader and writer."""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from .models import FilameConfig

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when an existing config file cannot be read."""


class ConfigLoader:
    """Load and save the device configuration."""

    def __init__(self, config_path: Path):
        """Initialize config loader.

        Args:
            config_path: Path to config.yaml (usually RuntimePaths.config_file).
        """
        self._config_path = config_path

    @property
    def config_path(self) -> Path:
        return self._config_path

    def load(self) -> FilameConfig:
        """Load configuration, returning defaults if no config exists.

        Returns:
            FilameConfig with loaded or default values.

        Raises:
            ConfigError: If the file exists but is not a valid config.
        """
        if not self._config_path.exists():
            logger.debug("No config file found, using defaults")
            return FilameConfig()

        try:
            with open(self._config_path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
            if not isinstance(data, dict):
                raise ConfigError(f"{self._config_path}: expected a mapping")
            config = FilameConfig.model_validate(data)
        except (yaml.YAMLError, OSError, ValidationError) as e:
            raise ConfigError(f"Failed to load config from {self._config_path}: {e}") from e

        logger.info(f"Loaded config from: {self._config_path}")
        return config

    def save(self, config: FilameConfig) -> Path:
        """Save configuration to file.

        Args:
            config: Configuration to save.

        Returns:
            Path where config was saved.
        """
        self._config_path.parent.mkdir(parents=True, exist_ok=True)

        data = config.model_dump(by_alias=True, mode="json")

        with open(self._config_path, "w", encoding="utf-8") as f:
            yaml.dump(
                data,
                f,
                default_flow_style=False,
                sort_keys=False,
                allow_unicode=True,
            )

        logger.info(f"Saved config to: {self._config_path}")
        return self._config_path


def load_config(config_path: Path | str) -> FilameConfig:
    """Load configuration from a file path.

    Convenience function that creates a ConfigLoader and loads config.
    """
    return ConfigLoader(Path(config_path)).load()
