"""Configuration module for filame."""

from .loader import ConfigError, ConfigLoader, load_config
from .models import DEFAULT_IGNORE_PATTERNS, FilameConfig
from .paths import RuntimePaths

__all__ = [
    "DEFAULT_IGNORE_PATTERNS",
    "ConfigError",
    "ConfigLoader",
    "FilameConfig",
    "RuntimePaths",
    "load_config",
]
