"""Pydantic models for tracked bundles."""

from .bundle import DEFAULT_SOURCE, ConfigFile, PackageBundle

__all__ = [
    "DEFAULT_SOURCE",
    "ConfigFile",
    "PackageBundle",
]
