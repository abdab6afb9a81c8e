"""Models for package bundles and their tracked config files."""

from __future__ import annotations

from pathlib import Path, PurePosixPath

from pydantic import BaseModel, ConfigDict, Field, field_validator


DEFAULT_SOURCE = "official"


class ConfigFile(BaseModel):
    """A config file mapping between the host and the repository.

    ``source_path`` is an absolute host path, ``destination_path`` is relative
    to the working-copy root.
    """

    model_config = ConfigDict(populate_by_name=True)

    source_path: str = Field(default="", alias="sourcePath", description="Host path")
    destination_path: str = Field(
        ..., alias="destinationPath", description="Path inside the repository"
    )
    description: str = Field(default="")

    def host_path(self) -> Path | None:
        """Get the host path with ``~`` expanded, or None when unset."""
        if not self.source_path:
            return None
        return Path(self.source_path).expanduser()

    def top_level_dir(self) -> str | None:
        """Get the first segment of the destination path.

        Returns None when the destination has no directory component, is
        absolute, or starts with a hidden or parent (``..``) segment.
        """
        path = PurePosixPath(self.destination_path.replace("\\", "/"))
        parts = path.parts
        if len(parts) < 2 or path.is_absolute() or parts[0].startswith("."):
            return None
        return parts[0]


class PackageBundle(BaseModel):
    """A named group of config files plus the package they belong to."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=1)
    source: str = Field(default=DEFAULT_SOURCE, description="official, aur, ...")
    description: str = Field(default="")
    config_files: list[ConfigFile] = Field(default_factory=list, alias="configFiles")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Bundle names double as directory names in the repository."""
        if "/" in v or "\\" in v or v.startswith("."):
            raise ValueError(f"Invalid bundle name: {v!r}")
        return v

    @property
    def package_dir(self) -> str:
        """Directory inside the repository holding this bundle's descriptor.

        Derived from the first config file's destination, falling back to the
        bundle name.
        """
        if self.config_files:
            top = self.config_files[0].top_level_dir()
            if top:
                return top
        return self.name
