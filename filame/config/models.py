"""Configuration models for filame."""

from __future__ import annotations

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from ..models import PackageBundle


DEFAULT_IGNORE_PATTERNS = ["*.log", "*.tmp", ".cache/*", "*.lock"]


class FilameConfig(BaseModel):
    """Device configuration: where the repository lives and what it tracks."""

    model_config = ConfigDict(populate_by_name=True)

    device_name: str = Field(default="", alias="deviceName")
    remote_url: str = Field(
        default="",
        alias="githubRepo",
        validation_alias=AliasChoices("githubRepo", "remoteUrl"),
        description="Remote repository URL",
    )
    bundles: list[PackageBundle] = Field(
        default_factory=list,
        alias="packageBundles",
        validation_alias=AliasChoices("packageBundles", "bundles"),
    )
    ignore_patterns: list[str] = Field(
        default_factory=lambda: list(DEFAULT_IGNORE_PATTERNS),
        alias="ignorePatterns",
    )

    def get_bundle(self, name: str) -> PackageBundle | None:
        """Find a bundle by name."""
        for bundle in self.bundles:
            if bundle.name == name:
                return bundle
        return None

    def upsert_bundle(self, bundle: PackageBundle) -> FilameConfig:
        """Return a copy with ``bundle`` added, replacing any same-named bundle in place."""
        bundles = list(self.bundles)
        for i, existing in enumerate(bundles):
            if existing.name == bundle.name:
                bundles[i] = bundle
                break
        else:
            bundles.append(bundle)
        return self.model_copy(update={"bundles": bundles})

    def remove_bundle(self, name: str) -> FilameConfig:
        """Return a copy without the named bundle."""
        bundles = [b for b in self.bundles if b.name != name]
        return self.model_copy(update={"bundles": bundles})

    def with_settings(self, device_name: str, remote_url: str) -> FilameConfig:
        """Return a copy with updated device and repository settings."""
        return self.model_copy(
            update={"device_name": device_name, "remote_url": remote_url}
        )
