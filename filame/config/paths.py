"""Filesystem locations used by filame, resolved once at startup."""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, Field


class RuntimePaths(BaseModel):
    """Host locations threaded into the components that need them.

    Defaults:
        home:             $HOME
        repo_dir:         ~/.config/filame/repo
        config_file:      ~/.config/filame/config.yaml
        credentials_file: ~/.git-credentials
    """

    home: Path
    repo_dir: Path
    config_file: Path
    credentials_file: Path = Field(description="git credential-store file")

    @property
    def config_dir(self) -> Path:
        return self.config_file.parent

    @property
    def uses_default_credentials_file(self) -> bool:
        """Whether git's credential store will find the file without ``--file``."""
        return self.credentials_file == self.home / ".git-credentials"

    @classmethod
    def for_home(cls, home: Path) -> RuntimePaths:
        """Build the default layout under a given home directory."""
        config_dir = home / ".config" / "filame"
        return cls(
            home=home,
            repo_dir=config_dir / "repo",
            config_file=config_dir / "config.yaml",
            credentials_file=home / ".git-credentials",
        )

    @classmethod
    def resolve(cls, environ: dict[str, str] | None = None) -> RuntimePaths:
        """Resolve paths from the environment.

        Environment Variables:
            FILAME_HOME: Home directory (default: user home)
            FILAME_REPO_DIR: Working copy location
            FILAME_CONFIG_FILE: Device config file
            FILAME_CREDENTIALS_FILE: Credential store file
        """
        env = os.environ if environ is None else environ

        home = Path(env["FILAME_HOME"]) if env.get("FILAME_HOME") else Path.home()
        paths = cls.for_home(home)

        overrides = {}
        if env.get("FILAME_REPO_DIR"):
            overrides["repo_dir"] = Path(env["FILAME_REPO_DIR"]).expanduser()
        if env.get("FILAME_CONFIG_FILE"):
            overrides["config_file"] = Path(env["FILAME_CONFIG_FILE"]).expanduser()
        if env.get("FILAME_CREDENTIALS_FILE"):
            overrides["credentials_file"] = Path(
                env["FILAME_CREDENTIALS_FILE"]
            ).expanduser()

        return paths.model_copy(update=overrides) if overrides else paths
