"""Scan the working copy for package bundles."""

import fnmatch
import logging
from pathlib import Path
from typing import Iterator

from ..models import DEFAULT_SOURCE, ConfigFile, PackageBundle
from .reader import BundleReader
from .writer import DESCRIPTOR_FILENAME

logger = logging.getLogger(__name__)


class BundleScanner:
    """Reconstruct bundles from the repository's directory tree.

    Each top-level, non-hidden directory is a potential bundle. Its
    ``package.yaml`` wins when present; otherwise the files below the
    directory are turned into config file mappings.
    """

    # Never tracked files, even without ignore patterns
    SKIP_FILES = {".gitkeep", ".DS_Store"}

    def __init__(
        self,
        root_path: str | Path,
        home: Path,
        ignore_patterns: list[str] | None = None,
        reader: BundleReader | None = None,
    ):
        self.root = Path(root_path)
        self.home = home
        self.ignore_patterns = list(ignore_patterns or [])
        self._reader = reader or BundleReader()

    def package_dirs(self) -> Iterator[Path]:
        """Yield top-level, non-hidden directories, sorted by name."""
        if not self.root.is_dir():
            return
        for entry in sorted(self.root.iterdir(), key=lambda p: p.name):
            if entry.name.startswith("."):
                continue
            if entry.is_dir() and not entry.is_symlink():
                yield entry

    def scan(self) -> list[PackageBundle]:
        """Return every bundle found in the repository. Read-only."""
        bundles = []
        for package_dir in self.package_dirs():
            descriptor = package_dir / DESCRIPTOR_FILENAME
            if descriptor.is_file():
                bundle = self._reader.read_bundle(descriptor)
                if bundle is None:
                    logger.warning(f"Skipping {package_dir.name}: corrupt {DESCRIPTOR_FILENAME}")
                    continue
                bundles.append(bundle)
                continue

            bundle = self.infer_bundle(package_dir)
            if bundle is not None:
                bundles.append(bundle)
        return bundles

    def is_ignored(self, relative_path: str) -> bool:
        """Check a path (relative to its package dir) against ignore patterns."""
        name = relative_path.rsplit("/", 1)[-1]
        if name in self.SKIP_FILES:
            return True
        return any(
            fnmatch.fnmatch(relative_path, pattern) or fnmatch.fnmatch(name, pattern)
            for pattern in self.ignore_patterns
        )

    def iter_files(self, package_dir: Path) -> Iterator[str]:
        """Yield POSIX paths of tracked files below a package dir, sorted.

        Files inside hidden subdirectories are skipped. Dotfiles themselves
        are kept.
        """
        for path in sorted(package_dir.rglob("*")):
            if not path.is_file():
                continue
            relative = path.relative_to(package_dir)
            if any(part.startswith(".") for part in relative.parts[:-1]):
                continue
            rel = relative.as_posix()
            if self.is_ignored(rel):
                continue
            yield rel

    def infer_bundle(self, package_dir: Path) -> PackageBundle | None:
        """Build a bundle from directory contents.

        Host paths are guessed as ``<home>/.config/<dir>/<file>``.
        Returns None when the directory has no files.
        """
        name = package_dir.name
        config_files = [
            ConfigFile(
                source_path=str(self.home / ".config" / name / rel),
                destination_path=f"{name}/{rel}",
            )
            for rel in self.iter_files(package_dir)
        ]
        if not config_files:
            return None

        logger.warning(
            f"Inferred bundle '{name}' without {DESCRIPTOR_FILENAME}; "
            f"host paths under {self.home / '.config' / name} are a guess"
        )
        return PackageBundle(name=name, source=DEFAULT_SOURCE, config_files=config_files)
