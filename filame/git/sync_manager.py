"""High-level reconciliation between the device config and the repository."""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Callable, TypeVar

from ..models import PackageBundle
from .errors import SyncErrorKind, SyncResult
from .repo_manager import CredentialProvider, GitRepoManager, GitStatus, RepoHandle
from .scanner import BundleScanner
from .writer import BundleWriter

if TYPE_CHECKING:
    from ..config import FilameConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class ExportSummary:
    """Counts reported by export_all_and_push."""

    files_exported: int = 0
    metadata_exported: int = 0


def repo_target(repo_root: Path, destination: str) -> Path | None:
    """Resolve a destination inside the working copy.

    Returns None for destinations that would land outside ``repo_root``.
    """
    if not destination or Path(destination).is_absolute():
        return None
    target = repo_root / destination
    try:
        target.resolve().relative_to(repo_root.resolve())
    except ValueError:
        return None
    return target


class SyncManager:
    """Exports bundles to the working copy and reads them back."""

    def __init__(
        self,
        repo_manager: GitRepoManager,
        home: Path,
        writer: BundleWriter | None = None,
    ):
        """Initialize sync manager.

        Args:
            repo_manager: Working-copy manager
            home: Host home directory used for inferred host paths
            writer: Descriptor writer (creates new if None)
        """
        self._repo_manager = repo_manager
        self._home = home
        self._writer = writer or BundleWriter()

    @property
    def repo_manager(self) -> GitRepoManager:
        """Get the repo manager instance."""
        return self._repo_manager

    def export_bundle(self, bundle: PackageBundle, repo_root: Path) -> list[str]:
        """Copy a bundle's host files into the working copy.

        Mappings whose host file does not exist are skipped.

        Returns:
            Destination paths that were written.

        Raises:
            OSError: If a copy fails. Files copied before the failure stay.
        """
        exported = []
        for config_file in bundle.config_files:
            source = config_file.host_path()
            if source is None or not source.is_file():
                continue

            destination = repo_target(repo_root, config_file.destination_path)
            if destination is None:
                logger.warning(
                    f"Skipping {config_file.destination_path}: outside the repository"
                )
                continue

            destination.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source, destination)
            exported.append(config_file.destination_path)

        logger.info(f"Exported {len(exported)} file(s) for {bundle.name}")
        return exported

    def export_metadata(self, bundle: PackageBundle, repo_root: Path) -> str:
        """Write the bundle's descriptor into the working copy.

        Returns:
            Descriptor path relative to ``repo_root``.

        Raises:
            OSError: If the write fails.
        """
        path = self._writer.write_bundle(bundle, repo_root)
        return path.relative_to(repo_root).as_posix()

    def apply_bundle(self, bundle: PackageBundle, repo_root: Path) -> list[str]:
        """Copy a bundle's files from the working copy back onto the host.

        Mappings without a repository copy (or without a host path) are skipped.

        Returns:
            Host paths that were written.

        Raises:
            OSError: If a copy fails. Files copied before the failure stay.
        """
        applied = []
        for config_file in bundle.config_files:
            destination = config_file.host_path()
            source = repo_target(repo_root, config_file.destination_path)
            if destination is None or source is None or not source.is_file():
                continue

            destination.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source, destination)
            applied.append(str(destination))

        logger.info(f"Applied {len(applied)} file(s) for {bundle.name}")
        return applied

    def scan_for_bundles(
        self,
        repo_root: Path,
        ignore_patterns: list[str] | None = None,
    ) -> list[PackageBundle]:
        """Discover bundles in the working copy without modifying it."""
        return BundleScanner(repo_root, self._home, ignore_patterns).scan()

    def _with_repo(
        self,
        remote_url: str,
        action: Callable[[RepoHandle], SyncResult[T]],
    ) -> SyncResult[T]:
        """Open the working copy, run ``action``, always release the handle.

        OSError raised by ``action`` becomes IO_FAILED.
        """
        opened = self._repo_manager.open_or_clone(remote_url)
        if not opened:
            return SyncResult.from_error(opened.error)

        with opened.value as handle:
            try:
                return action(handle)
            except OSError as e:
                logger.error(f"I/O error in {handle.root}: {e}")
                return SyncResult.fail(SyncErrorKind.IO_FAILED, str(e))

    def export_bundle_and_push(
        self,
        config: FilameConfig,
        bundle: PackageBundle,
        commit_message: str,
        credential_provider: CredentialProvider | None = None,
        persist_on_success: bool = True,
    ) -> SyncResult[str]:
        """Export one bundle's files and descriptor, commit and push.

        Returns:
            SyncResult whose value is the descriptor path relative to the repo.
        """

        def action(handle: RepoHandle) -> SyncResult[str]:
            self.export_bundle(bundle, handle.root)
            metadata_path = self.export_metadata(bundle, handle.root)

            pushed = self._repo_manager.push_with_commit_and_retry(
                handle, commit_message, credential_provider, persist_on_success
            )
            if not pushed:
                return SyncResult.from_error(pushed.error)
            return SyncResult.ok(metadata_path, message=pushed.message, warning=pushed.warning)

        return self._with_repo(config.remote_url, action)

    def export_all_and_push(
        self,
        config: FilameConfig,
        commit_message: str,
        credential_provider: CredentialProvider | None = None,
        persist_on_success: bool = True,
        bundles: list[PackageBundle] | None = None,
    ) -> SyncResult[ExportSummary]:
        """Export every bundle's files and descriptor as one commit and push.

        The first I/O error aborts before anything is committed.

        Args:
            config: Device config (remote URL and bundles)
            commit_message: Commit message
            credential_provider: Called once if the ambient push fails
            persist_on_success: Save credentials after a credentialed push
            bundles: Bundles to export (default: config.bundles)
        """
        selected = config.bundles if bundles is None else bundles

        def action(handle: RepoHandle) -> SyncResult[ExportSummary]:
            summary = ExportSummary()
            for bundle in selected:
                summary.files_exported += len(self.export_bundle(bundle, handle.root))
                self.export_metadata(bundle, handle.root)
                summary.metadata_exported += 1

            pushed = self._repo_manager.push_with_commit_and_retry(
                handle, commit_message, credential_provider, persist_on_success
            )
            if not pushed:
                return SyncResult.from_error(pushed.error)
            return SyncResult.ok(summary, message=pushed.message, warning=pushed.warning)

        return self._with_repo(config.remote_url, action)

    def refresh_bundles_from_repo(self, config: FilameConfig) -> SyncResult[FilameConfig]:
        """Replace the config's bundle list with what the repository holds."""
        if not config.remote_url:
            return SyncResult.fail(SyncErrorKind.REPO_NOT_CONFIGURED)

        def action(handle: RepoHandle) -> SyncResult[FilameConfig]:
            bundles = self.scan_for_bundles(handle.root, config.ignore_patterns)
            logger.info(f"Found {len(bundles)} bundle(s) in {handle.root}")
            return SyncResult.ok(
                config.model_copy(update={"bundles": bundles}),
                message=f"Found {len(bundles)} bundle(s)",
            )

        return self._with_repo(config.remote_url, action)

    def pull_from_repo(self, config: FilameConfig) -> SyncResult[None]:
        """Open (or clone) the working copy and pull."""
        return self._with_repo(config.remote_url, self._repo_manager.pull)

    def apply_bundle_from_repo(
        self, config: FilameConfig, name: str
    ) -> SyncResult[list[str]]:
        """Copy the named bundle's files from the working copy onto the host."""
        bundle = config.get_bundle(name)
        if bundle is None:
            return SyncResult.fail(SyncErrorKind.IO_FAILED, f"Unknown bundle: {name}")

        def action(handle: RepoHandle) -> SyncResult[list[str]]:
            applied = self.apply_bundle(bundle, handle.root)
            return SyncResult.ok(applied, message=f"Applied {len(applied)} file(s)")

        return self._with_repo(config.remote_url, action)

    def status(self, config: FilameConfig) -> SyncResult[GitStatus]:
        """Git status of the working copy."""
        return self._with_repo(config.remote_url, self._repo_manager.get_status)
