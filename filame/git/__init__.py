"""Git working copy and bundle reconciliation."""

from .credentials import Credentials, CredentialStore, host_for_remote
from .errors import SyncError, SyncErrorKind, SyncResult
from .reader import BundleReader
from .repo_manager import CredentialProvider, GitRepoManager, GitStatus, RepoHandle
from .scanner import BundleScanner
from .sync_manager import ExportSummary, SyncManager
from .writer import DESCRIPTOR_FILENAME, BundleWriter

__all__ = [
    "DESCRIPTOR_FILENAME",
    "BundleReader",
    "BundleScanner",
    "BundleWriter",
    "CredentialProvider",
    "CredentialStore",
    "Credentials",
    "ExportSummary",
    "GitRepoManager",
    "GitStatus",
    "RepoHandle",
    "SyncError",
    "SyncErrorKind",
    "SyncManager",
    "SyncResult",
    "host_for_remote",
]
