"""Result and error values returned by git and sync operations."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")


class SyncErrorKind(Enum):
    """Failure kinds. Callers branch on these, not on messages."""

    REPO_NOT_CONFIGURED = "repo_not_configured"
    OPEN_OR_CLONE_FAILED = "open_or_clone_failed"
    PULL_FAILED = "pull_failed"
    COMMIT_FAILED = "commit_failed"
    PUSH_FAILED = "push_failed"
    CREDENTIAL_PERSIST_FAILED = "credential_persist_failed"
    IO_FAILED = "io_failed"


_LABELS = {
    SyncErrorKind.REPO_NOT_CONFIGURED: "Repository not configured",
    SyncErrorKind.OPEN_OR_CLONE_FAILED: "Open/clone failed",
    SyncErrorKind.PULL_FAILED: "Pull failed",
    SyncErrorKind.COMMIT_FAILED: "Commit failed",
    SyncErrorKind.PUSH_FAILED: "Push failed",
    SyncErrorKind.CREDENTIAL_PERSIST_FAILED: "Saving credentials failed",
    SyncErrorKind.IO_FAILED: "I/O error",
}


@dataclass(frozen=True)
class SyncError:
    """A tagged failure with a human-readable message."""

    kind: SyncErrorKind
    message: str = ""

    def __str__(self) -> str:
        label = _LABELS[self.kind]
        return f"{label}: {self.message}" if self.message else label


@dataclass
class SyncResult(Generic[T]):
    """Result of a sync operation.

    A failed result carries ``error``. A successful result may still carry a
    ``warning``, e.g. when a push went through but the credentials used for it
    could not be saved.
    """

    success: bool
    message: str = ""
    value: T | None = None
    error: SyncError | None = None
    warning: SyncError | None = None

    @classmethod
    def ok(
        cls,
        value: T | None = None,
        message: str = "",
        warning: SyncError | None = None,
    ) -> SyncResult[T]:
        return cls(success=True, message=message, value=value, warning=warning)

    @classmethod
    def fail(cls, kind: SyncErrorKind, message: str = "") -> SyncResult[T]:
        error = SyncError(kind, message)
        return cls(success=False, message=str(error), error=error)

    @classmethod
    def from_error(cls, error: SyncError) -> SyncResult[T]:
        """Re-wrap another result's error for a different payload type."""
        return cls(success=False, message=str(error), error=error)

    @property
    def kind(self) -> SyncErrorKind | None:
        """Kind of the error, or None on success."""
        return self.error.kind if self.error else None

    def __bool__(self) -> bool:
        return self.success
