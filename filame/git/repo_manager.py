"""Git working-copy manager for the filame repository."""

from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, ClassVar

from .credentials import Credentials, CredentialStore
from .errors import SyncErrorKind, SyncResult

logger = logging.getLogger(__name__)

CredentialProvider = Callable[[], Credentials | tuple[str, str] | None]

# Feeds credentials from the environment to git for a single command.
_ENV_CREDENTIAL_HELPER = (
    '!f() { test "$1" = get || exit 0; '
    'echo "username=${FILAME_GIT_USERNAME}"; '
    'echo "password=${FILAME_GIT_TOKEN}"; }; f'
)

FALLBACK_IDENTITY = ("filame", "filame@localhost")


@dataclass
class GitStatus:
    """Git status information."""

    modified: list[str] = field(default_factory=list)
    added: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    untracked: list[str] = field(default_factory=list)
    ahead: int = 0
    behind: int = 0

    @property
    def local_changes(self) -> int:
        return (
            len(self.modified)
            + len(self.added)
            + len(self.deleted)
            + len(self.untracked)
        )


class RepoHandle:
    """An open working copy bound to one remote URL.

    Use as a context manager so the handle is released on every exit path::

        with manager.open_or_clone(url).value as handle:
            ...
    """

    def __init__(
        self,
        root: Path,
        remote_url: str,
        on_close: Callable[[RepoHandle], None] | None = None,
    ):
        self.root = root
        self.remote_url = remote_url
        self._on_close = on_close
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Release the handle. Closing twice is a no-op."""
        if self._closed:
            return
        self._closed = True
        if self._on_close:
            self._on_close(self)
        logger.debug(f"Released working copy {self.root}")

    def __enter__(self) -> RepoHandle:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"<RepoHandle {self.root} ({state})>"


class GitRepoManager:
    """Manages the single local clone of the device's remote repository."""

    # Roots with an open handle in this process
    _open_roots: ClassVar[set[Path]] = set()

    def __init__(
        self,
        repo_dir: Path,
        credential_store: CredentialStore | None = None,
        git: str = "git",
    ):
        """Initialize with the working copy location.

        Args:
            repo_dir: Default working copy root (RuntimePaths.repo_dir)
            credential_store: Where credentials go after a credentialed push
            git: git executable
        """
        self._repo_dir = repo_dir
        self._credential_store = credential_store or CredentialStore(
            Path.home() / ".git-credentials", git=git
        )
        self._git = git

    @property
    def repo_dir(self) -> Path:
        return self._repo_dir

    @property
    def credential_store(self) -> CredentialStore:
        return self._credential_store

    def _env(self, extra: dict[str, str] | None = None) -> dict[str, str]:
        env = os.environ.copy()
        # Fail instead of waiting on a terminal prompt; credentials come from the caller.
        env["GIT_TERMINAL_PROMPT"] = "0"
        if extra:
            env.update(extra)
        return env

    def _run(
        self,
        args: list[str],
        env: dict[str, str] | None = None,
        timeout: int = 60,
    ) -> subprocess.CompletedProcess:
        """Run git. Raises OSError or SubprocessError when git cannot run."""
        cmd = [self._git, *args]
        logger.debug(f"Running: {' '.join(cmd)}")
        return subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=timeout,
            env=self._env(env),
        )

    def _run_git(
        self,
        root: Path,
        *args: str,
        env: dict[str, str] | None = None,
        timeout: int = 60,
    ) -> subprocess.CompletedProcess:
        """Run a git command in the working copy."""
        return self._run(["-C", str(root), *args], env=env, timeout=timeout)

    @staticmethod
    def _output(result: subprocess.CompletedProcess) -> str:
        return (result.stderr or result.stdout or "").strip() or (
            f"git exited with {result.returncode}"
        )

    def has_clone(self, local_root: Path | None = None) -> bool:
        """Check if the root already holds a git working copy."""
        root = local_root or self._repo_dir
        return root.exists() and (root / ".git").exists()

    def _origin_url(self, root: Path) -> str:
        try:
            result = self._run_git(root, "remote", "get-url", "origin", timeout=30)
        except (OSError, subprocess.SubprocessError):
            return ""
        return result.stdout.strip() if result.returncode == 0 else ""

    def _acquire(self, root: Path, remote_url: str) -> SyncResult[RepoHandle]:
        key = root.resolve()
        if key in self._open_roots:
            return SyncResult.fail(
                SyncErrorKind.OPEN_OR_CLONE_FAILED,
                f"{root} is already open",
            )
        self._open_roots.add(key)
        handle = RepoHandle(
            root, remote_url, on_close=lambda h: self._open_roots.discard(key)
        )
        return SyncResult.ok(handle)

    def open_or_clone(
        self,
        remote_url: str,
        local_root: Path | None = None,
    ) -> SyncResult[RepoHandle]:
        """Open the working copy, cloning it first if needed.

        Args:
            remote_url: Remote to clone from (not checked for an existing clone)
            local_root: Working copy root (default: repo_dir)

        Returns:
            SyncResult whose value is an open RepoHandle.
        """
        root = local_root or self._repo_dir

        if self.has_clone(root):
            logger.debug(f"Opening existing working copy at {root}")
            return self._acquire(root, remote_url or self._origin_url(root))

        if not remote_url:
            return SyncResult.fail(SyncErrorKind.REPO_NOT_CONFIGURED)

        try:
            root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            return SyncResult.fail(SyncErrorKind.IO_FAILED, f"cannot create {root}: {e}")

        try:
            result = self._run(["clone", remote_url, str(root)], timeout=300)
        except subprocess.TimeoutExpired:
            return SyncResult.fail(
                SyncErrorKind.OPEN_OR_CLONE_FAILED, f"Timeout cloning {remote_url}"
            )
        except (OSError, subprocess.SubprocessError) as e:
            return SyncResult.fail(SyncErrorKind.OPEN_OR_CLONE_FAILED, str(e))

        if result.returncode != 0:
            logger.error(f"Clone failed: {result.stderr}")
            return SyncResult.fail(
                SyncErrorKind.OPEN_OR_CLONE_FAILED, self._output(result)
            )

        logger.info(f"Cloned {remote_url} to {root}")
        return self._acquire(root, remote_url)

    def _closed_handle(self, handle: RepoHandle, kind: SyncErrorKind) -> SyncResult | None:
        if handle.closed:
            return SyncResult.fail(kind, f"{handle.root} has been closed")
        return None

    def pull(self, handle: RepoHandle) -> SyncResult[None]:
        """Fetch and merge from the upstream branch. Never retried."""
        closed = self._closed_handle(handle, SyncErrorKind.PULL_FAILED)
        if closed is not None:
            return closed

        try:
            result = self._run_git(handle.root, "pull", "--no-rebase", timeout=300)
        except subprocess.TimeoutExpired:
            return SyncResult.fail(SyncErrorKind.PULL_FAILED, "Pull timed out")
        except (OSError, subprocess.SubprocessError) as e:
            return SyncResult.fail(SyncErrorKind.PULL_FAILED, str(e))

        if result.returncode != 0:
            output = self._output(result)
            if "CONFLICT" in result.stdout or "CONFLICT" in result.stderr:
                output = f"Merge conflict detected: {output}"
            logger.error(f"Pull failed: {output}")
            return SyncResult.fail(SyncErrorKind.PULL_FAILED, output)

        logger.info(f"Pulled into {handle.root}")
        return SyncResult.ok(message="Pull successful")

    def _identity_args(self, root: Path) -> list[str]:
        """Fallback author identity when git has none configured."""
        result = self._run_git(root, "config", "user.email")
        if result.returncode == 0 and result.stdout.strip():
            return []
        name, email = FALLBACK_IDENTITY
        return ["-c", f"user.name={name}", "-c", f"user.email={email}"]

    def commit(self, handle: RepoHandle, message: str) -> SyncResult[str]:
        """Stage everything (including deletions) and commit.

        Returns:
            SyncResult whose value is the new commit hash, or None when there
            was nothing to commit.
        """
        closed = self._closed_handle(handle, SyncErrorKind.COMMIT_FAILED)
        if closed is not None:
            return closed

        try:
            result = self._run_git(handle.root, "add", "-A")
            if result.returncode != 0:
                return SyncResult.fail(SyncErrorKind.COMMIT_FAILED, self._output(result))

            result = self._run_git(handle.root, "diff", "--cached", "--quiet")
            if result.returncode == 0:
                logger.debug("No changes to commit")
                return SyncResult.ok(None, message="Nothing to commit")

            identity = self._identity_args(handle.root)
            result = self._run_git(handle.root, *identity, "commit", "-m", message)
            if result.returncode != 0:
                logger.warning(f"Commit failed: {result.stderr}")
                return SyncResult.fail(SyncErrorKind.COMMIT_FAILED, self._output(result))

            result = self._run_git(handle.root, "rev-parse", "HEAD")
        except (OSError, subprocess.SubprocessError) as e:
            return SyncResult.fail(SyncErrorKind.COMMIT_FAILED, str(e))

        commit_hash = result.stdout.strip()
        logger.info(f"Committed: {commit_hash[:8]} - {message.splitlines()[0] if message else ''}")
        return SyncResult.ok(commit_hash, message="Commit successful")

    def push(
        self,
        handle: RepoHandle,
        credentials: Credentials | None = None,
    ) -> SyncResult[None]:
        """Push the current branch to origin.

        Without credentials, whatever ambient authentication git has (SSH
        agent, credential helper) is used.
        """
        closed = self._closed_handle(handle, SyncErrorKind.PUSH_FAILED)
        if closed is not None:
            return closed

        args: list[str] = []
        env = None
        if credentials is not None:
            args = ["-c", "credential.helper=", "-c", f"credential.helper={_ENV_CREDENTIAL_HELPER}"]
            env = {
                "FILAME_GIT_USERNAME": credentials.username,
                "FILAME_GIT_TOKEN": credentials.token,
            }

        try:
            result = self._run_git(
                handle.root, *args, "push", "-u", "origin", "HEAD", env=env, timeout=300
            )
        except subprocess.TimeoutExpired:
            return SyncResult.fail(SyncErrorKind.PUSH_FAILED, "Push timed out")
        except (OSError, subprocess.SubprocessError) as e:
            return SyncResult.fail(SyncErrorKind.PUSH_FAILED, str(e))

        if result.returncode != 0:
            output = self._output(result)
            if credentials is not None:
                output = f"with credentials for {credentials.username}: {output}"
            logger.error(f"Push failed: {output}")
            return SyncResult.fail(SyncErrorKind.PUSH_FAILED, output)

        logger.info(f"Pushed {handle.root} to origin")
        return SyncResult.ok(message="Push successful")

    def save_credentials(
        self,
        username: str,
        token: str,
        remote_url: str,
    ) -> SyncResult[None]:
        """Persist credentials for the remote's host and enable automatic use."""
        return self._credential_store.save(username, token, remote_url)

    def push_with_commit_and_retry(
        self,
        handle: RepoHandle,
        message: str,
        credential_provider: CredentialProvider | None = None,
        persist_on_success: bool = True,
    ) -> SyncResult[None]:
        """Commit, then push with at most one credentialed retry.

        1. commit (failure is returned, never retried)
        2. ambient push
        3. on failure, ask ``credential_provider`` once; None keeps the
           original push failure
        4. credentialed push; its failure is final
        5. optionally persist the credentials. A persistence failure is
           reported as a warning on a successful result.
        """
        committed = self.commit(handle, message)
        if not committed:
            return SyncResult.from_error(committed.error)

        first_push = self.push(handle)
        if first_push:
            return first_push

        if credential_provider is None:
            return first_push

        try:
            provided = credential_provider()
        except Exception as e:
            logger.error(f"Credential provider failed: {e}")
            return SyncResult.fail(
                SyncErrorKind.PUSH_FAILED, f"credential provider failed: {e}"
            )

        if provided is None:
            return first_push

        credentials = Credentials(*provided)
        if not credentials.is_complete():
            return SyncResult.fail(SyncErrorKind.PUSH_FAILED, "empty credentials")

        second_push = self.push(handle, credentials)
        if not second_push:
            return second_push

        if persist_on_success:
            saved = self.save_credentials(
                credentials.username, credentials.token, handle.remote_url
            )
            if not saved:
                logger.warning(f"Push succeeded but {saved.error}")
                return SyncResult.ok(
                    message=f"Push successful, but {saved.error}",
                    warning=saved.error,
                )

        return second_push

    def get_status(self, handle: RepoHandle) -> SyncResult[GitStatus]:
        """Get porcelain status plus ahead/behind counts against upstream."""
        closed = self._closed_handle(handle, SyncErrorKind.IO_FAILED)
        if closed is not None:
            return closed

        try:
            result = self._run_git(handle.root, "status", "--porcelain", timeout=30)
            if result.returncode != 0:
                return SyncResult.fail(SyncErrorKind.IO_FAILED, self._output(result))

            status = GitStatus()
            for line in result.stdout.splitlines():
                if not line:
                    continue
                code = line[:2]
                filepath = line[3:]

                if code == "??":
                    status.untracked.append(filepath)
                elif code[0] == "A":
                    status.added.append(filepath)
                elif code[0] == "D" or code[1] == "D":
                    status.deleted.append(filepath)
                else:
                    status.modified.append(filepath)

            result = self._run_git(
                handle.root,
                "rev-list",
                "--left-right",
                "--count",
                "@{upstream}...HEAD",
                timeout=30,
            )
            if result.returncode == 0:
                parts = result.stdout.strip().split()
                if len(parts) == 2:
                    status.behind, status.ahead = int(parts[0]), int(parts[1])
        except (OSError, subprocess.SubprocessError) as e:
            logger.error(f"Status failed: {e}")
            return SyncResult.fail(SyncErrorKind.IO_FAILED, str(e))

        return SyncResult.ok(status)
