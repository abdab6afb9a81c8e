"""Persist git credentials in git's credential-store file."""

from __future__ import annotations

import logging
import os
import re
import subprocess
from pathlib import Path
from typing import NamedTuple
from urllib.parse import quote, urlsplit

from .errors import SyncErrorKind, SyncResult

logger = logging.getLogger(__name__)

DEFAULT_HOST = "github.com"

# scp-like syntax: [user@]host:path
_SCP_LIKE = re.compile(r"^(?:[^@/]+@)?(?P<host>[^:/]+):(?!//)")


class Credentials(NamedTuple):
    """Username/token pair used for a single push attempt."""

    username: str
    token: str

    def is_complete(self) -> bool:
        return bool(self.username) and bool(self.token)

    def __repr__(self) -> str:
        return f"Credentials(username={self.username!r}, token='***')"


def host_for_remote(remote_url: str) -> str:
    """Extract the host part of a remote URL.

    Handles ``https://host/...``, ``ssh://user@host/...`` and ``user@host:path``.
    Falls back to github.com when no host can be found (e.g. local paths).
    """
    if "://" in remote_url:
        host = urlsplit(remote_url).hostname
        if host:
            return host
    else:
        match = _SCP_LIKE.match(remote_url)
        if match:
            return match.group("host")
    return DEFAULT_HOST


class CredentialStore:
    """git ``credential-store`` compatible file plus the global helper toggle."""

    def __init__(self, path: Path, default_location: bool = True, git: str = "git"):
        """Initialize credential store.

        Args:
            path: Credential file (usually ~/.git-credentials)
            default_location: Whether git finds ``path`` without ``--file``
            git: git executable
        """
        self.path = path
        self._default_location = default_location
        self._git = git

    @staticmethod
    def format_entry(username: str, token: str, host: str) -> str:
        """Format one store line: ``https://<user>:<token>@<host>``."""
        return f"https://{quote(username, safe='')}:{quote(token, safe='')}@{host}\n"

    def append(self, username: str, token: str, host: str) -> None:
        """Append an entry to the store file (created with mode 0600)."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self.path, os.O_WRONLY | os.O_APPEND | os.O_CREAT, 0o600)
        with os.fdopen(fd, "a", encoding="utf-8") as f:
            f.write(self.format_entry(username, token, host))
        logger.info(f"Stored credentials for {username}@{host} in {self.path}")

    def helper_value(self) -> str:
        """Value for ``credential.helper``."""
        if self._default_location:
            return "store"
        return f"store --file={self.path}"

    def enable_helper(self) -> tuple[bool, str]:
        """Set the global ``credential.helper`` so stored entries are used.

        Returns:
            (success, message) tuple
        """
        try:
            result = subprocess.run(
                [self._git, "config", "--global", "credential.helper", self.helper_value()],
                capture_output=True,
                text=True,
                timeout=30,
            )
        except (OSError, subprocess.SubprocessError) as e:
            return False, str(e)

        if result.returncode != 0:
            output = (result.stderr or result.stdout).strip()
            logger.error(f"Enabling credential helper failed: {output}")
            return False, output or f"git config exited with {result.returncode}"
        return True, "Credential helper enabled"

    def save(self, username: str, token: str, remote_url: str) -> SyncResult[None]:
        """Append credentials for the remote's host, then enable the helper.

        Either step failing is reported as CREDENTIAL_PERSIST_FAILED.
        """
        host = host_for_remote(remote_url)
        try:
            self.append(username, token, host)
        except OSError as e:
            return SyncResult.fail(
                SyncErrorKind.CREDENTIAL_PERSIST_FAILED,
                f"could not write {self.path}: {e}",
            )

        success, message = self.enable_helper()
        if not success:
            # The entry was written, but git will not read it automatically.
            return SyncResult.fail(
                SyncErrorKind.CREDENTIAL_PERSIST_FAILED,
                f"could not enable credential helper: {message}",
            )
        return SyncResult.ok(message="Credentials saved")
