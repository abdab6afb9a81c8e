"""Tests for how one-shot credentials reach git during a push."""
import os
import subprocess
import sys

import pytest

from filame.git import Credentials, CredentialStore, GitRepoManager, RepoHandle, SyncErrorKind
from filame.git.repo_manager import _ENV_CREDENTIAL_HELPER

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="uses a shell script as git")

# Records its argv and environment, then exits with FILAME_TEST_EXIT.
STUB_GIT = """#!/bin/sh
printf '%s\\n' "$@" > "$FILAME_TEST_LOG/args"
env > "$FILAME_TEST_LOG/env"
if [ "${FILAME_TEST_EXIT:-0}" != 0 ]; then
    echo "remote: authentication denied" >&2
fi
exit "${FILAME_TEST_EXIT:-0}"
"""

TOKEN = "s3cret-token"


@pytest.fixture
def log_dir(tmp_path, monkeypatch):
    log = tmp_path / "log"
    log.mkdir()
    monkeypatch.setenv("FILAME_TEST_LOG", str(log))
    monkeypatch.delenv("FILAME_GIT_USERNAME", raising=False)
    monkeypatch.delenv("FILAME_GIT_TOKEN", raising=False)
    return log


@pytest.fixture
def stub_manager(tmp_path, log_dir):
    stub = tmp_path / "fake-git"
    stub.write_text(STUB_GIT)
    stub.chmod(0o755)
    return GitRepoManager(
        tmp_path / "repo",
        credential_store=CredentialStore(tmp_path / "creds"),
        git=str(stub),
    )


@pytest.fixture
def handle(tmp_path):
    return RepoHandle(tmp_path / "repo", "https://github.com/me/dots.git")


def recorded(log_dir):
    args = (log_dir / "args").read_text().splitlines()
    env = (log_dir / "env").read_text().splitlines()
    return args, env


class TestPushWithCredentials:
    """Tests for GitRepoManager.push with and without credentials."""

    def test_credentials_go_through_environment(self, stub_manager, handle, log_dir):
        result = stub_manager.push(handle, Credentials("me", TOKEN))

        assert result.success
        args, env = recorded(log_dir)
        assert args[:2] == ["-C", str(handle.root)]
        assert args[2:6] == [
            "-c",
            "credential.helper=",
            "-c",
            f"credential.helper={_ENV_CREDENTIAL_HELPER}",
        ]
        assert args[6:] == ["push", "-u", "origin", "HEAD"]
        assert all(TOKEN not in arg for arg in args)
        assert "FILAME_GIT_USERNAME=me" in env
        assert f"FILAME_GIT_TOKEN={TOKEN}" in env
        assert "GIT_TERMINAL_PROMPT=0" in env

    def test_ambient_push_has_no_helper(self, stub_manager, handle, log_dir):
        assert stub_manager.push(handle).success

        args, env = recorded(log_dir)
        assert args == ["-C", str(handle.root), "push", "-u", "origin", "HEAD"]
        assert not any(line.startswith("FILAME_GIT_") for line in env)

    def test_failure_names_user_not_token(self, stub_manager, handle, log_dir, monkeypatch):
        monkeypatch.setenv("FILAME_TEST_EXIT", "128")

        result = stub_manager.push(handle, Credentials("me", TOKEN))

        assert result.kind == SyncErrorKind.PUSH_FAILED
        assert "with credentials for me" in result.message
        assert "authentication denied" in result.message
        assert TOKEN not in result.message


class TestEnvCredentialHelper:
    """The inline helper answers git's credential requests from the environment."""

    def run_credential(self, action, extra_env):
        env = os.environ.copy()
        env.update(extra_env)
        env["GIT_TERMINAL_PROMPT"] = "0"
        return subprocess.run(
            [
                "git",
                "-c",
                "credential.helper=",
                "-c",
                f"credential.helper={_ENV_CREDENTIAL_HELPER}",
                "credential",
                action,
            ],
            input="protocol=https\nhost=example.com\n\n",
            capture_output=True,
            text=True,
            env=env,
            timeout=30,
        )

    def test_fill(self, home, git):
        result = self.run_credential(
            "fill", {"FILAME_GIT_USERNAME": "me", "FILAME_GIT_TOKEN": TOKEN}
        )

        assert result.returncode == 0, result.stderr
        lines = result.stdout.splitlines()
        assert "username=me" in lines
        assert f"password={TOKEN}" in lines

    def test_store_is_ignored(self, home, git):
        result = self.run_credential(
            "approve", {"FILAME_GIT_USERNAME": "me", "FILAME_GIT_TOKEN": TOKEN}
        )

        assert result.returncode == 0, result.stderr
        assert not (home / ".git-credentials").exists()
