"""Shared fixtures: an isolated git environment and a local bare remote."""
import shutil
import subprocess
from pathlib import Path

import pytest

from filame.git import CredentialStore, GitRepoManager, SyncManager


def run_git(*args: str, cwd: Path | None = None) -> str:
    """Run git and return stdout, failing the test on error."""
    cmd = ["git"]
    if cwd is not None:
        cmd += ["-C", str(cwd)]
    result = subprocess.run(cmd + list(args), capture_output=True, text=True)
    assert result.returncode == 0, result.stderr
    return result.stdout.strip()


@pytest.fixture
def git():
    """Callable running git commands for test setup and assertions."""
    if shutil.which("git") is None:
        pytest.skip("git is not installed")
    return run_git


@pytest.fixture
def home(tmp_path, monkeypatch):
    """Isolated HOME and global git config."""
    home_dir = tmp_path / "home"
    home_dir.mkdir()
    global_config = tmp_path / "gitconfig"
    global_config.touch()

    monkeypatch.setenv("HOME", str(home_dir))
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(global_config))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Test User")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "test@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Test User")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "test@example.com")
    for var in ("FILAME_HOME", "FILAME_REPO_DIR", "FILAME_CONFIG_FILE", "FILAME_CREDENTIALS_FILE"):
        monkeypatch.delenv(var, raising=False)
    return home_dir


@pytest.fixture
def remote(tmp_path, home, git):
    """Bare repository with one commit containing README.md."""
    bare = tmp_path / "remote.git"
    git("init", "--bare", str(bare))

    seed = tmp_path / "seed"
    git("clone", str(bare), str(seed))
    (seed / "README.md").write_text("dotfiles\n")
    git("add", "-A", cwd=seed)
    git("commit", "-m", "Initial commit", cwd=seed)
    git("push", "origin", "HEAD", cwd=seed)
    return bare


@pytest.fixture
def credential_store(home):
    return CredentialStore(home / ".git-credentials")


@pytest.fixture
def manager(tmp_path, credential_store):
    """GitRepoManager whose working copy lives under tmp_path/repo."""
    return GitRepoManager(tmp_path / "repo", credential_store=credential_store)


@pytest.fixture
def sync(manager, home):
    return SyncManager(manager, home=home)
