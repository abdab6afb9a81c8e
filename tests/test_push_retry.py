"""Tests for the commit/push/credential-retry sequence."""
import pytest

from filame.git import Credentials, CredentialStore, GitRepoManager, RepoHandle, SyncErrorKind, SyncResult

REMOTE = "https://github.com/me/dots.git"


class FakeGit:
    """Records calls and replays canned results for commit/push/save."""

    def __init__(self, commit=None, pushes=(), saved=None):
        self.commit_result = (
            commit if commit is not None else SyncResult.ok("abc123", message="Commit successful")
        )
        self.push_results = list(pushes)
        self.saved_result = (
            saved if saved is not None else SyncResult.ok(message="Credentials saved")
        )
        self.pushes = []
        self.saves = []

    def commit(self, handle, message):
        return self.commit_result

    def push(self, handle, credentials=None):
        self.pushes.append(credentials)
        return self.push_results.pop(0)

    def save_credentials(self, username, token, remote_url):
        self.saves.append((username, token, remote_url))
        return self.saved_result


@pytest.fixture
def handle(tmp_path):
    return RepoHandle(tmp_path, REMOTE)


def make_manager(tmp_path, monkeypatch, fake):
    manager = GitRepoManager(tmp_path, credential_store=CredentialStore(tmp_path / "creds"))
    monkeypatch.setattr(manager, "commit", fake.commit)
    monkeypatch.setattr(manager, "push", fake.push)
    monkeypatch.setattr(manager, "save_credentials", fake.save_credentials)
    return manager


def push_failed(message="auth required"):
    return SyncResult.fail(SyncErrorKind.PUSH_FAILED, message)


class TestPushWithCommitAndRetry:
    """Tests for GitRepoManager.push_with_commit_and_retry."""

    def test_commit_failure_stops(self, tmp_path, monkeypatch, handle):
        fake = FakeGit(commit=SyncResult.fail(SyncErrorKind.COMMIT_FAILED, "hook rejected"))
        manager = make_manager(tmp_path, monkeypatch, fake)

        result = manager.push_with_commit_and_retry(handle, "msg", lambda: ("me", "tok"))

        assert result.kind == SyncErrorKind.COMMIT_FAILED
        assert fake.pushes == []

    def test_first_push_succeeds(self, tmp_path, monkeypatch, handle):
        fake = FakeGit(pushes=[SyncResult.ok(message="Push successful")])
        manager = make_manager(tmp_path, monkeypatch, fake)
        provider_calls = []

        result = manager.push_with_commit_and_retry(
            handle, "msg", lambda: provider_calls.append(1)
        )

        assert result.success
        assert provider_calls == []
        assert fake.pushes == [None]

    def test_empty_commit_still_pushes(self, tmp_path, monkeypatch, handle):
        fake = FakeGit(
            commit=SyncResult.ok(None, message="Nothing to commit"),
            pushes=[SyncResult.ok(message="Push successful")],
        )
        manager = make_manager(tmp_path, monkeypatch, fake)

        assert manager.push_with_commit_and_retry(handle, "msg").success
        assert fake.pushes == [None]

    def test_no_provider_returns_first_failure(self, tmp_path, monkeypatch, handle):
        first = push_failed()
        fake = FakeGit(pushes=[first])
        manager = make_manager(tmp_path, monkeypatch, fake)

        result = manager.push_with_commit_and_retry(handle, "msg")

        assert result is first

    def test_provider_declines(self, tmp_path, monkeypatch, handle):
        first = push_failed()
        fake = FakeGit(pushes=[first])
        manager = make_manager(tmp_path, monkeypatch, fake)

        result = manager.push_with_commit_and_retry(handle, "msg", lambda: None)

        assert result is first
        assert fake.pushes == [None]

    def test_provider_raises(self, tmp_path, monkeypatch, handle):
        fake = FakeGit(pushes=[push_failed()])
        manager = make_manager(tmp_path, monkeypatch, fake)

        def provider():
            raise EOFError("stdin closed")

        result = manager.push_with_commit_and_retry(handle, "msg", provider)

        assert result.kind == SyncErrorKind.PUSH_FAILED
        assert "stdin closed" in result.message

    def test_empty_credentials(self, tmp_path, monkeypatch, handle):
        fake = FakeGit(pushes=[push_failed()])
        manager = make_manager(tmp_path, monkeypatch, fake)

        result = manager.push_with_commit_and_retry(handle, "msg", lambda: ("me", ""))

        assert result.kind == SyncErrorKind.PUSH_FAILED
        assert "empty credentials" in result.message
        assert len(fake.pushes) == 1

    def test_provider_called_once_and_second_failure_final(
        self, tmp_path, monkeypatch, handle
    ):
        second = push_failed("with credentials for me: denied")
        fake = FakeGit(pushes=[push_failed(), second])
        manager = make_manager(tmp_path, monkeypatch, fake)
        calls = []

        def provider():
            calls.append(1)
            return Credentials("me", "bad")

        result = manager.push_with_commit_and_retry(handle, "msg", provider)

        assert result is second
        assert calls == [1]
        assert fake.pushes == [None, Credentials("me", "bad")]
        assert fake.saves == []

    def test_retry_succeeds_and_persists(self, tmp_path, monkeypatch, handle):
        second = SyncResult.ok(message="Push successful")
        fake = FakeGit(pushes=[push_failed(), second])
        manager = make_manager(tmp_path, monkeypatch, fake)

        result = manager.push_with_commit_and_retry(handle, "msg", lambda: ("me", "tok"))

        assert result is second
        assert result.warning is None
        assert fake.pushes[1] == Credentials("me", "tok")
        assert fake.saves == [("me", "tok", REMOTE)]

    def test_retry_succeeds_without_persisting(self, tmp_path, monkeypatch, handle):
        fake = FakeGit(pushes=[push_failed(), SyncResult.ok()])
        manager = make_manager(tmp_path, monkeypatch, fake)

        result = manager.push_with_commit_and_retry(
            handle, "msg", lambda: ("me", "tok"), persist_on_success=False
        )

        assert result.success
        assert fake.saves == []

    def test_persist_failure_is_a_warning(self, tmp_path, monkeypatch, handle):
        fake = FakeGit(
            pushes=[push_failed(), SyncResult.ok()],
            saved=SyncResult.fail(SyncErrorKind.CREDENTIAL_PERSIST_FAILED, "read-only"),
        )
        manager = make_manager(tmp_path, monkeypatch, fake)

        result = manager.push_with_commit_and_retry(handle, "msg", lambda: ("me", "tok"))

        assert result.success
        assert result.error is None
        assert result.warning.kind == SyncErrorKind.CREDENTIAL_PERSIST_FAILED
        assert "read-only" in result.message
