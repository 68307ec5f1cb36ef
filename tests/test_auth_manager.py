"""Tests for rtmctl.auth.manager.AuthFacade."""

from unittest.mock import patch

import pytest

from rtmctl.auth.errors import AuthenticationError, StorageError, ValidationError
from rtmctl.auth.manager import AuthFacade, LogoutOutcome
from rtmctl.auth.session import Session, now_ms


class TestQueries:
    def test_has_stored_credentials(self, facade, store, cred_path):
        assert facade.has_stored_credentials(cred_path) is False
        store.save(store.create("alice", "s3cret"), cred_path)
        assert facade.has_stored_credentials(cred_path) is True

    def test_is_logged_in(self, facade, active_session):
        assert facade.is_logged_in() is False
        facade.record_successful_login(active_session)
        assert facade.is_logged_in() is True
        assert facade.current_session() is active_session

    def test_session_and_credentials_are_independent(self, facade, store, cred_path, active_session):
        store.save(store.create("alice", "s3cret"), cred_path)
        assert facade.has_stored_credentials(cred_path)
        assert not facade.is_logged_in()

        facade.logout(cred_path, clear_stored_credentials=True)
        facade.record_successful_login(active_session)
        assert facade.is_logged_in()
        assert not facade.has_stored_credentials(cred_path)

    def test_facades_do_not_share_sessions(self):
        a, b = AuthFacade(), AuthFacade()
        a.record_successful_login(
            Session(token="t", expires_at_ms=now_ms() + 60_000)
        )
        assert a.is_logged_in()
        assert not b.is_logged_in()


class TestVerifyStoredCredentials:
    def test_match(self, facade, store, cred_path):
        store.save(store.create("alice", "s3cret"), cred_path)
        assert facade.verify_stored_credentials(cred_path, "alice", "s3cret") is True

    def test_wrong_password(self, facade, store, cred_path):
        store.save(store.create("alice", "s3cret"), cred_path)
        assert facade.verify_stored_credentials(cred_path, "alice", "nope") is False

    def test_other_user(self, facade, store, cred_path):
        store.save(store.create("alice", "s3cret"), cred_path)
        assert facade.verify_stored_credentials(cred_path, "bob", "s3cret") is False

    def test_missing_file(self, facade, cred_path):
        assert facade.verify_stored_credentials(cred_path, "alice", "s3cret") is False

    def test_malformed_file(self, facade, tmp_path):
        path = tmp_path / "auth.json"
        path.write_text("{ not json }")
        assert facade.verify_stored_credentials(path, "alice", "s3cret") is False


class TestPersistCredentials:
    def test_saves_when_requested(self, facade, store, cred_path):
        credential = facade.persist_credentials_if_requested(
            "alice", "s3cret", cred_path, should_save=True
        )
        assert credential is not None
        loaded = store.load(cred_path)
        assert loaded.username == "alice"
        assert store.validate(loaded, "s3cret")

    def test_noop_when_not_requested(self, facade, cred_path):
        assert facade.persist_credentials_if_requested(
            "alice", "s3cret", cred_path, should_save=False
        ) is None
        assert not cred_path.exists()

    def test_save_failure_propagates(self, facade, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("x")
        with pytest.raises(StorageError):
            facade.persist_credentials_if_requested(
                "alice", "s3cret", blocker / "auth.json", should_save=True
            )

    def test_empty_username_propagates(self, facade, cred_path):
        with pytest.raises(ValidationError):
            facade.persist_credentials_if_requested("", "s3cret", cred_path, True)


class TestLogout:
    def test_logout_twice(self, facade, cred_path, active_session):
        facade.record_successful_login(active_session)

        first = facade.logout(cred_path, clear_stored_credentials=False, force=False)
        assert first == LogoutOutcome(was_logged_in=True)
        assert facade.current_session() is None

        second = facade.logout(cred_path, clear_stored_credentials=False, force=False)
        assert second.was_logged_in is False

    def test_expired_session_counts_as_logged_out(self, facade, clock, active_session):
        facade.record_successful_login(active_session)
        clock.now = active_session.expires_at_ms
        assert facade.logout("unused").was_logged_in is False
        assert facade.current_session() is None

    def test_keeps_credentials_by_default(self, facade, store, cred_path):
        store.save(store.create("alice", "s3cret"), cred_path)
        facade.logout(cred_path)
        assert cred_path.exists()

    def test_clear_stored_credentials(self, facade, store, cred_path, active_session):
        store.save(store.create("alice", "s3cret"), cred_path)
        facade.record_successful_login(active_session)
        outcome = facade.logout(cred_path, clear_stored_credentials=True)
        assert outcome == LogoutOutcome(was_logged_in=True, cleared_credentials=True)
        assert not cred_path.exists()
        assert not facade.is_logged_in()

    def test_clear_missing_credentials_succeeds(self, facade, cred_path):
        outcome = facade.logout(cred_path, clear_stored_credentials=True)
        assert outcome.cleared_credentials is True

    def test_delete_failure_propagates_without_force(self, facade, cred_path, active_session):
        facade.record_successful_login(active_session)
        with patch.object(
            facade._store, "clear", side_effect=StorageError("permission denied")
        ):
            with pytest.raises(StorageError):
                facade.logout(cred_path, clear_stored_credentials=True, force=False)
        # session is cleared before the delete is attempted
        assert facade.current_session() is None

    def test_delete_failure_suppressed_with_force(self, facade, cred_path, active_session):
        facade.record_successful_login(active_session)
        with patch.object(
            facade._store, "clear", side_effect=StorageError("permission denied")
        ):
            outcome = facade.logout(cred_path, clear_stored_credentials=True, force=True)
        assert outcome == LogoutOutcome(was_logged_in=True, cleared_credentials=False)


class TestStatus:
    def test_logged_out_without_credentials(self, facade, cred_path):
        report = facade.status(cred_path)
        assert report.logged_in is False
        assert report.has_stored_credentials is False
        assert report.username is None
        assert report.session is None

    def test_logged_in_with_credentials(self, facade, store, cred_path, active_session):
        credential = store.create("alice", "s3cret")
        store.save(credential, cred_path)
        facade.record_successful_login(active_session)

        report = facade.status(cred_path)
        assert report.logged_in is True
        assert report.username == "alice"
        assert report.credentials_created_at == credential.created_at
        assert report.session.token == "tok_ab***"
        assert active_session.token not in repr(report)
        assert report.session.expires_at.startswith("2023-11-14T")
        assert report.session.login_time is not None

    def test_expired_session_hidden(self, facade, clock, cred_path, active_session):
        facade.record_successful_login(active_session)
        clock.now = active_session.expires_at_ms + 1
        report = facade.status(cred_path)
        assert report.logged_in is False
        assert report.session is None

    def test_unreadable_credentials(self, facade, cred_path):
        cred_path.parent.mkdir(parents=True)
        cred_path.write_text("{ not json }")
        report = facade.status(cred_path)
        assert report.has_stored_credentials is True
        assert report.username is None


class TestLogin:
    async def test_login_records_session(self, facade, provider, cred_path, active_session):
        session = await facade.login(provider, "alice", "s3cret", cred_path)
        assert session is active_session
        assert facade.is_logged_in()
        assert provider.calls == [("alice", "s3cret")]
        assert not cred_path.exists()

    async def test_login_saves_credentials(self, facade, store, provider, cred_path):
        await facade.login(provider, "alice", "s3cret", cred_path, save=True)
        assert store.validate(store.load(cred_path), "s3cret")

    async def test_login_requires_credentials(self, facade, provider, cred_path):
        with pytest.raises(ValidationError):
            await facade.login(provider, "", "s3cret", cred_path)
        with pytest.raises(ValidationError):
            await facade.login(provider, "alice", "", cred_path)
        assert provider.calls == []

    async def test_failed_login_records_nothing(self, facade, failing_provider, cred_path):
        with pytest.raises(AuthenticationError):
            await facade.login(failing_provider, "alice", "s3cret", cred_path, save=True)
        assert not facade.is_logged_in()
        assert not cred_path.exists()

    async def test_auto_login_reuses_active_session(self, facade, provider, cred_path, active_session):
        facade.record_successful_login(active_session)
        session = await facade.auto_login(provider, "alice", "s3cret", cred_path)
        assert session is active_session
        assert provider.calls == []

    async def test_auto_login_after_expiry(self, facade, provider, clock, cred_path, active_session):
        stale = Session(token="old", expires_at_ms=clock.now - 1)
        facade.record_successful_login(stale)
        session = await facade.auto_login(provider, "alice", "s3cret", cred_path)
        assert session is active_session
        assert provider.calls == [("alice", "s3cret")]
