# =============================================================================
# tests/unit/test_session.py
# Unit Tests for SessionManager failure paths
# =============================================================================

import pytest

from stock_core.auth import SessionManager
from stock_core.errors import LocalStoreError, SessionError
from stock_core.offline import SyncEngine


@pytest.fixture
def sessions(local_store, memory_cloud, inventory_state, notifier):
    engine = SyncEngine(local_store, memory_cloud, inventory_state, debounce_seconds=10, notify=notifier)
    manager = SessionManager(local_store, engine, inventory_state, notify=notifier)
    yield manager
    engine.end_session()


class TestSessionManager:

    def test_require_user_without_session(self, sessions):
        assert not sessions.is_authenticated()
        with pytest.raises(SessionError, match="Sign in"):
            sessions.require_user()

    def test_login_persists_user(self, sessions, local_store, sample_user):
        assert sessions.login(sample_user).success

        assert sessions.require_user() == sample_user
        assert local_store.get_user() == sample_user

    def test_login_storage_failure_leaves_no_session(self, sessions, local_store, sample_user, notifier, monkeypatch):
        def broken(user):
            raise LocalStoreError("disk full")

        monkeypatch.setattr(local_store, "save_user", broken)

        result = sessions.login(sample_user)

        assert result.error_code == "STORE_001"
        assert sessions.current_user is None
        assert not sessions.state.current.is_loading
        assert notifier.notices == [("error", "Sign-in failed")]

    def test_logout_completes_when_wipe_fails(self, sessions, local_store, sample_user, monkeypatch):
        sessions.login(sample_user)
        monkeypatch.setattr(local_store, "clear_all_local_data", lambda: False)

        assert sessions.logout().success
        assert sessions.current_user is None
        assert local_store.get_user() is None

    def test_logout_completes_when_user_slot_fails(self, sessions, local_store, sample_user, monkeypatch):
        sessions.login(sample_user)

        def broken():
            raise LocalStoreError("locked")

        monkeypatch.setattr(local_store, "clear_user", broken)
        reloads = []
        sessions.reload_hook = lambda: reloads.append(True)

        assert sessions.logout().success
        assert reloads == [True]

    def test_restore_with_unreadable_user(self, sessions, local_store, monkeypatch):
        def broken():
            raise LocalStoreError("corrupt row")

        monkeypatch.setattr(local_store, "get_user", broken)

        assert sessions.restore() is None
        assert not sessions.state.current.is_loading

    def test_logout_revokes_backend_credential(self, local_store, inventory_state, sample_user):
        from stock_core.cloud import DriveBlobAdapter

        adapter = DriveBlobAdapter()
        engine = SyncEngine(local_store, adapter, inventory_state, debounce_seconds=10)
        manager = SessionManager(local_store, engine, inventory_state)

        engine.begin_session(sample_user)
        adapter.authorize(sample_user)
        manager.logout()

        assert adapter._token is None
