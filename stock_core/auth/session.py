# =============================================================================
# stock_core/auth/session.py
# Session lifecycle: login, restore on startup, logout
# =============================================================================
"""
The signed-in user gates everything else. Nothing is read from or written to
the cloud without one, and the local store only ever holds that user's data.

Login:
    persist user -> hand credential to backend -> pull (full replace or wipe)
    -> rebuild state -> enable background pushes -> open live subscriptions

Logout:
    stop timers/subscriptions -> wipe local data (bounded, best effort)
    -> forget the user -> reset state -> ask the UI to reload
"""

from __future__ import annotations
from typing import Callable, Optional

from stock_core.errors import (
    ErrorContext,
    Notifier,
    SessionError,
    StockManagerError,
    handle_error,
    safe_execute,
)
from stock_core.logging import get_logger
from stock_core.models import User
from stock_core.offline.local_store import LocalStore
from stock_core.offline.state import ORIGIN_LOAD, InventoryState
from stock_core.offline.sync_engine import SyncEngine
from stock_core.services.base_service import BaseService, ServiceResult

logger = get_logger(__name__)


class SessionManager(BaseService):
    """
    Usage:
        sessions = SessionManager(store, engine, state, reload_hook=st.rerun)
        sessions.restore()              # app start
        sessions.login(User(email="a@b.com", name="A"))
        sessions.logout()
    """

    def __init__(
        self,
        store: LocalStore,
        engine: SyncEngine,
        state: InventoryState,
        reload_hook: Optional[Callable[[], None]] = None,
        notify: Optional[Notifier] = None,
    ):
        super().__init__(notify=notify)
        self.store = store
        self.engine = engine
        self.state = state
        self.reload_hook = reload_hook

    # =========================================================================
    # HELPER FUNCTIONS
    # =========================================================================

    @property
    def current_user(self) -> Optional[User]:
        return self.engine.user

    def is_authenticated(self) -> bool:
        return self.engine.user is not None

    def require_user(self) -> User:
        """
        Raises:
            SessionError: nobody is signed in
        """
        user = self.engine.user
        if user is None:
            raise SessionError("Sign in to continue")
        return user

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def restore(self) -> Optional[User]:
        """
        Resume the persisted session, if any, from local data.

        No pull happens here: the local store already holds this user's
        dataset. Live backends re-deliver remote contents once subscribed.
        """
        user = safe_execute(self.store.get_user, error_message="Saved session is unreadable")
        if user is None or not user.identity:
            self.state.reset(is_loading=False)
            return None

        self.engine.begin_session(user)
        self.engine.adapter.authorize(user)
        self.engine.reload_from_store()
        self.engine.mark_loaded(remote_verified=True)
        self.engine.open_subscriptions()
        logger.info(f"Restored session for {user.identity}")
        return user

    def login(self, user: User) -> ServiceResult:
        """Start a session for ``user``. A previous session is ended first."""
        if not user.identity:
            return ServiceResult.fail("Cannot sign in without an email", error_code="AUTH_001")

        self.state.update(ORIGIN_LOAD, is_loading=True)
        try:
            self.engine.begin_session(user)
            self.store.save_user(user)
            self.engine.adapter.authorize(user)

            result = self.engine.pull_on_login(user)
            view = self.engine.reload_from_store()
            self.engine.mark_loaded()
            self.engine.open_subscriptions()
        except StockManagerError as e:
            handle_error(e, notify=self.notify, user_message="Sign-in failed")
            self.engine.end_session()
            self.state.reset(is_loading=False)
            return ServiceResult.from_exception(e)

        if not result.ok:
            self._notify(
                "warning",
                "Could not reach the cloud. Changes stay on this device until a manual sync succeeds.",
            )

        logger.info(
            f"Signed in {user.identity}: remote snapshot "
            f"{'loaded' if result.found else 'absent' if result.ok else 'unavailable'}"
        )
        return ServiceResult.ok(
            data=view,
            metadata={"remote_found": result.found, "remote_ok": result.ok},
        )

    def logout(self) -> ServiceResult:
        """End the session. Always completes; storage problems are logged."""
        user = self.engine.user
        self.engine.end_session()

        if not self.store.clear_all_local_data():
            logger.warning("Local wipe did not confirm completion; continuing logout")

        with ErrorContext("Clearing the saved session"):
            self.store.clear_user()
            self.store.purge_namespace()

        self.engine.adapter.revoke()
        self.state.reset(is_loading=False)

        if user is not None:
            logger.info(f"Signed out {user.identity}")

        if self.reload_hook is not None:
            try:
                self.reload_hook()
            except Exception as e:
                logger.error(f"Error in reload hook: {e}")
        return ServiceResult.ok()
