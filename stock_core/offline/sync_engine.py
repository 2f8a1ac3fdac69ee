# =============================================================================
# stock_core/offline/sync_engine.py
# Synchronization between the local store and the cloud backend
# =============================================================================
"""
SyncEngine - decides when and how local and remote state meet.

Policies:
- Login: pull; a remote snapshot fully replaces local data, no snapshot wipes it
- Debounced push: local edits restart a quiet-period timer, expiry pushes
  the full snapshot (trailing edge)
- Manual push: immediate, reported to the user, guarded by a busy flag
- Live subscriptions: one per collection on backends that support them; each
  delivery replaces that collection locally
- Exclusive operations (import) share the busy flag with pushes

Conflicts are last-writer-replaces-all. There is no field-level merge.
"""

from __future__ import annotations
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from functools import partial
from itertools import count
from typing import Any, Dict, Iterator, List, Optional
import logging

from stock_core.cloud import CloudAdapter, PullResult, Subscription
from stock_core.errors import Notifier, handle_error
from stock_core.logging import LogContext
from stock_core.models import COLLECTIONS, User
from stock_core.services.base_service import ServiceResult

from .debounce import Debouncer
from .local_store import LocalStore
from .state import ORIGIN_EDIT, ORIGIN_LOAD, ORIGIN_REMOTE, InventoryState, ViewState

logger = logging.getLogger(__name__)

_session_ids = count(1)


@dataclass
class SyncState:
    """Current sync state."""
    is_syncing: bool = False
    last_sync: Optional[datetime] = None
    last_sync_success: Optional[datetime] = None
    failed_count: int = 0
    total_pushes: int = 0
    remote_verified: bool = False   # False after a failed login pull: background pushes held back


@dataclass(eq=False)
class Session:
    """
    One signed-in period of one user.

    Callbacks capture the Session they were created for; once the engine
    moves to another session (or none) they compare unequal and are ignored.
    """
    user: User
    session_id: int = field(default_factory=lambda: next(_session_ids))
    loaded: bool = False
    started_at: datetime = field(default_factory=datetime.now)

    @property
    def identity(self) -> str:
        return self.user.identity


class SyncEngine:
    """
    Coordinates the local store, the in-memory state and one cloud backend
    for the active session.

    Usage:
        engine = SyncEngine(store, adapter, state)
        engine.begin_session(user)
        engine.pull_on_login(user)
        engine.reload_from_store()
        engine.mark_loaded()
        engine.open_subscriptions()
    """

    DEFAULT_DEBOUNCE_SECONDS = 10.0

    def __init__(
        self,
        store: LocalStore,
        adapter: CloudAdapter,
        state: InventoryState,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        notify: Optional[Notifier] = None,
        write_lock: Optional[threading.RLock] = None,
    ):
        """
        Args:
            write_lock: Lock held by the owner while it mutates store and
                state; remote deliveries take it too
        """
        self.store = store
        self.adapter = adapter
        self.state = state
        self.notify = notify
        self._write_lock = write_lock or threading.RLock()
        self._state = SyncState()
        self._session: Optional[Session] = None
        self._subscriptions: List[Subscription] = []
        self._busy = threading.Lock()
        self._session_lock = threading.RLock()
        self._debouncer = Debouncer(debounce_seconds, self._debounced_push, name="SyncDebounce")

        self.state.register_listener(self._on_state_change)

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def sync_state(self) -> SyncState:
        return self._state

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def user(self) -> Optional[User]:
        return self._session.user if self._session else None

    @property
    def is_syncing(self) -> bool:
        return self._busy.locked()

    @property
    def push_pending(self) -> bool:
        return self._debouncer.pending

    @property
    def subscription_count(self) -> int:
        return len(self._subscriptions)

    # =========================================================================
    # SESSION BOUNDARIES
    # =========================================================================

    def begin_session(self, user: User) -> Session:
        """Bind the engine to ``user``; any previous session is ended first."""
        self.end_session()
        with self._session_lock:
            self._session = Session(user=user)
            self._state.remote_verified = False
        logger.info(f"Sync session {self._session.session_id} started for {user.identity}")
        return self._session

    def mark_loaded(self, remote_verified: Optional[bool] = None) -> None:
        """Initial load finished: edits from now on schedule pushes."""
        if self._session is not None:
            self._session.loaded = True
        if remote_verified is not None:
            self._state.remote_verified = remote_verified

    def end_session(self) -> None:
        """Stop timers and subscriptions. Safe to call repeatedly."""
        with self._session_lock:
            self._debouncer.cancel()
            session, self._session = self._session, None
            subscriptions, self._subscriptions = self._subscriptions, []

        # Outside the lock: a polling worker may be waiting on it to deliver
        for subscription in subscriptions:
            subscription.cancel()
        if session is not None:
            logger.info(f"Sync session {session.session_id} ended")

    # =========================================================================
    # INBOUND
    # =========================================================================

    def pull_on_login(self, user: User) -> PullResult:
        """
        Remote wins if present, else local is wiped. Never a merge.

        A backend failure is treated like "no snapshot" for local data (the
        new identity must not inherit leftovers) but leaves
        ``remote_verified`` False so background pushes cannot overwrite the
        unread remote copy with an empty dataset.
        """
        with LogContext(logger, f"Pulling snapshot for {user.identity}"):
            result = self.adapter.pull_result(user.identity)

            if result.found:
                self.store.overwrite_local_data(result.snapshot)
            else:
                if not result.ok:
                    logger.warning("Cloud pull failed at login; starting from an empty dataset")
                self.store.clear_all_local_data()

        self._state.remote_verified = result.ok
        return result

    def reload_from_store(self, origin: str = ORIGIN_LOAD) -> ViewState:
        """Rebuild the in-memory state from the local store."""
        snapshot = self.store.snapshot()
        return self.state.load_snapshot(snapshot, self.user, origin=origin)

    def open_subscriptions(self) -> int:
        """
        Subscribe to every collection on live backends.

        Returns:
            Number of subscriptions opened
        """
        self.close_subscriptions()
        with self._session_lock:
            session = self._session
            if session is None or not self.adapter.supports_live_updates:
                return 0

            for collection in COLLECTIONS:
                subscription = self.adapter.subscribe(
                    session.identity,
                    collection,
                    partial(self._on_remote_collection, session, collection),
                )
                self._subscriptions.append(subscription)

        logger.info(f"Opened {len(self._subscriptions)} live subscriptions")
        return len(self._subscriptions)

    def close_subscriptions(self) -> None:
        with self._session_lock:
            subscriptions, self._subscriptions = self._subscriptions, []
        for subscription in subscriptions:
            subscription.cancel()

    def _acquire_write_lock(self, session: Session) -> bool:
        """Wait for the mutation lock, giving up once ``session`` has ended."""
        while not self._write_lock.acquire(timeout=0.05):
            if session is not self._session:
                return False
        return True

    def _on_remote_collection(self, session: Session, collection: str, items: List[Any]) -> None:
        """A live delivery: full replace of one collection, store first."""
        if not self._acquire_write_lock(session):
            logger.debug(f"Dropping {collection} delivery from a closed session")
            return
        try:
            self._apply_remote_collection(session, collection, items)
        finally:
            self._write_lock.release()

    def _apply_remote_collection(self, session: Session, collection: str, items: List[Any]) -> None:
        with self._session_lock:
            if session is not self._session:
                logger.debug(f"Dropping {collection} delivery from a closed session")
                return

            changes: Dict[str, Any] = {collection: items}
            try:
                with self.store.transaction():
                    self.store.replace_collection(collection, items)
                    if collection == "sales" and self.adapter.derives_earnings:
                        earnings = float(sum(sale.total for sale in items))
                        self.store.save_earnings(earnings)
                        changes["earnings"] = earnings
            except Exception as e:
                handle_error(e, user_message=f"Could not apply remote {collection}")
                return

            self.state.update(ORIGIN_REMOTE, **changes)
        logger.debug(f"Applied remote {collection}: {len(items)} records")

    # =========================================================================
    # OUTBOUND
    # =========================================================================

    def _on_state_change(self, state: ViewState, origin: str) -> None:
        if origin != ORIGIN_EDIT:
            return
        session = self._session
        if session is None or not session.loaded:
            return
        if not self._state.remote_verified:
            logger.debug("Background push held back until the remote copy is verified")
            return
        self._debouncer.trigger()

    def _push_current(self) -> bool:
        session = self._session
        if session is None:
            return False

        snapshot = self.state.current.to_snapshot()
        self._state.is_syncing = True
        self._state.last_sync = datetime.now()
        try:
            ok = self.adapter.push(session.identity, snapshot)
        finally:
            self._state.is_syncing = False

        self._state.total_pushes += 1
        if ok:
            self._state.last_sync_success = datetime.now()
            self._state.remote_verified = True
        else:
            self._state.failed_count += 1
        return ok

    def _debounced_push(self) -> None:
        """Background push: failures are logged and retried on the next window."""
        if not self._busy.acquire(blocking=False):
            # manual sync or import in progress
            self._debouncer.trigger()
            return
        try:
            if not self._push_current():
                logger.warning("Background sync failed; will retry after the next change")
        finally:
            self._busy.release()

    def manual_sync(self) -> ServiceResult:
        """Push now, bypassing the debounce, and tell the user how it went."""
        if self._session is None:
            return ServiceResult.fail("Not signed in", error_code="AUTH_001")

        if not self._busy.acquire(blocking=False):
            self._notify("warning", "A sync is already running")
            return ServiceResult.fail("A sync is already running", error_code="SYNC_BUSY")

        try:
            self._debouncer.cancel()
            with LogContext(logger, "Manual sync"):
                ok = self._push_current()
        finally:
            self._busy.release()

        if ok:
            self._notify("success", "Cloud sync completed")
            return ServiceResult.ok(metadata={"synced_at": self._state.last_sync_success.isoformat()})

        self._notify("error", "Sync failed, please try again later")
        return ServiceResult.fail("Cloud sync failed", error_code="SYNC_001")

    @contextmanager
    def exclusive(self) -> Iterator[bool]:
        """
        Hold the busy flag for an operation that must not overlap a push.

        Yields False (without waiting) when a push is in flight.
        """
        acquired = self._busy.acquire(blocking=False)
        try:
            yield acquired
        finally:
            if acquired:
                self._busy.release()

    def cancel_pending_push(self) -> bool:
        return self._debouncer.cancel()

    def flush(self) -> bool:
        """Run a pending background push immediately."""
        return self._debouncer.flush()

    def _notify(self, level: str, message: str) -> None:
        if self.notify is None:
            return
        try:
            self.notify(level, message)
        except Exception as e:
            logger.error(f"Error in notifier: {e}")

    def get_status_display(self) -> Dict[str, Any]:
        """Get sync status for UI display."""
        return {
            "backend": self.adapter.name,
            "live_updates": self.adapter.supports_live_updates,
            "is_syncing": self.is_syncing,
            "push_pending": self.push_pending,
            "last_sync": self._state.last_sync.isoformat() if self._state.last_sync else None,
            "last_success": self._state.last_sync_success.isoformat() if self._state.last_sync_success else None,
            "failed_count": self._state.failed_count,
            "total_pushes": self._state.total_pushes,
            "subscriptions": self.subscription_count,
        }

    def shutdown(self, flush: bool = True) -> None:
        """Push anything pending, then release timers, subscriptions and the backend."""
        if flush:
            self.flush()
        self.end_session()
        self.adapter.close()
        self.state.unregister_listener(self._on_state_change)
