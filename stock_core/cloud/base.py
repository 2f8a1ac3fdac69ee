# =============================================================================
# stock_core/cloud/base.py
# Cloud backend interface and subscription handles
# =============================================================================
"""
Every cloud backend implements the same small surface:

    push(identity, snapshot) -> bool
    pull(identity)           -> Snapshot | None
    subscribe(identity, collection, on_change) -> Subscription   (live backends)

Public methods never raise for transport problems: failures are logged and
reported as ``False`` / ``None``. ``pull_result`` additionally tells "nothing
pushed yet" apart from "could not reach the backend".
"""

from __future__ import annotations
import json
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from stock_core.errors import CloudSyncError
from stock_core.logging import get_logger
from stock_core.models import COLLECTIONS, Snapshot, User

logger = get_logger(__name__)

OnChange = Callable[[List[Any]], None]


def normalize_identity(identity: Optional[str]) -> str:
    """Cloud keys are the trimmed, lower-cased email (or provider uid)."""
    return (identity or "").strip().lower()


@dataclass
class PullResult:
    """Outcome of a pull: ``ok`` is False only when the backend failed."""
    ok: bool
    snapshot: Optional[Snapshot] = None
    error: Optional[str] = None

    @property
    def found(self) -> bool:
        return self.ok and self.snapshot is not None


class Subscription:
    """
    Handle returned by ``subscribe``. ``cancel()`` may be called any number of
    times; once cancelled no further deliveries reach the callback.
    """

    def __init__(self, on_cancel: Optional[Callable[[], None]] = None):
        self._cancelled = threading.Event()
        self._on_cancel = on_cancel
        self._lock = threading.Lock()

    @property
    def active(self) -> bool:
        return not self._cancelled.is_set()

    def deliver(self, callback: OnChange, items: List[Any]) -> bool:
        if not self.active:
            return False
        callback(items)
        return True

    def cancel(self) -> None:
        with self._lock:
            if self._cancelled.is_set():
                return
            self._cancelled.set()
        if self._on_cancel is not None:
            self._on_cancel()


class PollingSubscription(Subscription):
    """
    Live view over a backend without push notifications: a daemon thread
    re-fetches the collection every ``interval`` seconds and delivers the full
    contents whenever they differ from the previous delivery. The first
    delivery happens immediately.
    """

    def __init__(
        self,
        fetch: Callable[[], List[Any]],
        on_change: OnChange,
        interval: float,
        name: str = "CloudSubscription",
    ):
        super().__init__(on_cancel=self._stop)
        self._fetch = fetch
        self._on_change = on_change
        self._interval = interval
        self._fingerprint: Optional[str] = None
        self._thread = threading.Thread(target=self._poll_loop, daemon=True, name=name)

    def start(self) -> PollingSubscription:
        self._thread.start()
        return self

    @staticmethod
    def _fingerprint_of(items: List[Any]) -> str:
        return json.dumps([item.to_dict() for item in items], sort_keys=True)

    def poll_once(self) -> bool:
        """Fetch and deliver if changed. Returns True when a delivery happened."""
        items = self._fetch()
        fingerprint = self._fingerprint_of(items)
        if fingerprint == self._fingerprint:
            return False
        self._fingerprint = fingerprint
        return self.deliver(self._on_change, items)

    def _poll_loop(self) -> None:
        while self.active:
            try:
                self.poll_once()
            except Exception as e:
                logger.error(f"Subscription poll failed: {e}")

            if self._cancelled.wait(timeout=self._interval):
                break

    def _stop(self) -> None:
        if self._thread.is_alive() and threading.current_thread() is not self._thread:
            self._thread.join(timeout=self._interval + 1)


class CloudAdapter(ABC):
    """Base class for cloud backends."""

    name = "base"
    supports_live_updates = False
    derives_earnings = False

    # =========================================================================
    # SESSION HOOKS
    # =========================================================================

    def authorize(self, user: User) -> None:
        """Receive the session credential at login (no-op by default)."""

    def revoke(self) -> None:
        """Drop any session credential at logout (no-op by default)."""

    # =========================================================================
    # BACKEND PRIMITIVES
    # =========================================================================

    @abstractmethod
    def _push(self, identity: str, snapshot: Snapshot) -> None:
        """Persist the snapshot; raise on failure."""

    @abstractmethod
    def _pull(self, identity: str) -> Optional[Snapshot]:
        """Return the stored snapshot or None; raise on failure."""

    def _subscribe(self, identity: str, collection: str, on_change: OnChange) -> Subscription:
        raise NotImplementedError

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    def push(self, identity: str, snapshot: Snapshot) -> bool:
        """Persist the full snapshot under ``identity``. Never raises."""
        identity = normalize_identity(identity)
        if not identity:
            logger.warning(f"[{self.name}] push skipped: no identity")
            return False

        try:
            self._push(identity, snapshot)
        except Exception as e:
            logger.error(f"[{self.name}] push failed for {identity}: {e}")
            return False

        logger.info(
            f"[{self.name}] pushed {len(snapshot.categories)} categories, "
            f"{len(snapshot.products)} products, {len(snapshot.sales)} sales"
        )
        return True

    def pull_result(self, identity: str) -> PullResult:
        identity = normalize_identity(identity)
        if not identity:
            return PullResult(ok=True)

        try:
            snapshot = self._pull(identity)
        except Exception as e:
            logger.error(f"[{self.name}] pull failed for {identity}: {e}")
            return PullResult(ok=False, error=str(e))
        return PullResult(ok=True, snapshot=snapshot)

    def pull(self, identity: str) -> Optional[Snapshot]:
        """Last pushed snapshot for ``identity``, or None. Never raises."""
        return self.pull_result(identity).snapshot

    def subscribe(self, identity: str, collection: str, on_change: OnChange) -> Subscription:
        """
        Deliver the full contents of ``collection`` on every remote change.

        Raises:
            CloudSyncError: backend has no live updates, or unknown collection
        """
        if not self.supports_live_updates:
            raise CloudSyncError(
                "Backend does not support live updates",
                backend=self.name,
                operation="subscribe",
            )
        if collection not in COLLECTIONS:
            raise CloudSyncError(f"Unknown collection '{collection}'", backend=self.name)

        identity = normalize_identity(identity)
        if not identity:
            raise CloudSyncError("Cannot subscribe without an identity", backend=self.name)
        return self._subscribe(identity, collection, on_change)

    def close(self) -> None:
        """Release network resources (no-op by default)."""
