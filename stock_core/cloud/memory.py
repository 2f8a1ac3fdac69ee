# =============================================================================
# stock_core/cloud/memory.py
# In-process backend with live updates (tests, demos)
# =============================================================================

from __future__ import annotations
import copy
import threading
import time
from typing import Any, Dict, List, Optional, Tuple

from stock_core.models import COLLECTION_TYPES, Snapshot

from .base import CloudAdapter, OnChange, Subscription


class MemoryCloudAdapter(CloudAdapter):
    """
    Keeps one snapshot dictionary per identity in memory. Subscribers are
    called synchronously, with the full collection, after every change.

    ``online = False`` makes every operation fail like an unreachable backend.
    """

    name = "memory"
    supports_live_updates = True

    def __init__(self):
        self.online = True
        self.push_count = 0
        self.pushed: List[Snapshot] = []
        self._documents: Dict[str, Dict[str, Any]] = {}
        self._subscribers: Dict[Tuple[str, str], List[Tuple[Subscription, OnChange]]] = {}
        self._lock = threading.RLock()

    def _check_online(self) -> None:
        if not self.online:
            raise ConnectionError("memory backend offline")

    # =========================================================================
    # BACKEND PRIMITIVES
    # =========================================================================

    def _push(self, identity: str, snapshot: Snapshot) -> None:
        self._check_online()
        with self._lock:
            payload = snapshot.to_dict()
            payload["lastSync"] = int(time.time() * 1000)
            self._documents[identity] = copy.deepcopy(payload)
            self.push_count += 1
            self.pushed.append(Snapshot.from_dict(payload))

        for collection in COLLECTION_TYPES:
            self._notify(identity, collection)

    def _pull(self, identity: str) -> Optional[Snapshot]:
        self._check_online()
        with self._lock:
            payload = self._documents.get(identity)
            return Snapshot.from_dict(copy.deepcopy(payload)) if payload is not None else None

    def _subscribe(self, identity: str, collection: str, on_change: OnChange) -> Subscription:
        key = (identity, collection)

        def _remove() -> None:
            with self._lock:
                self._subscribers[key] = [
                    entry for entry in self._subscribers.get(key, []) if entry[0] is not subscription
                ]

        subscription = Subscription(on_cancel=_remove)
        with self._lock:
            self._subscribers.setdefault(key, []).append((subscription, on_change))

        subscription.deliver(on_change, self.fetch_collection(identity, collection))
        return subscription

    # =========================================================================
    # POINT OPERATIONS (remote edits from "another device")
    # =========================================================================

    def fetch_collection(self, identity: str, collection: str) -> List[Any]:
        with self._lock:
            payload = self._documents.get(identity) or {}
            rows = copy.deepcopy(payload.get(collection) or [])
        return [COLLECTION_TYPES[collection].from_dict(row) for row in rows]

    def save_document(self, identity: str, collection: str, record: Any) -> bool:
        self._check_online()
        with self._lock:
            payload = self._documents.setdefault(identity, Snapshot().to_dict())
            rows = [row for row in payload[collection] if row["id"] != record.id]
            rows.append(record.to_dict())
            payload[collection] = rows
        self._notify(identity, collection)
        return True

    def delete_document(self, identity: str, collection: str, record_id: str) -> bool:
        self._check_online()
        with self._lock:
            payload = self._documents.get(identity)
            if payload is None:
                return True
            payload[collection] = [row for row in payload[collection] if row["id"] != record_id]
        self._notify(identity, collection)
        return True

    def subscriber_count(self, identity: str, collection: str) -> int:
        with self._lock:
            return len(self._subscribers.get((identity, collection), []))

    def _notify(self, identity: str, collection: str) -> None:
        with self._lock:
            entries = list(self._subscribers.get((identity, collection), []))
        if not entries:
            return
        items = self.fetch_collection(identity, collection)
        for subscription, callback in entries:
            subscription.deliver(callback, items)
