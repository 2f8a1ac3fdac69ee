# =============================================================================
# stock_core/offline/state.py
# In-memory state tree consumed by the UI layer
# =============================================================================

from __future__ import annotations
import threading
from dataclasses import dataclass, replace
from typing import Any, Callable, List, Optional, Tuple

from stock_core.logging import get_logger
from stock_core.models import Category, Product, SaleRecord, Snapshot, User

logger = get_logger(__name__)

# Where a state change came from. Only "edit" schedules a background push.
ORIGIN_EDIT = "edit"
ORIGIN_LOAD = "load"
ORIGIN_REMOTE = "remote"
ORIGIN_RESET = "reset"


@dataclass(frozen=True)
class ViewState:
    """Immutable snapshot of everything the UI renders."""

    categories: Tuple[Category, ...] = ()
    products: Tuple[Product, ...] = ()
    sales: Tuple[SaleRecord, ...] = ()          # newest first
    earnings: float = 0.0
    current_user: Optional[User] = None
    is_loading: bool = True

    def to_snapshot(self) -> Snapshot:
        return Snapshot(
            categories=list(self.categories),
            products=list(self.products),
            sales=list(self.sales),
            earnings=self.earnings,
        )

    def find_product(self, product_id: str) -> Optional[Product]:
        return next((p for p in self.products if p.id == product_id), None)


StateListener = Callable[[ViewState, str], None]


def sort_sales(sales: Any) -> Tuple[SaleRecord, ...]:
    return tuple(sorted(sales, key=lambda s: s.timestamp, reverse=True))


class InventoryState:
    """
    Holder of the single ViewState. Written only by the sync engine and the
    inventory service; everyone else reads ``current`` or registers a listener.
    """

    def __init__(self):
        self._state = ViewState()
        self._lock = threading.RLock()
        self._listeners: List[StateListener] = []

    @property
    def current(self) -> ViewState:
        return self._state

    def update(self, origin: str, **changes: Any) -> ViewState:
        """Replace fields of the state and notify listeners."""
        if "sales" in changes:
            changes["sales"] = sort_sales(changes["sales"])
        for key in ("categories", "products"):
            if key in changes:
                changes[key] = tuple(changes[key])

        with self._lock:
            self._state = replace(self._state, **changes)
            state = self._state

        self._notify(state, origin)
        return state

    def load_snapshot(self, snapshot: Snapshot, user: Optional[User], origin: str = ORIGIN_LOAD) -> ViewState:
        return self.update(
            origin,
            categories=snapshot.categories,
            products=snapshot.products,
            sales=snapshot.sales,
            earnings=float(snapshot.earnings),
            current_user=user,
            is_loading=False,
        )

    def reset(self, is_loading: bool = False) -> ViewState:
        with self._lock:
            self._state = ViewState(is_loading=is_loading)
            state = self._state
        self._notify(state, ORIGIN_RESET)
        return state

    def register_listener(self, listener: StateListener) -> None:
        """Register a callback for state changes."""
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unregister_listener(self, listener: StateListener) -> None:
        """Remove a registered callback."""
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, state: ViewState, origin: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(state, origin)
            except Exception as e:
                logger.error(f"Error in state listener: {e}")
