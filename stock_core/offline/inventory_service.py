# =============================================================================
# stock_core/offline/inventory_service.py
# Inventory Service - Single API for the UI layer
# =============================================================================
"""
InventoryService - the only object the UI talks to.

Every mutation is write-through: the local store is updated first (inside one
transaction), then the in-memory state, which in turn schedules a debounced
cloud push. Each method returns once the local store reflects the change.

Usage:
------
from stock_core.offline import get_inventory_service

service = get_inventory_service()
service.login(User(email="owner@example.com", name="Owner"))

category = service.add_category(Category(id=new_record_id(), name="Spices"))
service.add_product(Product(id=new_record_id(), name="Cumin", category_id=category.id,
                            price="250/kg", quantity=5))
service.record_sale(product_id, quantity=3, unit_price=250)

print(service.state.earnings)       # 750.0
service.manual_sync()
"""

from __future__ import annotations
import threading
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from stock_core.cloud import CloudAdapter, create_cloud_adapter
from stock_core.config import Settings, get_settings
from stock_core.data.backup import export_snapshot, load_backup
from stock_core.errors import Notifier, SaleError, StockManagerError, handle_error
from stock_core.models import Category, Product, SaleRecord, User
from stock_core.services.base_service import BaseService, ServiceResult
from stock_core.services.catalog_service import CatalogService, SalesSummary

from .local_store import LocalStore
from .state import ORIGIN_EDIT, InventoryState, StateListener, ViewState
from .sync_engine import SyncEngine


class InventoryService(BaseService):
    """
    Facade over the local store, the sync engine and the session lifecycle.

    Mutations and remote deliveries are serialized by one lock (shared with
    the sync engine) so that concurrent triggers (UI thread, timer thread,
    subscription workers) never interleave a read-modify-write of the state
    tree.
    """

    _instance: Optional[InventoryService] = None
    _lock = threading.Lock()

    def __init__(
        self,
        settings: Optional[Settings] = None,
        store: Optional[LocalStore] = None,
        adapter: Optional[CloudAdapter] = None,
        notify: Optional[Notifier] = None,
        reload_hook: Optional[Callable[[], None]] = None,
    ):
        super().__init__(notify=notify)
        self.settings = settings or get_settings()
        self.store = store or LocalStore(self.settings.db_path, self.settings.cleanup_timeout)
        self.adapter = adapter or create_cloud_adapter(self.settings)

        # Imported here: stock_core.auth depends on this package
        from stock_core.auth.session import SessionManager

        self._tree = InventoryState()
        self._write_lock = threading.RLock()
        self.engine = SyncEngine(
            self.store,
            self.adapter,
            self._tree,
            debounce_seconds=self.settings.debounce_seconds,
            notify=notify,
            write_lock=self._write_lock,
        )
        self.sessions = SessionManager(
            self.store,
            self.engine,
            self._tree,
            reload_hook=reload_hook,
            notify=notify,
        )
        self.catalog = CatalogService()
        self._initialized = False

    @classmethod
    def get_instance(cls, **kwargs: Any) -> InventoryService:
        """Get or create singleton instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = InventoryService(**kwargs)
        return cls._instance

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def state(self) -> ViewState:
        return self._tree.current

    @property
    def current_user(self) -> Optional[User]:
        return self.sessions.current_user

    @property
    def reload_hook(self) -> Optional[Callable[[], None]]:
        return self.sessions.reload_hook

    @reload_hook.setter
    def reload_hook(self, hook: Optional[Callable[[], None]]) -> None:
        self.sessions.reload_hook = hook

    def subscribe_state(self, listener: StateListener) -> Callable[[], None]:
        """
        Call ``listener(state, origin)`` after every state change.

        Returns:
            A function that removes the listener
        """
        self._tree.register_listener(listener)
        return lambda: self._tree.unregister_listener(listener)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def initialize(self) -> Optional[User]:
        """Resume the saved session (if any). Safe to call more than once."""
        if self._initialized:
            return self.current_user

        with self._write_lock, self.log_operation("Initializing inventory service"):
            user = self.sessions.restore()
        self._initialized = True
        return user

    def login(self, user: User) -> ServiceResult:
        with self._write_lock:
            return self.sessions.login(user)

    def logout(self) -> ServiceResult:
        with self._write_lock:
            return self.sessions.logout()

    def manual_sync(self) -> ServiceResult:
        return self.engine.manual_sync()

    def shutdown(self) -> None:
        """Flush a pending push and release every resource."""
        try:
            self.engine.shutdown(flush=True)
        finally:
            self.store.close()
            self._initialized = False
        self.logger.info("Inventory service shut down")

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    def add_category(self, category: Union[Category, Dict[str, Any]]) -> Category:
        """Create or replace a category (by id)."""
        self.sessions.require_user()
        if isinstance(category, dict):
            category = Category.from_dict(category)

        with self._write_lock:
            self.store.save_item("categories", category)
            categories = [c for c in self.state.categories if c.id != category.id]
            self._tree.update(ORIGIN_EDIT, categories=categories + [category])
        return category

    def add_product(self, product: Union[Product, Dict[str, Any]]) -> Product:
        """Create or replace a product (by id)."""
        self.sessions.require_user()
        if isinstance(product, dict):
            product = Product.from_dict(product)
        if product.quantity < 0:
            product = product.with_quantity(0)

        with self._write_lock:
            self.store.save_item("products", product)
            products = [p for p in self.state.products if p.id != product.id]
            self._tree.update(ORIGIN_EDIT, products=products + [product])
        return product

    def record_sale(self, product_id: str, quantity: int, unit_price: float) -> SaleRecord:
        """
        Sell ``quantity`` units of a product at ``unit_price`` each.

        One local transaction: the sale record is appended, earnings grow by
        ``unit_price * quantity``, and the product is saved with the reduced
        quantity or removed when nothing is left.

        Raises:
            SaleError: unknown product, non-positive quantity or negative price
            LocalStoreError: the transaction failed (nothing was applied)
        """
        self.sessions.require_user()
        try:
            quantity = int(quantity)
            unit_price = float(unit_price)
        except (TypeError, ValueError) as e:
            raise SaleError(f"Invalid sale input: {e}", product_id=product_id) from e
        if quantity <= 0:
            raise SaleError("Quantity must be positive", product_id=product_id, quantity=quantity)
        if unit_price < 0:
            raise SaleError("Price must not be negative", product_id=product_id, quantity=quantity)

        with self._write_lock:
            product = self.store.get_item("products", product_id)
            if product is None:
                raise SaleError("Product not found", product_id=product_id, quantity=quantity)

            sale = SaleRecord.create(product, quantity, unit_price)
            earnings = self.store.get_earnings() + sale.total
            remaining = product.quantity - quantity

            with self.store.transaction():
                self.store.save_item("sales", sale)
                self.store.save_earnings(earnings)
                if remaining <= 0:
                    self.store.delete_item("products", product.id)
                else:
                    self.store.save_item("products", product.with_quantity(remaining))

            if remaining <= 0:
                products = [p for p in self.state.products if p.id != product.id]
            else:
                products = [
                    p.with_quantity(remaining) if p.id == product.id else p
                    for p in self.state.products
                ]
            self._tree.update(
                ORIGIN_EDIT,
                sales=(sale,) + self.state.sales,
                earnings=earnings,
                products=products,
            )

        self.logger.info(
            f"Sold {quantity} x {product.name} at {unit_price:g} "
            f"({'removed' if remaining <= 0 else f'{remaining} left'})"
        )
        return sale

    def delete_product(self, product_id: str) -> None:
        self.sessions.require_user()
        with self._write_lock:
            self.store.delete_item("products", product_id)
            products = [p for p in self.state.products if p.id != product_id]
            self._tree.update(ORIGIN_EDIT, products=products)

    def delete_category(self, category_id: str) -> int:
        """
        Delete a category and every product in it, atomically.

        Returns:
            Number of products removed
        """
        self.sessions.require_user()
        with self._write_lock:
            related = [p for p in self.store.get_all("products") if p.category_id == category_id]

            with self.store.transaction():
                for product in related:
                    self.store.delete_item("products", product.id)
                self.store.delete_item("categories", category_id)

            self._tree.update(
                ORIGIN_EDIT,
                categories=[c for c in self.state.categories if c.id != category_id],
                products=[p for p in self.state.products if p.category_id != category_id],
            )

        self.logger.info(f"Deleted category {category_id} with {len(related)} products")
        return len(related)

    # =========================================================================
    # IMPORT / EXPORT
    # =========================================================================

    def import_snapshot(self, data: Any) -> ServiceResult:
        """
        Replace the whole local dataset with a backup.

        ``data`` may be a dict, JSON text, a path or an uploaded file. Refused
        while a push is in flight. The imported data is pushed after the
        usual quiet period.
        """
        if self.current_user is None:
            return ServiceResult.fail("Sign in to import data", error_code="AUTH_001")

        with self.engine.exclusive() as acquired:
            if not acquired:
                self._notify("warning", "A sync is running, try the import again shortly")
                return ServiceResult.fail("A sync is already running", error_code="SYNC_BUSY")

            try:
                with self._write_lock, self.log_operation("Importing backup"):
                    snapshot = load_backup(data)
                    self.store.overwrite_local_data(snapshot)
                    view = self.engine.reload_from_store(origin=ORIGIN_EDIT)
            except StockManagerError as e:
                handle_error(e, notify=self.notify, user_message="Import failed")
                return ServiceResult.from_exception(e)

        self._notify("success", "Data imported")
        return ServiceResult.ok(
            data=view,
            metadata={
                "categories": len(view.categories),
                "products": len(view.products),
                "sales": len(view.sales),
            },
        )

    def export_snapshot(self, directory: Optional[Path] = None) -> Path:
        """Write today's backup file and return its path."""
        return export_snapshot(self.store.snapshot(), directory or self.settings.backup_dir)

    # =========================================================================
    # QUERIES
    # =========================================================================

    def search_products(
        self,
        query: str = "",
        category_id: Optional[str] = None,
        descending: bool = False,
    ) -> List[Product]:
        return self.catalog.search_products(list(self.state.products), query, category_id, descending)

    def inventory_value(self) -> float:
        return self.catalog.inventory_value(list(self.state.products))

    def sales_summary(self, top_n: int = 5) -> SalesSummary:
        return self.catalog.sales_summary(list(self.state.sales), top_n=top_n)

    def get_status(self) -> Dict[str, Any]:
        """
        Get status information for UI display.
        """
        user = self.current_user
        return {
            "user": user.identity if user else None,
            "sync": self.engine.get_status_display(),
            "categories": len(self.state.categories),
            "products": len(self.state.products),
            "sales": len(self.state.sales),
            "earnings": self.state.earnings,
        }


# Singleton accessor
_inventory_service: Optional[InventoryService] = None


def get_inventory_service(**kwargs: Any) -> InventoryService:
    """
    Get the global InventoryService instance, initialized.

    Usage:
        from stock_core.offline import get_inventory_service

        service = get_inventory_service(notify=streamlit_notifier)
        service.state.products
    """
    global _inventory_service
    if _inventory_service is None:
        _inventory_service = InventoryService.get_instance(**kwargs)
        _inventory_service.initialize()
    return _inventory_service
