# =============================================================================
# stock_core/offline/local_store.py
# Local SQLite Store for the on-device catalog
# =============================================================================
"""
LocalStore - SQLite-backed on-device persistence.

Three keyed collections (categories, products, sales) and a namespaced
key/value table for scalar slots (current user, earnings total).

Features:
- Automatic schema creation
- Upsert / delete by string id
- Nestable transactions (one logical operation commits or rolls back whole)
- Time-bounded best-effort wipe for logout and account switches
- DataFrame view (pandas) for catalog queries
- Thread-safe operations (one connection per thread)
"""

from __future__ import annotations
import json
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Union
import logging

import pandas as pd

from stock_core.errors import LocalStoreError
from stock_core.models import COLLECTION_TYPES, COLLECTIONS, Snapshot, User

logger = logging.getLogger(__name__)

Record = Any  # Category | Product | SaleRecord


class LocalStore:
    """
    On-device store holding at most one user's data at a time.

    There is no per-user namespacing: switching users means a full wipe.
    """

    KEY_PREFIX = "NabilInventory_"
    EARNINGS_KEY = KEY_PREFIX + "TOTAL_EARNINGS"
    USER_KEY = KEY_PREFIX + "CURRENT_USER"

    SCHEMA = {
        name: f"""
            CREATE TABLE IF NOT EXISTS {name} (
                id TEXT PRIMARY KEY,
                data_json TEXT NOT NULL,
                updated_at TEXT DEFAULT CURRENT_TIMESTAMP
            )
        """
        for name in COLLECTIONS
    }
    SCHEMA["app_settings"] = """
        CREATE TABLE IF NOT EXISTS app_settings (
            key TEXT PRIMARY KEY,
            value TEXT,
            updated_at TEXT DEFAULT CURRENT_TIMESTAMP
        )
    """

    DATAFRAME_COLUMNS = {
        "categories": ["id", "name", "image"],
        "products": ["id", "name", "categoryId", "price", "quantity", "barcode", "image"],
        "sales": [
            "id", "productId", "productName", "productImage",
            "quantity", "soldAtPrice", "timestamp",
        ],
    }

    def __init__(self, db_path: Path, cleanup_timeout: float = 1.0):
        """
        Args:
            db_path: Path to SQLite database file
            cleanup_timeout: Seconds a best-effort wipe may take before the
                caller proceeds anyway
        """
        self.db_path = Path(db_path)
        self.cleanup_timeout = cleanup_timeout
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._local = threading.local()
        self._initialized = False
        self.initialize()

    # =========================================================================
    # CONNECTION / TRANSACTIONS
    # =========================================================================

    def _get_connection(self) -> sqlite3.Connection:
        """Get thread-local database connection."""
        if getattr(self._local, "connection", None) is None:
            self._local.connection = sqlite3.connect(
                str(self.db_path),
                check_same_thread=False,
                timeout=10,
            )
            self._local.connection.row_factory = sqlite3.Row
        return self._local.connection

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """
        Context manager for database transactions.

        Blocks nest: inner blocks join the outermost one, which alone commits
        or rolls back.
        """
        conn = self._get_connection()
        depth = getattr(self._local, "depth", 0)
        self._local.depth = depth + 1
        try:
            yield conn
        except Exception:
            if depth == 0:
                conn.rollback()
            raise
        else:
            if depth == 0:
                conn.commit()
        finally:
            self._local.depth = depth

    def initialize(self) -> None:
        """Initialize database schema."""
        if self._initialized:
            return

        try:
            with self.transaction() as conn:
                for table_name, schema in self.SCHEMA.items():
                    conn.execute(schema)
                    logger.debug(f"Created/verified table: {table_name}")
        except sqlite3.Error as e:
            raise LocalStoreError(f"Could not create local schema: {e}") from e

        self._initialized = True
        logger.info(f"Local store initialized at: {self.db_path}")

    @staticmethod
    def _check_collection(collection: str) -> str:
        if collection not in COLLECTION_TYPES:
            raise LocalStoreError(f"Unknown collection '{collection}'", collection=collection)
        return collection

    @staticmethod
    def _to_record(collection: str, item: Union[Record, Dict[str, Any]]) -> Record:
        if isinstance(item, dict):
            try:
                return COLLECTION_TYPES[collection].from_dict(item)
            except (KeyError, TypeError, ValueError) as e:
                raise LocalStoreError(
                    f"Malformed {collection} record: {e}", collection=collection
                ) from e
        return item

    @staticmethod
    def _from_row(collection: str, row: sqlite3.Row) -> Record:
        try:
            return COLLECTION_TYPES[collection].from_dict(json.loads(row["data_json"]))
        except (KeyError, TypeError, ValueError) as e:
            raise LocalStoreError(
                f"Corrupt {collection} row: {e}", collection=collection
            ) from e

    # =========================================================================
    # COLLECTIONS
    # =========================================================================

    def get_all(self, collection: str) -> List[Record]:
        """Every record of a collection, in insertion order. Empty list if none."""
        self._check_collection(collection)
        try:
            rows = self._get_connection().execute(
                f"SELECT data_json FROM {collection} ORDER BY rowid"
            ).fetchall()
        except sqlite3.Error as e:
            raise LocalStoreError(f"Read failed: {e}", collection=collection) from e
        return [self._from_row(collection, row) for row in rows]

    def get_item(self, collection: str, item_id: str) -> Optional[Record]:
        self._check_collection(collection)
        try:
            row = self._get_connection().execute(
                f"SELECT data_json FROM {collection} WHERE id = ?", [item_id]
            ).fetchone()
        except sqlite3.Error as e:
            raise LocalStoreError(f"Read failed: {e}", collection=collection, record_id=item_id) from e
        if row is None:
            return None
        return self._from_row(collection, row)

    def _upsert(self, conn: sqlite3.Connection, collection: str, record: Record) -> None:
        conn.execute(
            f"""
            INSERT INTO {collection} (id, data_json, updated_at) VALUES (?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                data_json = excluded.data_json,
                updated_at = excluded.updated_at
            """,
            [record.id, json.dumps(record.to_dict()), datetime.now().isoformat()],
        )

    def save_item(self, collection: str, item: Union[Record, Dict[str, Any]]) -> None:
        """Create or replace a record by id."""
        self._check_collection(collection)
        record = self._to_record(collection, item)
        try:
            with self.transaction() as conn:
                self._upsert(conn, collection, record)
        except sqlite3.Error as e:
            raise LocalStoreError(f"Write failed: {e}", collection=collection, record_id=record.id) from e

    def delete_item(self, collection: str, item_id: str) -> None:
        """Remove a record by id; absent ids are ignored."""
        self._check_collection(collection)
        try:
            with self.transaction() as conn:
                conn.execute(f"DELETE FROM {collection} WHERE id = ?", [item_id])
        except sqlite3.Error as e:
            raise LocalStoreError(f"Delete failed: {e}", collection=collection, record_id=item_id) from e

    def replace_collection(self, collection: str, items: Iterable[Union[Record, Dict[str, Any]]]) -> None:
        """Full replace of one collection."""
        self._check_collection(collection)
        records = [self._to_record(collection, item) for item in items]
        try:
            with self.transaction() as conn:
                conn.execute(f"DELETE FROM {collection}")
                for record in records:
                    self._upsert(conn, collection, record)
        except sqlite3.Error as e:
            raise LocalStoreError(f"Replace failed: {e}", collection=collection) from e

    # =========================================================================
    # SCALAR SLOTS
    # =========================================================================

    def _get_setting(self, key: str) -> Optional[str]:
        try:
            row = self._get_connection().execute(
                "SELECT value FROM app_settings WHERE key = ?", [key]
            ).fetchone()
        except sqlite3.Error as e:
            raise LocalStoreError(f"Read failed for {key}: {e}") from e
        return row["value"] if row else None

    def _set_setting(self, key: str, value: str) -> None:
        try:
            with self.transaction() as conn:
                conn.execute(
                    """
                    INSERT OR REPLACE INTO app_settings (key, value, updated_at)
                    VALUES (?, ?, ?)
                    """,
                    [key, value, datetime.now().isoformat()],
                )
        except sqlite3.Error as e:
            raise LocalStoreError(f"Write failed for {key}: {e}") from e

    def _delete_setting(self, key: str) -> None:
        with self.transaction() as conn:
            conn.execute("DELETE FROM app_settings WHERE key = ?", [key])

    def get_earnings(self) -> float:
        value = self._get_setting(self.EARNINGS_KEY)
        try:
            return float(value) if value else 0.0
        except ValueError:
            logger.warning(f"Ignoring corrupt earnings value: {value!r}")
            return 0.0

    def save_earnings(self, amount: float) -> None:
        self._set_setting(self.EARNINGS_KEY, repr(float(amount)))

    def get_user(self) -> Optional[User]:
        value = self._get_setting(self.USER_KEY)
        if not value:
            return None
        try:
            return User.from_dict(json.loads(value))
        except (json.JSONDecodeError, TypeError) as e:
            logger.warning(f"Ignoring corrupt session record: {e}")
            return None

    def save_user(self, user: User) -> None:
        self._set_setting(self.USER_KEY, json.dumps(user.to_dict()))

    def clear_user(self) -> None:
        try:
            self._delete_setting(self.USER_KEY)
        except sqlite3.Error as e:
            raise LocalStoreError(f"Could not clear session: {e}") from e

    def purge_namespace(self) -> None:
        """Remove every namespaced scalar slot."""
        try:
            with self.transaction() as conn:
                conn.execute(
                    "DELETE FROM app_settings WHERE key LIKE ?", [self.KEY_PREFIX + "%"]
                )
        except sqlite3.Error as e:
            raise LocalStoreError(f"Could not purge settings: {e}") from e

    # =========================================================================
    # BULK OPERATIONS
    # =========================================================================

    def _clear_collections(self, conn: sqlite3.Connection) -> None:
        for collection in COLLECTIONS:
            conn.execute(f"DELETE FROM {collection}")
        conn.execute("DELETE FROM app_settings WHERE key = ?", [self.EARNINGS_KEY])

    def _clear_worker(self, done: threading.Event) -> None:
        try:
            with self.transaction() as conn:
                self._clear_collections(conn)
            done.set()
        except Exception as e:
            logger.error(f"Local cleanup failed: {e}", exc_info=True)
        finally:
            self.close()

    def clear_all_local_data(self) -> bool:
        """
        Empty the three collections and reset earnings.

        Never raises. Storage errors are logged, and the caller proceeds once
        ``cleanup_timeout`` elapses even if the wipe has not signalled completion.

        Returns:
            True if the wipe completed within the timeout
        """
        done = threading.Event()
        worker = threading.Thread(
            target=self._clear_worker,
            args=(done,),
            daemon=True,
            name="LocalStoreCleanup",
        )
        worker.start()
        worker.join(timeout=self.cleanup_timeout)

        if worker.is_alive():
            logger.warning(f"Local cleanup still running after {self.cleanup_timeout}s; proceeding")
            return False
        if not done.is_set():
            return False

        logger.info("Local data cleared")
        return True

    def overwrite_local_data(self, snapshot: Union[Snapshot, Dict[str, Any]]) -> None:
        """Replace all three collections and the earnings total with ``snapshot``."""
        if isinstance(snapshot, dict):
            try:
                snapshot = Snapshot.from_dict(snapshot)
            except (KeyError, TypeError, ValueError) as e:
                raise LocalStoreError(f"Malformed snapshot: {e}") from e

        try:
            with self.transaction() as conn:
                self._clear_collections(conn)
                for collection in COLLECTIONS:
                    for record in snapshot.collection(collection):
                        self._upsert(conn, collection, record)
                conn.execute(
                    "INSERT OR REPLACE INTO app_settings (key, value, updated_at) VALUES (?, ?, ?)",
                    [self.EARNINGS_KEY, repr(float(snapshot.earnings)), datetime.now().isoformat()],
                )
        except sqlite3.Error as e:
            raise LocalStoreError(f"Overwrite failed: {e}") from e

        logger.info(
            f"Local data overwritten: {len(snapshot.categories)} categories, "
            f"{len(snapshot.products)} products, {len(snapshot.sales)} sales"
        )

    def snapshot(self) -> Snapshot:
        """Current local dataset."""
        return Snapshot(
            categories=self.get_all("categories"),
            products=self.get_all("products"),
            sales=self.get_all("sales"),
            earnings=self.get_earnings(),
        )

    # =========================================================================
    # PANDAS INTEGRATION
    # =========================================================================

    def to_dataframe(self, collection: str) -> pd.DataFrame:
        """Load a collection into a DataFrame (camelCase columns)."""
        records = [item.to_dict() for item in self.get_all(collection)]
        return pd.DataFrame(records, columns=self.DATAFRAME_COLUMNS[collection])

    def close(self) -> None:
        """Close this thread's database connection."""
        connection = getattr(self._local, "connection", None)
        if connection is not None:
            connection.close()
            self._local.connection = None
