# =============================================================================
# stock_core/cloud/supabase_collections.py
# Per-user multi-collection backend on Supabase tables
# =============================================================================
"""
Each collection lives in its own Supabase table of documents:

    inventory_categories / inventory_products / inventory_sales
        id TEXT, user_id TEXT, data JSONB, updated_at TIMESTAMPTZ
        PRIMARY KEY (user_id, id)

    inventory_earnings
        user_id TEXT PRIMARY KEY, amount DOUBLE PRECISION, updated_at TIMESTAMPTZ

Documents are individually creatable, updatable and deletable. Live views
re-deliver the full collection on every change; they are served by polling
workers because the synchronous Supabase client has no push channel.
"""

from __future__ import annotations
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from stock_core.errors import CloudSyncError
from stock_core.logging import get_logger
from stock_core.models import COLLECTION_TYPES, COLLECTIONS, Snapshot

from .base import CloudAdapter, OnChange, PollingSubscription, Subscription

logger = get_logger(__name__)


class SupabaseCollectionsAdapter(CloudAdapter):

    name = "supabase"
    supports_live_updates = True

    TABLES = {
        "categories": "inventory_categories",
        "products": "inventory_products",
        "sales": "inventory_sales",
    }
    EARNINGS_TABLE = "inventory_earnings"
    PAGE_SIZE = 1000

    def __init__(
        self,
        client: Any = None,
        url: Optional[str] = None,
        key: Optional[str] = None,
        poll_interval: float = 5.0,
        earnings_source: str = "stored",
    ):
        """
        Args:
            client: Ready Supabase client (tests pass a mock)
            url, key: Used to create a client lazily when none is given
            poll_interval: Seconds between live-view refreshes
            earnings_source: "stored" keeps a total per user, "derived" sums
                the sales collection and never stores a total
        """
        self._client = client
        self._url = url
        self._key = key
        self.poll_interval = poll_interval
        self.derives_earnings = earnings_source == "derived"

    def _get_client(self):
        """Lazy create the Supabase client."""
        if self._client is None:
            if not (self._url and self._key):
                raise CloudSyncError("Supabase URL/key not configured", backend=self.name)
            from supabase import create_client
            self._client = create_client(self._url, self._key)
        return self._client

    def _table(self, collection: str):
        if collection not in self.TABLES:
            raise CloudSyncError(f"Unknown collection '{collection}'", backend=self.name)
        return self._get_client().table(self.TABLES[collection])

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()

    # =========================================================================
    # POINT OPERATIONS
    # =========================================================================

    def _fetch_rows(self, identity: str, collection: str, columns: str) -> List[Dict[str, Any]]:
        """Every row of one user in a collection, paged past the 1000 row limit."""
        rows: List[Dict[str, Any]] = []
        offset = 0

        while True:
            response = (
                self._table(collection)
                .select(columns)
                .eq("user_id", identity)
                .order("id")
                .range(offset, offset + self.PAGE_SIZE - 1)
                .execute()
            )
            batch = response.data or []
            rows.extend(batch)
            if len(batch) < self.PAGE_SIZE:
                break
            offset += self.PAGE_SIZE
        return rows

    def fetch_collection(self, identity: str, collection: str) -> List[Any]:
        """Fetch ALL documents of a collection for one user."""
        rows = self._fetch_rows(identity, collection, "id, data")
        entity = COLLECTION_TYPES[collection]
        return [entity.from_dict({**(row.get("data") or {}), "id": row["id"]}) for row in rows]

    def _document_row(self, identity: str, record: Any) -> Dict[str, Any]:
        return {
            "id": record.id,
            "user_id": identity,
            "data": record.to_dict(),
            "updated_at": self._now(),
        }

    def save_document(self, identity: str, collection: str, record: Any) -> bool:
        """Create or update one document."""
        try:
            self._table(collection).upsert(
                self._document_row(identity, record), on_conflict="user_id,id"
            ).execute()
            return True
        except Exception as e:
            logger.error(f"Error saving {collection}/{record.id}: {e}")
            return False

    def delete_document(self, identity: str, collection: str, record_id: str) -> bool:
        """Delete one document."""
        try:
            self._table(collection).delete().eq("user_id", identity).eq("id", record_id).execute()
            return True
        except Exception as e:
            logger.error(f"Error deleting {collection}/{record_id}: {e}")
            return False

    def _fetch_earnings(self, identity: str) -> Optional[float]:
        response = (
            self._get_client().table(self.EARNINGS_TABLE)
            .select("amount")
            .eq("user_id", identity)
            .execute()
        )
        if not response.data:
            return None
        return float(response.data[0].get("amount") or 0)

    # =========================================================================
    # BACKEND PRIMITIVES
    # =========================================================================

    def _push(self, identity: str, snapshot: Snapshot) -> None:
        for collection in COLLECTIONS:
            records = snapshot.collection(collection)
            wanted = {record.id for record in records}

            existing = self._fetch_rows(identity, collection, "id")
            stale = [row["id"] for row in existing if row["id"] not in wanted]

            if records:
                self._table(collection).upsert(
                    [self._document_row(identity, record) for record in records],
                    on_conflict="user_id,id",
                ).execute()
            if stale:
                self._table(collection).delete().eq("user_id", identity).in_("id", stale).execute()
                logger.debug(f"Removed {len(stale)} stale {collection} documents")

        if not self.derives_earnings:
            self._get_client().table(self.EARNINGS_TABLE).upsert(
                {"user_id": identity, "amount": float(snapshot.earnings), "updated_at": self._now()},
                on_conflict="user_id",
            ).execute()

    def _pull(self, identity: str) -> Optional[Snapshot]:
        collections = {name: self.fetch_collection(identity, name) for name in COLLECTIONS}

        if self.derives_earnings:
            earnings: Optional[float] = sum(sale.total for sale in collections["sales"])
            has_data = any(collections.values())
        else:
            earnings = self._fetch_earnings(identity)
            has_data = any(collections.values()) or earnings is not None

        if not has_data:
            return None
        return Snapshot(earnings=earnings or 0.0, **collections)

    def _subscribe(self, identity: str, collection: str, on_change: OnChange) -> Subscription:
        return PollingSubscription(
            fetch=lambda: self.fetch_collection(identity, collection),
            on_change=on_change,
            interval=self.poll_interval,
            name=f"Supabase-{collection}",
        ).start()
