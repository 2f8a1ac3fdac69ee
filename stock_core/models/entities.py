# =============================================================================
# stock_core/models/entities.py
# Plain records for categories, products, sales, users and snapshots
# =============================================================================
"""
Entity records shared by the local store, the cloud backends and the service.

All records serialize to camelCase dictionaries (``categoryId``,
``soldAtPrice`` ...) so backup files and remote documents written by older
clients stay readable. Unknown keys are ignored on read.
"""

from __future__ import annotations
import re
import threading
import time
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple, Type, Union

COLLECTIONS: Tuple[str, ...] = ("categories", "products", "sales")

_PRICE_JUNK = re.compile(r"[^\d.]")


def parse_price(price: Union[str, int, float, None]) -> Tuple[float, Optional[str]]:
    """
    Split a compound price string into (amount, unit).

    >>> parse_price("250/kg")
    (250.0, 'kg')
    >>> parse_price("1 200 DA")
    (1200.0, None)
    """
    if price is None:
        return 0.0, None
    if isinstance(price, (int, float)):
        return float(price), None

    amount_part, _, unit = str(price).partition("/")
    cleaned = _PRICE_JUNK.sub("", amount_part)
    try:
        amount = float(cleaned) if cleaned else 0.0
    except ValueError:
        # e.g. "1.2.3"
        amount = 0.0
    return amount, (unit.strip() or None)


_timestamp_lock = threading.Lock()
_last_timestamp = 0


def next_timestamp(now_ms: Optional[int] = None) -> int:
    """Wall-clock epoch milliseconds, strictly increasing within the process."""
    global _last_timestamp
    with _timestamp_lock:
        candidate = int(time.time() * 1000) if now_ms is None else int(now_ms)
        if candidate <= _last_timestamp:
            candidate = _last_timestamp + 1
        _last_timestamp = candidate
        return candidate


def new_record_id() -> str:
    """Time-derived id for new categories and products."""
    return str(next_timestamp())


@dataclass
class Category:
    id: str
    name: str
    image: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "image": self.image}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Category:
        return cls(
            id=str(data["id"]),
            name=str(data.get("name", "")),
            image=str(data.get("image") or ""),
        )


@dataclass
class Product:
    id: str
    name: str
    category_id: str
    price: str
    quantity: int = 0
    barcode: str = ""
    image: str = ""

    @property
    def unit_price(self) -> float:
        return parse_price(self.price)[0]

    @property
    def price_unit(self) -> Optional[str]:
        return parse_price(self.price)[1]

    def with_quantity(self, quantity: int) -> Product:
        return replace(self, quantity=quantity)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "categoryId": self.category_id,
            "price": self.price,
            "quantity": self.quantity,
            "barcode": self.barcode,
            "image": self.image,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Product:
        return cls(
            id=str(data["id"]),
            name=str(data.get("name", "")),
            category_id=str(data.get("categoryId") or ""),
            price=str(data.get("price", "0")),
            quantity=max(int(data.get("quantity") or 0), 0),
            barcode=str(data.get("barcode") or ""),
            image=str(data.get("image") or ""),
        )


@dataclass
class SaleRecord:
    """Immutable record of one sale. Product fields are copied at sale time."""

    id: str
    product_id: str
    product_name: str
    product_image: str
    quantity: int
    sold_at_price: float
    timestamp: int

    @property
    def total(self) -> float:
        return self.sold_at_price * self.quantity

    @classmethod
    def create(
        cls,
        product: Product,
        quantity: int,
        unit_price: float,
        now_ms: Optional[int] = None,
    ) -> SaleRecord:
        timestamp = next_timestamp(now_ms)
        return cls(
            id=str(timestamp),
            product_id=product.id,
            product_name=product.name,
            product_image=product.image,
            quantity=int(quantity),
            sold_at_price=float(unit_price),
            timestamp=timestamp,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "productId": self.product_id,
            "productName": self.product_name,
            "productImage": self.product_image,
            "quantity": self.quantity,
            "soldAtPrice": self.sold_at_price,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> SaleRecord:
        return cls(
            id=str(data["id"]),
            product_id=str(data.get("productId") or ""),
            product_name=str(data.get("productName") or ""),
            product_image=str(data.get("productImage") or ""),
            quantity=int(data.get("quantity") or 0),
            sold_at_price=float(data.get("soldAtPrice") or 0),
            timestamp=int(data.get("timestamp") or 0),
        )


@dataclass
class User:
    email: str
    name: str = ""
    picture: str = ""
    # bearer credential for token-based backends; never persisted
    access_token: Optional[str] = field(default=None, repr=False, compare=False)

    @property
    def identity(self) -> str:
        return self.email.strip().lower()

    def to_dict(self) -> Dict[str, Any]:
        return {"email": self.email, "name": self.name, "picture": self.picture}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> User:
        return cls(
            email=str(data.get("email") or data.get("uid") or ""),
            name=str(data.get("name") or ""),
            picture=str(data.get("picture") or ""),
            access_token=data.get("accessToken"),
        )


COLLECTION_TYPES: Dict[str, Type] = {
    "categories": Category,
    "products": Product,
    "sales": SaleRecord,
}


@dataclass
class Snapshot:
    """Full dataset of one user at one instant."""

    categories: List[Category] = field(default_factory=list)
    products: List[Product] = field(default_factory=list)
    sales: List[SaleRecord] = field(default_factory=list)
    earnings: float = 0.0
    # epoch ms stamped by cloud backends, ignored for equality
    last_sync: Optional[int] = field(default=None, compare=False)

    def collection(self, name: str) -> List[Any]:
        if name not in COLLECTION_TYPES:
            raise KeyError(name)
        return getattr(self, name)

    def normalized(self) -> Snapshot:
        """Copy with every collection sorted by id (for order-free comparison)."""
        return Snapshot(
            categories=sorted(self.categories, key=lambda c: c.id),
            products=sorted(self.products, key=lambda p: p.id),
            sales=sorted(self.sales, key=lambda s: s.id),
            earnings=float(self.earnings),
            last_sync=self.last_sync,
        )

    @property
    def is_empty(self) -> bool:
        return not (self.categories or self.products or self.sales) and not self.earnings

    def to_dict(self, include_sync: bool = False) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "categories": [c.to_dict() for c in self.categories],
            "products": [p.to_dict() for p in self.products],
            "sales": [s.to_dict() for s in self.sales],
            "earnings": self.earnings,
        }
        if include_sync and self.last_sync is not None:
            data["lastSync"] = self.last_sync
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Snapshot:
        return cls(
            categories=[Category.from_dict(c) for c in data.get("categories") or []],
            products=[Product.from_dict(p) for p in data.get("products") or []],
            sales=[SaleRecord.from_dict(s) for s in data.get("sales") or []],
            earnings=float(data.get("earnings") or 0),
            last_sync=data.get("lastSync"),
        )
