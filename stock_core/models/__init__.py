# =============================================================================
# stock_core/models/__init__.py
# Entity model for the inventory catalog
# =============================================================================

from .entities import (
    Category,
    Product,
    SaleRecord,
    User,
    Snapshot,
    COLLECTIONS,
    COLLECTION_TYPES,
    parse_price,
    next_timestamp,
    new_record_id,
)

__all__ = [
    "Category",
    "Product",
    "SaleRecord",
    "User",
    "Snapshot",
    "COLLECTIONS",
    "COLLECTION_TYPES",
    "parse_price",
    "next_timestamp",
    "new_record_id",
]
