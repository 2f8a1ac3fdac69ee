# =============================================================================
# stock_core/services/catalog_service.py
# Catalog queries: search, stock value, sales summaries
# =============================================================================

"""
Catalog Service - read-only queries over the in-memory catalog.

Search, sorting, stock valuation and sales summaries used by the home screen,
the category detail view and the sales log.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from stock_core.models import Product, SaleRecord, parse_price

from .base_service import BaseService


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass
class SalesSummary:
    """Totals over a sales log."""

    revenue: float = 0.0
    units_sold: int = 0
    sale_count: int = 0
    average_ticket: float = 0.0
    daily_revenue: List[Dict] = field(default_factory=list)   # [{"date", "revenue", "units"}]
    top_products: List[Dict] = field(default_factory=list)    # [{"productName", "revenue", "units"}]


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def _products_frame(products: Sequence[Product]) -> pd.DataFrame:
    frame = pd.DataFrame(
        [p.to_dict() for p in products],
        columns=["id", "name", "categoryId", "price", "quantity", "barcode", "image"],
    )
    frame["amount"] = frame["price"].map(lambda price: parse_price(price)[0]).astype(float)
    frame["quantity"] = frame["quantity"].astype(int)
    return frame


def _sales_frame(sales: Sequence[SaleRecord]) -> pd.DataFrame:
    frame = pd.DataFrame(
        [s.to_dict() for s in sales],
        columns=["id", "productId", "productName", "productImage", "quantity", "soldAtPrice", "timestamp"],
    )
    frame["quantity"] = frame["quantity"].astype(int)
    frame["soldAtPrice"] = frame["soldAtPrice"].astype(float)
    frame["revenue"] = frame["soldAtPrice"] * frame["quantity"]
    frame["date"] = pd.to_datetime(frame["timestamp"].astype("int64"), unit="ms").dt.date
    return frame


class CatalogService(BaseService):
    """Queries over products and sales. Inputs are never modified."""

    def search_products(
        self,
        products: Sequence[Product],
        query: str = "",
        category_id: Optional[str] = None,
        descending: bool = False,
    ) -> List[Product]:
        """
        Filter by category and by a case-insensitive name match or barcode
        substring, then sort by name.
        """
        if not products:
            return []

        frame = _products_frame(products)
        mask = pd.Series(True, index=frame.index)

        if category_id:
            mask &= frame["categoryId"] == category_id

        query = (query or "").strip()
        if query:
            by_name = frame["name"].str.lower().str.contains(query.lower(), regex=False)
            by_barcode = frame["barcode"].str.contains(query, regex=False)
            mask &= by_name | by_barcode

        order = (
            frame[mask]
            .assign(_key=lambda f: f["name"].str.casefold())
            .sort_values("_key", ascending=not descending, kind="stable")
            .index
        )
        return [products[i] for i in order]

    def find_by_barcode(self, products: Sequence[Product], barcode: str) -> List[Product]:
        barcode = (barcode or "").strip()
        return [p for p in products if barcode and p.barcode == barcode]

    def inventory_value(self, products: Sequence[Product]) -> float:
        """Sum of parsed unit price x quantity over the catalog."""
        if not products:
            return 0.0
        frame = _products_frame(products)
        return float(np.dot(frame["amount"].to_numpy(), frame["quantity"].to_numpy()))

    def products_per_category(self, products: Sequence[Product]) -> Dict[str, int]:
        if not products:
            return {}
        counts = _products_frame(products).groupby("categoryId").size()
        return {str(k): int(v) for k, v in counts.items()}

    def sales_log(self, sales: Sequence[SaleRecord]) -> List[SaleRecord]:
        """Newest first."""
        return sorted(sales, key=lambda s: s.timestamp, reverse=True)

    def sales_summary(self, sales: Sequence[SaleRecord], top_n: int = 5) -> SalesSummary:
        if not sales:
            return SalesSummary()

        frame = _sales_frame(sales)
        summary = SalesSummary(
            revenue=round(float(frame["revenue"].sum()), 2),
            units_sold=int(frame["quantity"].sum()),
            sale_count=len(frame),
        )
        summary.average_ticket = round(summary.revenue / summary.sale_count, 2)

        daily = (
            frame.groupby("date")
            .agg(revenue=("revenue", "sum"), units=("quantity", "sum"))
            .reset_index()
            .sort_values("date")
        )
        summary.daily_revenue = [
            {"date": row.date.isoformat(), "revenue": float(row.revenue), "units": int(row.units)}
            for row in daily.itertuples(index=False)
        ]

        top = (
            frame.groupby("productName")
            .agg(revenue=("revenue", "sum"), units=("quantity", "sum"))
            .sort_values("revenue", ascending=False)
            .head(top_n)
            .reset_index()
        )
        summary.top_products = [
            {"productName": row.productName, "revenue": float(row.revenue), "units": int(row.units)}
            for row in top.itertuples(index=False)
        ]

        self.logger.debug(f"Summarized {summary.sale_count} sales")
        return summary
