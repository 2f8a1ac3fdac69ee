# =============================================================================
# stock_core/services/__init__.py
# Service Layer for the Stock Manager data layer
# =============================================================================

from .base_service import BaseService, ServiceResult
from .catalog_service import CatalogService, SalesSummary

__all__ = [
    "BaseService",
    "ServiceResult",
    "CatalogService",
    "SalesSummary",
]
