# =============================================================================
# stock_core/errors/exceptions.py
# Custom Exception Hierarchy for the Stock Manager data layer
# =============================================================================

from typing import Optional, Dict, Any


class StockManagerError(Exception):
    """
    Base exception for all Stock Manager errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code (e.g., "STORE_001")
        details: Additional context as a dictionary
        recoverable: Whether the error can be recovered from
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = True,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or "SM_000"
        self.details = details or {}
        self.recoverable = recoverable

    def __str__(self) -> str:
        base = f"[{self.code}] {self.message}"
        if self.details:
            base += f" | Details: {self.details}"
        return base

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization"""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
        }


# =============================================================================
# LOCAL PERSISTENCE
# =============================================================================

class LocalStoreError(StockManagerError):
    """Raised when the on-device store cannot read or write"""

    def __init__(
        self,
        message: str,
        collection: Optional[str] = None,
        record_id: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if collection:
            details["collection"] = collection
        if record_id:
            details["record_id"] = record_id

        super().__init__(
            message=message,
            code="STORE_001",
            details=details,
            **kwargs,
        )


class BackupError(StockManagerError):
    """Raised when a backup file cannot be read or written"""

    def __init__(self, message: str, path: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", {})
        if path:
            details["path"] = path

        super().__init__(
            message=message,
            code="DATA_002",
            details=details,
            **kwargs,
        )


# =============================================================================
# CLOUD / SYNC
# =============================================================================

class CloudSyncError(StockManagerError):
    """Raised when a cloud backend is misused or unavailable"""

    def __init__(
        self,
        message: str,
        backend: Optional[str] = None,
        operation: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if backend:
            details["backend"] = backend
        if operation:
            details["operation"] = operation

        super().__init__(
            message=message,
            code="SYNC_001",
            details=details,
            **kwargs,
        )


# =============================================================================
# DOMAIN
# =============================================================================

class SaleError(StockManagerError):
    """Raised when a sale cannot be applied to a product"""

    def __init__(
        self,
        message: str,
        product_id: Optional[str] = None,
        quantity: Optional[int] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if product_id:
            details["product_id"] = product_id
        if quantity is not None:
            details["quantity"] = quantity

        super().__init__(
            message=message,
            code="SALE_001",
            details=details,
            **kwargs,
        )


class SessionError(StockManagerError):
    """Raised when an operation needs an authenticated user and none is present"""

    def __init__(self, message: str, **kwargs):
        super().__init__(message=message, code="AUTH_001", **kwargs)


# =============================================================================
# CONFIGURATION EXCEPTIONS
# =============================================================================

class ConfigurationError(StockManagerError):
    """Raised when configuration is invalid or missing"""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        expected_type: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if config_key:
            details["config_key"] = config_key
        if expected_type:
            details["expected_type"] = expected_type

        super().__init__(
            message=message,
            code="CONFIG_001",
            details=details,
            recoverable=False,
            **kwargs,
        )
