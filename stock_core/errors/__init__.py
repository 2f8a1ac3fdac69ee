# =============================================================================
# stock_core/errors/__init__.py
# Centralized Error Handling for the Stock Manager data layer
# =============================================================================

from .exceptions import (
    StockManagerError,
    LocalStoreError,
    CloudSyncError,
    SaleError,
    SessionError,
    BackupError,
    ConfigurationError,
)

from .handlers import (
    Notifier,
    handle_error,
    safe_execute,
    ErrorContext,
    streamlit_notifier,
)

__all__ = [
    # Exceptions
    "StockManagerError",
    "LocalStoreError",
    "CloudSyncError",
    "SaleError",
    "SessionError",
    "BackupError",
    "ConfigurationError",
    # Handlers
    "Notifier",
    "handle_error",
    "safe_execute",
    "ErrorContext",
    "streamlit_notifier",
]
