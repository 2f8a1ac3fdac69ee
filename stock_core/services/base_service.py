# =============================================================================
# stock_core/services/base_service.py
# Result container and base class shared by the services
# =============================================================================

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Optional

from stock_core.errors import Notifier, StockManagerError
from stock_core.logging import LogContext, get_logger


@dataclass
class ServiceResult:
    """
    Outcome of a user-triggered operation (manual sync, import, login).

    Truthy on success. ``error_code`` carries the exception code
    (``SYNC_001``, ``DATA_002`` ...) or a flow code such as ``SYNC_BUSY``.
    """
    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None

    def __bool__(self) -> bool:
        return self.success

    @classmethod
    def ok(cls, data: Any = None, metadata: Dict[str, Any] = None) -> ServiceResult:
        return cls(success=True, data=data, metadata=metadata)

    @classmethod
    def fail(
        cls,
        error: str,
        error_code: str = "UNKNOWN",
        metadata: Dict[str, Any] = None
    ) -> ServiceResult:
        return cls(success=False, error=error, error_code=error_code, metadata=metadata)

    @classmethod
    def from_exception(cls, e: Exception) -> ServiceResult:
        """Failed result carrying the code and details of a StockManagerError"""
        if isinstance(e, StockManagerError):
            return cls(success=False, error=e.message, error_code=e.code, metadata=e.details)
        return cls(success=False, error=str(e), error_code="EXCEPTION")


class BaseService:
    """
    Common plumbing for services: a class-named logger, timed operation
    logging and a notifier for user-visible notices.

    Usage:
        class ExportService(BaseService):
            def export(self) -> ServiceResult:
                with self.log_operation("Exporting backup"):
                    path = ...
                self._notify("success", "Backup saved")
                return ServiceResult.ok(path)
    """

    def __init__(self, notify: Optional[Notifier] = None):
        self.logger = get_logger(self.__class__.__name__)
        self.notify = notify

    def log_operation(self, operation: str) -> LogContext:
        return LogContext(self.logger, operation)

    def _notify(self, level: str, message: str) -> None:
        """Forward a notice; a broken notifier is logged, never raised."""
        if self.notify is None:
            return
        try:
            self.notify(level, message)
        except Exception as e:
            self.logger.error(f"Error in notifier: {e}")
