# =============================================================================
# stock_core/errors/handlers.py
# Error Handling Utilities for the Stock Manager data layer
# =============================================================================

from __future__ import annotations
import traceback
from typing import Optional, Callable, TypeVar

import streamlit as st
from streamlit import runtime

from stock_core.logging import get_logger
from .exceptions import StockManagerError

logger = get_logger(__name__)

T = TypeVar("T")

# (level, message) -> None, level is one of "success", "info", "warning", "error"
Notifier = Callable[[str, str], None]


def streamlit_notifier(level: str, message: str) -> None:
    """
    Default notifier: transient Streamlit notice when a script run is active,
    plain log line otherwise (background threads, tests, CLI).
    """
    if not runtime.exists():
        logger.info(f"[notice:{level}] {message}")
        return

    if level == "error":
        st.error(message)
    elif level == "warning":
        st.warning(message)
    else:
        st.toast(message)


def handle_error(
    error: Exception,
    notify: Optional[Notifier] = None,
    log_error: bool = True,
    user_message: Optional[str] = None,
) -> None:
    """
    Centralized error handling function.

    Args:
        error: The exception to handle
        notify: Where to send the user-visible notice (None = no notice)
        log_error: Whether to log the error
        user_message: Custom message to show user (uses error message if None)
    """
    if isinstance(error, StockManagerError):
        message = user_message or error.message
        code = error.code
        details = error.details
        recoverable = error.recoverable
    else:
        message = user_message or str(error)
        code = "UNKNOWN"
        details = {"traceback": traceback.format_exc()}
        recoverable = True

    if log_error:
        logger.error(
            f"[{code}] {message}",
            extra={"details": details},
            exc_info=error,
        )

    if notify is not None:
        if recoverable:
            notify("error", message)
        else:
            notify("error", f"Critical Error: {message}")


def safe_execute(
    func: Callable[..., T],
    *args,
    default: Optional[T] = None,
    error_message: Optional[str] = None,
    notify: Optional[Notifier] = None,
    reraise: bool = False,
    **kwargs,
) -> Optional[T]:
    """
    Execute a function with automatic error handling.

    Usage:
        earnings = safe_execute(store.get_earnings, default=0.0)
    """
    try:
        return func(*args, **kwargs)
    except Exception as e:
        handle_error(e, notify=notify, user_message=error_message)
        if reraise:
            raise
        return default


class ErrorContext:
    """
    Context manager for error handling with automatic logging and user feedback.

    Usage:
        with ErrorContext("Wiping local data", notify=None):
            store.clear_all_local_data()
    """

    def __init__(
        self,
        operation: str,
        recoverable: bool = True,
        notify: Optional[Notifier] = None,
        success_message: Optional[str] = None,
    ):
        self.operation = operation
        self.recoverable = recoverable
        self.notify = notify
        self.success_message = success_message

    def __enter__(self) -> ErrorContext:
        logger.info(f"Starting: {self.operation}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        if exc_type is not None:
            if isinstance(exc_val, StockManagerError):
                handle_error(exc_val, notify=self.notify)
            else:
                handle_error(
                    exc_val,
                    notify=self.notify,
                    user_message=f"Error during: {self.operation}",
                )

            # Suppress exception if recoverable
            return self.recoverable

        logger.info(f"Completed: {self.operation}")
        if self.notify is not None and self.success_message:
            self.notify("success", self.success_message)

        return False
