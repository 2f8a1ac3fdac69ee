# =============================================================================
# tests/unit/test_errors.py
# Unit Tests for the error hierarchy and handlers
# =============================================================================

import logging

import pytest

from stock_core.errors import (
    ConfigurationError,
    ErrorContext,
    LocalStoreError,
    SaleError,
    handle_error,
    safe_execute,
    streamlit_notifier,
)


class TestExceptions:

    def test_details_from_keywords(self):
        error = SaleError("Not enough stock", product_id="p1", quantity=3)

        assert error.code == "SALE_001"
        assert error.details == {"product_id": "p1", "quantity": 3}
        assert str(error) == "[SALE_001] Not enough stock | Details: {'product_id': 'p1', 'quantity': 3}"

    def test_to_dict(self):
        data = LocalStoreError("write failed", collection="products").to_dict()

        assert data["error_type"] == "LocalStoreError"
        assert data["code"] == "STORE_001"
        assert data["details"] == {"collection": "products"}
        assert data["recoverable"] is True


class TestHandleError:

    def test_recoverable_error_notifies(self, notifier):
        handle_error(LocalStoreError("disk full"), notify=notifier)
        assert notifier.notices == [("error", "disk full")]

    def test_critical_error_is_marked(self, notifier):
        handle_error(ConfigurationError("bad backend"), notify=notifier)
        assert notifier.notices == [("error", "Critical Error: bad backend")]

    def test_user_message_replaces_text(self, notifier):
        handle_error(ValueError("internal"), notify=notifier, user_message="Something went wrong")
        assert notifier.notices == [("error", "Something went wrong")]

    def test_logged_with_code(self, caplog):
        handle_error(SaleError("oversold"))
        assert "[SALE_001] oversold" in caplog.text


class TestHelpers:

    def test_safe_execute_returns_default(self):
        def broken():
            raise RuntimeError("nope")

        assert safe_execute(broken, default=0.0) == 0.0

    def test_safe_execute_passes_arguments(self):
        assert safe_execute(max, 2, 5) == 5

    def test_safe_execute_reraise(self, notifier):
        def broken():
            raise RuntimeError("nope")

        with pytest.raises(RuntimeError):
            safe_execute(broken, notify=notifier, error_message="Failed", reraise=True)
        assert notifier.notices == [("error", "Failed")]

    def test_error_context_suppresses_recoverable(self, notifier):
        with ErrorContext("Wiping", notify=notifier):
            raise LocalStoreError("locked")

        assert notifier.levels() == ["error"]

    def test_error_context_reraises_when_not_recoverable(self):
        with pytest.raises(LocalStoreError):
            with ErrorContext("Wiping", recoverable=False):
                raise LocalStoreError("locked")

    def test_error_context_success_message(self, notifier):
        with ErrorContext("Exporting", notify=notifier, success_message="Done"):
            pass

        assert notifier.notices == [("success", "Done")]

    def test_streamlit_notifier_logs_outside_app(self, caplog):
        caplog.set_level(logging.INFO)
        streamlit_notifier("warning", "Cloud unreachable")

        assert "[notice:warning] Cloud unreachable" in caplog.text
