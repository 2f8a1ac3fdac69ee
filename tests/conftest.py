# =============================================================================
# tests/conftest.py
# Pytest Configuration and Fixtures
# =============================================================================

import time
from typing import Callable, List, Tuple
from unittest.mock import MagicMock

import pytest

from stock_core.cloud import MemoryCloudAdapter
from stock_core.config import build_settings
from stock_core.models import Category, Product, SaleRecord, Snapshot, User
from stock_core.offline import InventoryService, InventoryState, LocalStore


# =============================================================================
# SAMPLE DATA FIXTURES
# =============================================================================

@pytest.fixture
def sample_user():
    """Signed-in shop owner"""
    return User(email="Owner@Shop.com", name="Owner", picture="", access_token="token-owner")


@pytest.fixture
def other_user():
    """Second account used for user-switch scenarios"""
    return User(email="other@shop.com", name="Other")


@pytest.fixture
def sample_categories():
    return [
        Category(id="c1", name="Spices", image="spices.png"),
        Category(id="c2", name="Drinks"),
    ]


@pytest.fixture
def sample_products():
    return [
        Product(id="p1", name="Cumin", category_id="c1", price="250/kg", quantity=5, barcode="111"),
        Product(id="p2", name="Pepper", category_id="c1", price="400/kg", quantity=2, barcode="222"),
        Product(id="p3", name="Water", category_id="c2", price="30", quantity=24, barcode="333"),
    ]


@pytest.fixture
def sample_sales():
    return [
        SaleRecord(
            id="1700000000000",
            product_id="p1",
            product_name="Cumin",
            product_image="",
            quantity=2,
            sold_at_price=250.0,
            timestamp=1700000000000,
        ),
        SaleRecord(
            id="1700000100000",
            product_id="p3",
            product_name="Water",
            product_image="",
            quantity=6,
            sold_at_price=30.0,
            timestamp=1700000100000,
        ),
    ]


@pytest.fixture
def sample_snapshot(sample_categories, sample_products, sample_sales):
    """Full dataset matching the sample entities"""
    return Snapshot(
        categories=list(sample_categories),
        products=list(sample_products),
        sales=list(sample_sales),
        earnings=680.0,
    )


# =============================================================================
# COMPONENT FIXTURES
# =============================================================================

@pytest.fixture
def local_store(tmp_path):
    """Fresh SQLite store in a temp directory"""
    store = LocalStore(tmp_path / "inventory.db", cleanup_timeout=2.0)
    yield store
    store.close()


@pytest.fixture
def memory_cloud():
    return MemoryCloudAdapter()


@pytest.fixture
def inventory_state():
    return InventoryState()


class NotifierRecorder:
    """Collects (level, message) notices instead of rendering them"""

    def __init__(self):
        self.notices: List[Tuple[str, str]] = []

    def __call__(self, level: str, message: str) -> None:
        self.notices.append((level, message))

    def levels(self) -> List[str]:
        return [level for level, _ in self.notices]


@pytest.fixture
def notifier():
    return NotifierRecorder()


@pytest.fixture
def test_settings(tmp_path):
    """Settings with a short debounce so timer behaviour is testable"""
    return build_settings({
        "data_dir": tmp_path,
        "cloud_backend": "memory",
        "debounce_seconds": 0.2,
        "cleanup_timeout": 2.0,
    })


@pytest.fixture
def service(test_settings, local_store, memory_cloud, notifier):
    """InventoryService wired to the temp store and the in-memory cloud"""
    svc = InventoryService(
        settings=test_settings,
        store=local_store,
        adapter=memory_cloud,
        notify=notifier,
    )
    yield svc
    svc.engine.end_session()


@pytest.fixture
def logged_in_service(service, sample_user):
    result = service.login(sample_user)
    assert result.success
    return service


# =============================================================================
# MOCK FIXTURES
# =============================================================================

@pytest.fixture
def mock_supabase():
    """Mock Supabase client"""
    mock_client = MagicMock()
    mock_client.table.return_value.select.return_value.eq.return_value.order.return_value \
        .range.return_value.execute.return_value.data = []
    mock_client.table.return_value.select.return_value.eq.return_value.execute.return_value.data = []
    return mock_client


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def wait_for(predicate: Callable[[], bool], timeout: float = 3.0, interval: float = 0.02) -> bool:
    """Poll ``predicate`` until it is true or ``timeout`` elapses"""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture
def wait():
    """The wait_for helper, for tests that exercise background threads"""
    return wait_for
