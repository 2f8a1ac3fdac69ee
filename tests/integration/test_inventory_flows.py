# =============================================================================
# tests/integration/test_inventory_flows.py
# End-to-end flows through InventoryService with the in-memory cloud
# =============================================================================

import threading
import time

import pytest

from stock_core.errors import SaleError, SessionError
from stock_core.models import Category, Product
from stock_core.offline import InventoryService

pytestmark = pytest.mark.integration


@pytest.fixture
def stocked_service(service, memory_cloud, sample_user, sample_snapshot):
    """Signed in with the sample dataset already in the cloud"""
    memory_cloud.push(sample_user.identity, sample_snapshot)
    memory_cloud.push_count = 0
    assert service.login(sample_user).success
    return service


class TestLogin:

    def test_first_login_starts_empty(self, service, sample_user):
        result = service.login(sample_user)

        assert result.success
        assert result.metadata == {"remote_found": False, "remote_ok": True}
        assert service.current_user == sample_user
        assert service.state.products == ()
        assert service.state.earnings == 0.0
        assert not service.state.is_loading

    def test_login_loads_remote_snapshot(self, stocked_service, local_store, sample_snapshot):
        state = stocked_service.state

        assert [c.id for c in state.categories] == ["c1", "c2"]
        assert len(state.products) == 3
        assert state.earnings == 680.0
        assert local_store.snapshot().normalized() == sample_snapshot.normalized()

    def test_empty_email_is_refused(self, service):
        from stock_core.models import User

        result = service.login(User(email="   "))

        assert result.error_code == "AUTH_001"
        assert service.current_user is None

    def test_switching_users_never_mixes_data(self, service, local_store, sample_user, other_user):
        service.login(sample_user)
        service.add_category(Category(id="mine", name="Mine"))
        assert service.manual_sync().success

        service.login(other_user)
        assert local_store.snapshot().is_empty
        assert service.state.categories == ()

        service.login(sample_user)
        assert [c.id for c in service.state.categories] == ["mine"]

    def test_unreachable_cloud_holds_back_pushes(self, service, memory_cloud, sample_user, notifier):
        memory_cloud.online = False

        result = service.login(sample_user)
        service.add_category(Category(id="offline", name="Offline"))

        assert result.success
        assert result.metadata["remote_ok"] is False
        assert "warning" in notifier.levels()
        assert not service.engine.push_pending

        memory_cloud.online = True
        assert service.manual_sync().success
        assert [c.id for c in memory_cloud.pull(sample_user.identity).categories] == ["offline"]

        service.add_category(Category(id="later", name="Later"))
        assert service.engine.push_pending

    def test_restore_on_restart(self, service, memory_cloud, local_store, sample_user, test_settings):
        service.login(sample_user)
        service.add_category(Category(id="kept", name="Kept"))
        service.manual_sync()
        service.engine.end_session()

        restarted = InventoryService(settings=test_settings, store=local_store, adapter=memory_cloud)
        try:
            user = restarted.initialize()

            assert user == sample_user
            assert restarted.current_user == sample_user
            assert [c.id for c in restarted.state.categories] == ["kept"]
            assert restarted.initialize() == sample_user
        finally:
            restarted.engine.end_session()

    def test_restore_without_saved_user(self, service):
        assert service.initialize() is None
        assert service.current_user is None
        assert not service.state.is_loading


class TestLogout:

    def test_logout_clears_everything(self, stocked_service, local_store):
        reloads = []
        stocked_service.reload_hook = lambda: reloads.append(True)

        result = stocked_service.logout()

        assert result.success
        assert reloads == [True]
        assert stocked_service.current_user is None
        assert local_store.get_user() is None
        assert local_store.snapshot().is_empty
        assert stocked_service.state.products == ()
        assert stocked_service.engine.subscription_count == 0

    def test_logout_survives_failing_reload_hook(self, stocked_service):
        def broken():
            raise RuntimeError("no page")

        stocked_service.reload_hook = broken
        assert stocked_service.logout().success

    def test_remote_changes_after_logout_are_ignored(self, stocked_service, memory_cloud, local_store, sample_user):
        stocked_service.logout()

        memory_cloud.save_document(sample_user.identity, "categories", Category(id="late", name="Late"))

        assert local_store.get_all("categories") == []
        assert stocked_service.state.categories == ()

    def test_logout_keeps_cloud_copy(self, stocked_service, memory_cloud, sample_user):
        stocked_service.logout()
        assert memory_cloud.pull(sample_user.identity).earnings == 680.0


class TestMutations:

    def test_mutations_require_sign_in(self, service):
        with pytest.raises(SessionError):
            service.add_category(Category(id="c", name="C"))
        with pytest.raises(SessionError):
            service.record_sale("p1", 1, 10)
        with pytest.raises(SessionError):
            service.delete_category("c1")

    def test_add_is_write_through(self, logged_in_service, local_store):
        logged_in_service.add_category({"id": "c1", "name": "Spices"})
        logged_in_service.add_product(
            Product(id="p1", name="Cumin", category_id="c1", price="250/kg", quantity=-3)
        )

        assert local_store.get_item("categories", "c1").name == "Spices"
        assert local_store.get_item("products", "p1").quantity == 0
        assert logged_in_service.state.find_product("p1").quantity == 0

    def test_add_replaces_same_id(self, logged_in_service):
        logged_in_service.add_category(Category(id="c1", name="Spices"))
        logged_in_service.add_category(Category(id="c1", name="Herbs"))

        assert [c.name for c in logged_in_service.state.categories] == ["Herbs"]

    def test_partial_sale(self, stocked_service, local_store):
        sale = stocked_service.record_sale("p1", 3, 100)

        assert sale.product_name == "Cumin"
        assert sale.product_id == "p1"
        assert sale.total == 300.0
        assert stocked_service.state.find_product("p1").quantity == 2
        assert stocked_service.state.earnings == 980.0
        assert stocked_service.state.sales[0] == sale
        assert local_store.get_item("products", "p1").quantity == 2
        assert local_store.get_earnings() == 980.0
        assert local_store.get_item("sales", sale.id) == sale

    def test_selling_remaining_stock_removes_product(self, stocked_service, local_store):
        stocked_service.record_sale("p2", 2, 400)

        assert stocked_service.state.find_product("p2") is None
        assert local_store.get_item("products", "p2") is None
        assert stocked_service.state.earnings == 1480.0

    @pytest.mark.parametrize("product_id,quantity,price", [
        ("p1", 0, 10),
        ("p1", -2, 10),
        ("p1", 1, -5),
        ("p1", "many", 10),
        ("missing", 1, 10),
    ])
    def test_rejected_sale_changes_nothing(self, stocked_service, local_store, product_id, quantity, price):
        with pytest.raises(SaleError):
            stocked_service.record_sale(product_id, quantity, price)

        assert local_store.get_earnings() == 680.0
        assert len(local_store.get_all("sales")) == 2
        assert stocked_service.state.earnings == 680.0

    def test_delete_category_cascades(self, stocked_service, local_store):
        removed = stocked_service.delete_category("c1")

        assert removed == 2
        assert [c.id for c in stocked_service.state.categories] == ["c2"]
        assert [p.id for p in stocked_service.state.products] == ["p3"]
        assert [p.id for p in local_store.get_all("products")] == ["p3"]
        assert local_store.get_item("categories", "c1") is None
        # past sales stay readable after their product is gone
        assert len(stocked_service.state.sales) == 2

    def test_delete_product(self, stocked_service, local_store):
        stocked_service.delete_product("p3")

        assert stocked_service.state.find_product("p3") is None
        assert local_store.get_item("products", "p3") is None

    def test_state_listener_sees_edits(self, logged_in_service):
        origins = []
        unsubscribe = logged_in_service.subscribe_state(lambda state, origin: origins.append(origin))

        logged_in_service.add_category(Category(id="c1", name="Spices"))
        unsubscribe()
        logged_in_service.add_category(Category(id="c2", name="Drinks"))

        assert origins == ["edit"]


class TestCloudSync:

    def test_burst_of_edits_pushes_once(self, logged_in_service, memory_cloud, wait):
        for i in range(5):
            logged_in_service.add_category(Category(id=f"c{i}", name=f"Category {i}"))

        assert wait(lambda: memory_cloud.push_count == 1)
        time.sleep(0.4)

        assert memory_cloud.push_count == 1
        assert len(memory_cloud.pushed[-1].categories) == 5

    def test_manual_sync_pushes_immediately(self, stocked_service, memory_cloud, sample_user, notifier):
        stocked_service.record_sale("p3", 4, 30)

        result = stocked_service.manual_sync()

        assert result.success
        assert "synced_at" in result.metadata
        assert ("success", "Cloud sync completed") in notifier.notices
        assert memory_cloud.pull(sample_user.identity).earnings == 800.0
        assert not stocked_service.engine.push_pending

    def test_remote_edit_reaches_store_and_state(self, stocked_service, memory_cloud, local_store, sample_user):
        remote = Product(id="p9", name="Salt", category_id="c1", price="20", quantity=7)

        memory_cloud.save_document(sample_user.identity, "products", remote)

        assert local_store.get_item("products", "p9") == remote
        assert stocked_service.state.find_product("p9") == remote
        assert not stocked_service.engine.push_pending

    def test_remote_edit_waits_for_running_sale(self, stocked_service, memory_cloud, local_store, sample_user):
        remote = Product(id="p9", name="Salt", category_id="c1", price="20", quantity=7)
        worker = threading.Thread(
            target=memory_cloud.save_document, args=(sample_user.identity, "products", remote)
        )

        with stocked_service._write_lock:
            worker.start()
            time.sleep(0.1)
            stocked_service.record_sale("p1", 1, 250)
        worker.join(2)

        stored = {p.id: p for p in local_store.get_all("products")}
        in_state = {p.id: p for p in stocked_service.state.products}
        assert in_state == stored
        assert "p9" in in_state

    def test_remote_delete_reaches_state(self, stocked_service, memory_cloud, sample_user):
        memory_cloud.delete_document(sample_user.identity, "products", "p1")
        assert stocked_service.state.find_product("p1") is None

    def test_shutdown_flushes_pending_push(self, logged_in_service, memory_cloud, sample_user):
        logged_in_service.add_category(Category(id="c1", name="Spices"))
        assert logged_in_service.engine.push_pending

        logged_in_service.shutdown()

        assert [c.id for c in memory_cloud.pull(sample_user.identity).categories] == ["c1"]

    def test_status(self, stocked_service):
        status = stocked_service.get_status()

        assert status["user"] == "owner@shop.com"
        assert status["products"] == 3
        assert status["sync"]["subscriptions"] == 3


class TestImportExport:

    def test_import_replaces_dataset_and_pushes(
        self, logged_in_service, memory_cloud, local_store, sample_user, sample_snapshot, wait
    ):
        logged_in_service.add_category(Category(id="old", name="Old"))

        result = logged_in_service.import_snapshot(sample_snapshot.to_dict())

        assert result.success
        assert result.metadata == {"categories": 2, "products": 3, "sales": 2}
        assert local_store.snapshot().normalized() == sample_snapshot.normalized()
        assert wait(lambda: memory_cloud.pushed and memory_cloud.pushed[-1].normalized() == sample_snapshot.normalized())

    def test_export_then_import_restores(self, stocked_service, tmp_path, sample_snapshot):
        path = stocked_service.export_snapshot(tmp_path / "exports")
        stocked_service.delete_category("c1")

        result = stocked_service.import_snapshot(path)

        assert result.success
        assert stocked_service.state.to_snapshot().normalized() == sample_snapshot.normalized()

    def test_export_defaults_to_backup_dir(self, stocked_service, test_settings):
        path = stocked_service.export_snapshot()
        assert path.parent == test_settings.backup_dir

    def test_import_requires_sign_in(self, service, sample_snapshot):
        assert service.import_snapshot(sample_snapshot.to_dict()).error_code == "AUTH_001"

    def test_import_refused_during_sync(self, stocked_service, sample_snapshot, notifier):
        with stocked_service.engine.exclusive():
            result = stocked_service.import_snapshot(sample_snapshot.to_dict())

        assert result.error_code == "SYNC_BUSY"
        assert notifier.levels()[-1] == "warning"

    def test_invalid_backup_leaves_data_untouched(self, stocked_service, local_store, notifier):
        result = stocked_service.import_snapshot(b"not json at all")

        assert not result.success
        assert result.error_code == "DATA_002"
        assert len(local_store.get_all("products")) == 3
        assert notifier.levels()[-1] == "error"

    def test_non_utf8_backup_is_a_failed_import(self, stocked_service, local_store):
        result = stocked_service.import_snapshot(b'{"categories": [], "earnings": "\xff"}')

        assert result.error_code == "DATA_002"
        assert local_store.get_earnings() == 680.0
