"""
Stock Manager - Streamlit entry point.

Run with:
    streamlit run app.py

The page is a thin client of ``InventoryService``: it renders the current
ViewState and calls the service for every change. All persistence and cloud
sync happen in ``stock_core``.
"""

from __future__ import annotations
import streamlit as st

from stock_core.errors import StockManagerError, streamlit_notifier
from stock_core.logging import setup_logging
from stock_core.models import Category, Product, User, new_record_id
from stock_core.offline import InventoryService, get_inventory_service

# ============================================================================
# PAGE CONFIGURATION
# ============================================================================
st.set_page_config(
    page_title="Stock Manager",
    page_icon="📦",
    layout="wide",
)


@st.cache_resource
def _service() -> InventoryService:
    setup_logging()
    return get_inventory_service(notify=streamlit_notifier)


def _reload() -> None:
    st.session_state.clear()
    st.rerun()


service = _service()
service.reload_hook = _reload
state = service.state


# ============================================================================
# SIGN-IN
# ============================================================================
if service.current_user is None:
    st.title("📦 Stock Manager")
    st.caption("Your inventory, on this device and in your cloud account.")

    with st.form("login_form"):
        email = st.text_input("Email")
        name = st.text_input("Display name")
        token = st.text_input("Drive access token (Drive backend only)", type="password")
        submitted = st.form_submit_button("Sign in", type="primary", use_container_width=True)

    if submitted:
        result = service.login(User(email=email, name=name, access_token=token or None))
        if result:
            st.rerun()
        else:
            st.error(result.error)
    st.stop()


# ============================================================================
# SIDEBAR: account, sync, backup
# ============================================================================
with st.sidebar:
    user = service.current_user
    st.subheader(user.name or user.email)
    st.caption(user.email)

    status = service.get_status()["sync"]
    st.metric("Total earnings", f"{state.earnings:,.2f}")
    st.caption(
        f"Backend: {status['backend']} · last sync: {status['last_success'] or 'never'}"
        + (" · change pending" if status["push_pending"] else "")
    )

    if st.button("🔄 Sync now", use_container_width=True, disabled=status["is_syncing"]):
        service.manual_sync()

    st.divider()
    if st.button("💾 Export backup", use_container_width=True):
        path = service.export_snapshot()
        st.download_button(
            "Download file",
            data=path.read_bytes(),
            file_name=path.name,
            mime="application/json",
            use_container_width=True,
        )

    upload = st.file_uploader("Import backup (JSON)", type=["json"], key="backup_upload")
    if upload is not None and st.button("Replace all data with this file", use_container_width=True):
        if service.import_snapshot(upload):
            st.rerun()

    st.divider()
    confirm_logout = st.checkbox("Local data on this device will be erased")
    if st.button("Sign out", use_container_width=True, disabled=not confirm_logout):
        service.logout()


# ============================================================================
# CATALOG
# ============================================================================
st.title("📦 Inventory")
col1, col2, col3 = st.columns(3)
col1.metric("Categories", len(state.categories))
col2.metric("Products", len(state.products))
col3.metric("Inventory value", f"{service.inventory_value():,.2f}")

tab_catalog, tab_sales, tab_edit = st.tabs(["Catalog", "Sales log", "Add"])

with tab_catalog:
    names = {c.id: c.name for c in state.categories}
    category_id = st.selectbox(
        "Category",
        options=[None] + list(names),
        format_func=lambda cid: "All" if cid is None else names[cid],
    )
    query = st.text_input("Search by name or barcode")
    descending = st.toggle("Z → A")

    for product in service.search_products(query, category_id, descending):
        with st.container(border=True):
            c1, c2, c3 = st.columns([3, 2, 2])
            c1.markdown(f"**{product.name}**  \n{names.get(product.category_id, 'Uncategorized')} · {product.price}")
            c2.metric("In stock", product.quantity)
            with c3.popover("Sell"):
                qty = st.number_input("Quantity", min_value=1, value=1, key=f"qty_{product.id}")
                price = st.number_input(
                    "Unit price", min_value=0.0, value=product.unit_price, key=f"price_{product.id}"
                )
                if st.button("Confirm sale", key=f"sell_{product.id}", type="primary"):
                    try:
                        service.record_sale(product.id, int(qty), float(price))
                        st.rerun()
                    except StockManagerError as e:
                        st.error(e.message)
            if c3.button("Delete", key=f"del_{product.id}"):
                service.delete_product(product.id)
                st.rerun()

    if category_id is not None:
        st.warning("Deleting a category also deletes all of its products.")
        if st.button(f"Delete category '{names[category_id]}'"):
            service.delete_category(category_id)
            st.rerun()

with tab_sales:
    summary = service.sales_summary()
    s1, s2, s3 = st.columns(3)
    s1.metric("Revenue", f"{summary.revenue:,.2f}")
    s2.metric("Units sold", summary.units_sold)
    s3.metric("Average ticket", f"{summary.average_ticket:,.2f}")
    if state.sales:
        st.dataframe(
            service.store.to_dataframe("sales").sort_values("timestamp", ascending=False),
            use_container_width=True,
            hide_index=True,
        )
    else:
        st.info("No sales yet.")

with tab_edit:
    with st.form("category_form", clear_on_submit=True):
        st.subheader("New category")
        cat_name = st.text_input("Name")
        if st.form_submit_button("Add category") and cat_name.strip():
            service.add_category(Category(id=new_record_id(), name=cat_name.strip()))
            st.rerun()

    if state.categories:
        with st.form("product_form", clear_on_submit=True):
            st.subheader("New product")
            prod_name = st.text_input("Name")
            prod_category = st.selectbox(
                "Category", options=[c.id for c in state.categories], format_func=lambda cid: names[cid]
            )
            prod_price = st.text_input("Price (e.g. 250/kg)")
            prod_qty = st.number_input("Quantity", min_value=0, value=0)
            prod_barcode = st.text_input("Barcode")
            if st.form_submit_button("Add product") and prod_name.strip():
                service.add_product(
                    Product(
                        id=new_record_id(),
                        name=prod_name.strip(),
                        category_id=prod_category,
                        price=prod_price.strip() or "0",
                        quantity=int(prod_qty),
                        barcode=prod_barcode.strip(),
                    )
                )
                st.rerun()
