# =============================================================================
# stock_core/offline/__init__.py
# Local-First Architecture for the Stock Manager
# =============================================================================
"""
Local-First Architecture Module

The catalog lives on the device. The cloud holds a copy so the user can move
between devices; it is never required for day-to-day work.

Architecture:
------------
┌─────────────────────────────────────────────────────────────────┐
│                    LOCAL-FIRST ARCHITECTURE                      │
├─────────────────────────────────────────────────────────────────┤
│                                                                  │
│   ┌──────────────────────────────────────────────────────────┐  │
│   │                  InventoryService                         │  │
│   │         (Single API - the UI uses this only)              │  │
│   └──────────────────────────────────────────────────────────┘  │
│              │ write-through            │ login / logout         │
│              ▼                          ▼                        │
│   ┌──────────────────┐        ┌──────────────────┐              │
│   │    LocalStore    │        │  SessionManager  │              │
│   │     (SQLite)     │        │ (stock_core.auth)│              │
│   └──────────────────┘        └──────────────────┘              │
│              │                          │                        │
│              ▼                          ▼                        │
│   ┌──────────────────┐        ┌──────────────────┐              │
│   │  InventoryState  │◄──────►│    SyncEngine    │              │
│   │   (ViewState)    │        │ debounce / pull  │              │
│   └──────────────────┘        └──────────────────┘              │
│                                         │                        │
│                                         ▼                        │
│                               ┌──────────────────┐              │
│                               │   CloudAdapter   │              │
│                               │ local│drive│supa │              │
│                               └──────────────────┘              │
└─────────────────────────────────────────────────────────────────┘

Usage:
------
from stock_core.offline import get_inventory_service

service = get_inventory_service()
service.login(user)
service.add_category(category)
print(service.state.categories)
"""

from stock_core.offline.local_store import LocalStore

from stock_core.offline.state import (
    InventoryState,
    ViewState,
    ORIGIN_EDIT,
    ORIGIN_LOAD,
    ORIGIN_REMOTE,
    ORIGIN_RESET,
)

from stock_core.offline.debounce import Debouncer

from stock_core.offline.sync_engine import (
    SyncEngine,
    SyncState,
    Session,
)

from stock_core.offline.inventory_service import (
    InventoryService,
    get_inventory_service,
)

__all__ = [
    # Local Store
    "LocalStore",
    # State Tree
    "InventoryState",
    "ViewState",
    "ORIGIN_EDIT",
    "ORIGIN_LOAD",
    "ORIGIN_REMOTE",
    "ORIGIN_RESET",
    # Sync
    "Debouncer",
    "SyncEngine",
    "SyncState",
    "Session",
    # Inventory Service (Main API)
    "InventoryService",
    "get_inventory_service",
]
