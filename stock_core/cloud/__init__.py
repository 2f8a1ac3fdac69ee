# =============================================================================
# stock_core/cloud/__init__.py
# Cloud backends behind one interface
# =============================================================================

from .base import (
    CloudAdapter,
    PullResult,
    Subscription,
    PollingSubscription,
    normalize_identity,
)
from .local_blob import LocalBlobAdapter
from .drive_blob import DriveBlobAdapter
from .supabase_collections import SupabaseCollectionsAdapter
from .memory import MemoryCloudAdapter
from .registry import CLOUD_ADAPTERS, create_cloud_adapter

__all__ = [
    "CloudAdapter",
    "PullResult",
    "Subscription",
    "PollingSubscription",
    "normalize_identity",
    "LocalBlobAdapter",
    "DriveBlobAdapter",
    "SupabaseCollectionsAdapter",
    "MemoryCloudAdapter",
    "CLOUD_ADAPTERS",
    "create_cloud_adapter",
]
