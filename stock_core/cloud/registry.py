# =============================================================================
# stock_core/cloud/registry.py
# Backend selection from configuration
# =============================================================================

from __future__ import annotations
from typing import Dict, Type

from stock_core.config import Settings
from stock_core.errors import ConfigurationError
from stock_core.logging import get_logger

from .base import CloudAdapter
from .drive_blob import DriveBlobAdapter
from .local_blob import LocalBlobAdapter
from .memory import MemoryCloudAdapter
from .supabase_collections import SupabaseCollectionsAdapter

logger = get_logger(__name__)

# Registry of available backends
CLOUD_ADAPTERS: Dict[str, Type[CloudAdapter]] = {
    "local": LocalBlobAdapter,
    "drive": DriveBlobAdapter,
    "supabase": SupabaseCollectionsAdapter,
    "memory": MemoryCloudAdapter,
}


def create_cloud_adapter(settings: Settings) -> CloudAdapter:
    """
    Build the backend named by ``settings.cloud_backend``.

    Usage:
        adapter = create_cloud_adapter(get_settings())
        adapter.push("user@example.com", snapshot)
    """
    backend = settings.cloud_backend
    if backend not in CLOUD_ADAPTERS:
        raise ConfigurationError(f"Unknown cloud backend '{backend}'", config_key="cloud_backend")

    if backend == "local":
        adapter: CloudAdapter = LocalBlobAdapter(settings.cloud_dir)
    elif backend == "drive":
        adapter = DriveBlobAdapter(
            file_name=settings.drive_file_name,
            timeout=settings.request_timeout,
        )
    elif backend == "supabase":
        adapter = SupabaseCollectionsAdapter(
            url=settings.supabase_url,
            key=settings.supabase_key,
            poll_interval=settings.poll_interval,
            earnings_source=settings.earnings_source,
        )
    else:
        adapter = MemoryCloudAdapter()

    logger.info(f"Cloud backend: {adapter.name} (live updates: {adapter.supports_live_updates})")
    return adapter
