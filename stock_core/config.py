# =============================================================================
# stock_core/config.py
# Settings resolution (overrides -> Streamlit secrets -> environment -> defaults)
# =============================================================================

from __future__ import annotations
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import streamlit as st

from stock_core.errors import ConfigurationError
from stock_core.logging import get_logger

logger = get_logger(__name__)

ENV_PREFIX = "STOCK_"
SECRETS_SECTION = "stock"

CLOUD_BACKENDS = ("local", "drive", "supabase", "memory")
EARNINGS_SOURCES = ("stored", "derived")


@dataclass(frozen=True)
class Settings:
    data_dir: Path
    cloud_backend: str = "local"
    debounce_seconds: float = 10.0
    cleanup_timeout: float = 1.0
    poll_interval: float = 5.0
    earnings_source: str = "stored"
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    drive_file_name: str = "nabil_inventory_data.json"
    request_timeout: int = 30

    @property
    def db_path(self) -> Path:
        return self.data_dir / "inventory.db"

    @property
    def cloud_dir(self) -> Path:
        # where the simulated cloud keeps its per-user documents
        return self.data_dir / "cloud"

    @property
    def backup_dir(self) -> Path:
        return self.data_dir / "backups"


def _default_data_dir() -> Path:
    return Path.home() / ".stock_manager"


def _load_secrets() -> Dict[str, Any]:
    """Read the [stock] section of .streamlit/secrets.toml if there is one."""
    try:
        if SECRETS_SECTION in st.secrets:
            return dict(st.secrets[SECRETS_SECTION])
    except Exception as e:
        # No secrets file outside a deployed app
        logger.debug(f"Streamlit secrets not available: {e}")
    return {}


def _load_env() -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    mapping = {
        "data_dir": f"{ENV_PREFIX}DATA_DIR",
        "cloud_backend": f"{ENV_PREFIX}CLOUD_BACKEND",
        "debounce_seconds": f"{ENV_PREFIX}DEBOUNCE_SECONDS",
        "cleanup_timeout": f"{ENV_PREFIX}CLEANUP_TIMEOUT",
        "poll_interval": f"{ENV_PREFIX}POLL_INTERVAL",
        "earnings_source": f"{ENV_PREFIX}EARNINGS_SOURCE",
        "supabase_url": "SUPABASE_URL",
        "supabase_key": "SUPABASE_KEY",
    }
    for key, env_name in mapping.items():
        value = os.getenv(env_name)
        if value:
            values[key] = value
    return values


def _coerce_float(key: str, value: Any) -> float:
    try:
        result = float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{key} must be a number", config_key=key, expected_type="float")
    if result < 0:
        raise ConfigurationError(f"{key} must not be negative", config_key=key)
    return result


def build_settings(values: Dict[str, Any]) -> Settings:
    """Validate raw configuration values into a Settings object."""
    data_dir = Path(values.get("data_dir") or _default_data_dir()).expanduser().resolve()

    backend = str(values.get("cloud_backend", "local")).lower()
    if backend not in CLOUD_BACKENDS:
        raise ConfigurationError(
            f"Unknown cloud backend '{backend}'",
            config_key="cloud_backend",
            details={"allowed": list(CLOUD_BACKENDS)},
        )

    earnings_source = str(values.get("earnings_source", "stored")).lower()
    if earnings_source not in EARNINGS_SOURCES:
        raise ConfigurationError(
            f"Unknown earnings source '{earnings_source}'",
            config_key="earnings_source",
            details={"allowed": list(EARNINGS_SOURCES)},
        )

    settings = Settings(
        data_dir=data_dir,
        cloud_backend=backend,
        debounce_seconds=_coerce_float("debounce_seconds", values.get("debounce_seconds", 10.0)),
        cleanup_timeout=_coerce_float("cleanup_timeout", values.get("cleanup_timeout", 1.0)),
        poll_interval=_coerce_float("poll_interval", values.get("poll_interval", 5.0)),
        earnings_source=earnings_source,
        supabase_url=values.get("supabase_url"),
        supabase_key=values.get("supabase_key"),
    )

    if backend == "supabase" and not (settings.supabase_url and settings.supabase_key):
        raise ConfigurationError(
            "Supabase backend needs supabase_url and supabase_key",
            config_key="supabase_url",
        )
    return settings


def get_settings(**overrides: Any) -> Settings:
    """
    Resolve settings.

    Priority order:
    1) Explicit keyword overrides
    2) Streamlit secrets ([stock] section)
    3) Environment variables (STOCK_*, SUPABASE_URL/KEY)
    4) Defaults
    """
    values: Dict[str, Any] = {}
    values.update(_load_env())
    values.update(_load_secrets())
    values.update({k: v for k, v in overrides.items() if v is not None})

    settings = build_settings(values)
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    return settings
