# =============================================================================
# stock_core/data/backup.py
# JSON backup file: the three collections plus the earnings total
# =============================================================================

from __future__ import annotations
import json
from datetime import date
from pathlib import Path
from typing import Any, Dict, Optional, Union

from stock_core.errors import BackupError
from stock_core.logging import get_logger
from stock_core.models import COLLECTIONS, Snapshot

logger = get_logger(__name__)

BACKUP_PREFIX = "nabil_inventory_backup_"
BACKUP_KEYS = set(COLLECTIONS) | {"earnings"}


def backup_filename(day: Optional[date] = None) -> str:
    """nabil_inventory_backup_YYYY-MM-DD.json"""
    return f"{BACKUP_PREFIX}{(day or date.today()).isoformat()}.json"


def export_snapshot(snapshot: Snapshot, directory: Path, day: Optional[date] = None) -> Path:
    """Write a human-readable backup file and return its path."""
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / backup_filename(day)

    try:
        path.write_text(
            json.dumps(snapshot.to_dict(), indent=2, ensure_ascii=False),
            encoding="utf-8",
        )
    except OSError as e:
        raise BackupError(f"Could not write backup: {e}", path=str(path)) from e

    logger.info(f"Backup written to {path}")
    return path


def _decode(raw: bytes) -> str:
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise BackupError(f"Backup is not valid UTF-8: {e}") from e


def _read_source(source: Any) -> Dict[str, Any]:
    if isinstance(source, dict):
        return source

    if isinstance(source, str) and source.lstrip().startswith("{"):
        text = source
    elif isinstance(source, (str, Path)):
        try:
            text = Path(source).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise BackupError(f"Could not read backup: {e}", path=str(source)) from e
    elif hasattr(source, "read"):
        # Uploaded file / open handle
        raw = source.read()
        text = _decode(raw) if isinstance(raw, bytes) else raw
    elif isinstance(source, bytes):
        text = _decode(source)
    else:
        raise BackupError(f"Unsupported backup source: {type(source).__name__}")

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise BackupError(f"Backup is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise BackupError("Backup must be a JSON object")
    return data


def load_backup(source: Union[Dict[str, Any], str, Path, bytes, Any]) -> Snapshot:
    """
    Parse a backup from a dict, a file path, raw JSON text/bytes or a
    file-like object.

    Raises:
        BackupError: unreadable, not JSON, or not a snapshot
    """
    data = _read_source(source)

    if not BACKUP_KEYS & set(data):
        raise BackupError(
            "Backup contains none of the expected keys",
            details={"expected": sorted(BACKUP_KEYS), "found": sorted(data)[:10]},
        )

    try:
        return Snapshot.from_dict(data)
    except (KeyError, TypeError, ValueError) as e:
        raise BackupError(f"Malformed backup record: {e}") from e
