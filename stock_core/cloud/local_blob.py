# =============================================================================
# stock_core/cloud/local_blob.py
# Simulated cloud: one JSON document per user on local disk
# =============================================================================

from __future__ import annotations
import json
import os
import time
from pathlib import Path
from typing import Optional
from urllib.parse import quote

from stock_core.logging import get_logger
from stock_core.models import Snapshot

from .base import CloudAdapter

logger = get_logger(__name__)


class LocalBlobAdapter(CloudAdapter):
    """
    Zero-infrastructure fallback. The whole snapshot is one document keyed
    by the user's identity; every push is a full overwrite, no versioning.
    """

    name = "local"
    KEY_PREFIX = "USER_CLOUD_DATA_"

    def __init__(self, directory: Path):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, identity: str) -> Path:
        # percent-encoding keeps distinct identities in distinct files
        return self.directory / f"{self.KEY_PREFIX}{quote(identity, safe='@.-')}.json"

    def _push(self, identity: str, snapshot: Snapshot) -> None:
        payload = snapshot.to_dict()
        payload["lastSync"] = int(time.time() * 1000)

        path = self._path(identity)
        tmp_path = path.with_suffix(".tmp")
        tmp_path.write_text(json.dumps(payload), encoding="utf-8")
        os.replace(tmp_path, path)

    def _pull(self, identity: str) -> Optional[Snapshot]:
        path = self._path(identity)
        if not path.exists():
            return None
        return Snapshot.from_dict(json.loads(path.read_text(encoding="utf-8")))
