# =============================================================================
# stock_core/cloud/drive_blob.py
# Google Drive appDataFolder backend (single well-known file)
# =============================================================================
"""
Stores the snapshot as one JSON file inside the user's private Drive
application folder (``appDataFolder``), talking to the Drive v3 REST API.

push = find-by-name, then overwrite-by-id if found or create otherwise, so the
folder never holds duplicates. Every request carries the session's bearer
token. No live updates.
"""

from __future__ import annotations
import json
import time
import uuid
from typing import Any, Dict, Optional

import requests

from stock_core.errors import CloudSyncError
from stock_core.logging import get_logger
from stock_core.models import Snapshot, User

from .base import CloudAdapter

logger = get_logger(__name__)


class DriveBlobAdapter(CloudAdapter):

    name = "drive"

    API_URL = "https://www.googleapis.com/drive/v3"
    UPLOAD_URL = "https://www.googleapis.com/upload/drive/v3"
    SPACE = "appDataFolder"

    def __init__(
        self,
        file_name: str = "nabil_inventory_data.json",
        timeout: int = 30,
        session: Optional[requests.Session] = None,
    ):
        self.file_name = file_name
        self.timeout = timeout
        self.session = session or requests.Session()
        self._token: Optional[str] = None

    # =========================================================================
    # CREDENTIALS
    # =========================================================================

    def authorize(self, user: User) -> None:
        self._token = user.access_token
        if not self._token:
            logger.warning("Drive backend authorized without an access token; syncs will fail")

    def revoke(self) -> None:
        self._token = None

    def _auth_headers(self) -> Dict[str, str]:
        if not self._token:
            raise CloudSyncError("No access token for Drive", backend=self.name)
        return {"Authorization": f"Bearer {self._token}"}

    # =========================================================================
    # HTTP
    # =========================================================================

    def _request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        headers = kwargs.pop("headers", {})
        headers.update(self._auth_headers())
        try:
            response = self.session.request(
                method=method,
                url=url,
                headers=headers,
                timeout=self.timeout,
                **kwargs,
            )
            response.raise_for_status()
            return response
        except requests.exceptions.RequestException as e:
            raise CloudSyncError(
                f"Drive request failed: {e}",
                backend=self.name,
                operation=f"{method} {url}",
            ) from e

    def _find_file_id(self) -> Optional[str]:
        response = self._request(
            "GET",
            f"{self.API_URL}/files",
            params={
                "spaces": self.SPACE,
                "q": f"name = '{self.file_name}' and trashed = false",
                "fields": "files(id, name, modifiedTime)",
                "pageSize": 10,
            },
        )
        files = response.json().get("files", [])
        if len(files) > 1:
            logger.warning(f"{len(files)} copies of {self.file_name} in {self.SPACE}; using the first")
        return files[0]["id"] if files else None

    def _create_file(self, body: str) -> None:
        boundary = f"stock-{uuid.uuid4().hex}"
        metadata = {
            "name": self.file_name,
            "parents": [self.SPACE],
            "mimeType": "application/json",
        }
        multipart = (
            f"--{boundary}\r\n"
            "Content-Type: application/json; charset=UTF-8\r\n\r\n"
            f"{json.dumps(metadata)}\r\n"
            f"--{boundary}\r\n"
            "Content-Type: application/json\r\n\r\n"
            f"{body}\r\n"
            f"--{boundary}--"
        )
        self._request(
            "POST",
            f"{self.UPLOAD_URL}/files",
            params={"uploadType": "multipart"},
            headers={"Content-Type": f"multipart/related; boundary={boundary}"},
            data=multipart.encode("utf-8"),
        )

    def _update_file(self, file_id: str, body: str) -> None:
        self._request(
            "PATCH",
            f"{self.UPLOAD_URL}/files/{file_id}",
            params={"uploadType": "media"},
            headers={"Content-Type": "application/json"},
            data=body.encode("utf-8"),
        )

    # =========================================================================
    # BACKEND PRIMITIVES
    # =========================================================================

    def _push(self, identity: str, snapshot: Snapshot) -> None:
        payload = snapshot.to_dict()
        payload["owner"] = identity
        payload["lastSync"] = int(time.time() * 1000)
        body = json.dumps(payload)

        file_id = self._find_file_id()
        if file_id:
            self._update_file(file_id, body)
        else:
            self._create_file(body)
            logger.info(f"Created {self.file_name} in {self.SPACE}")

    def _pull(self, identity: str) -> Optional[Snapshot]:
        file_id = self._find_file_id()
        if not file_id:
            return None

        response = self._request(
            "GET",
            f"{self.API_URL}/files/{file_id}",
            params={"alt": "media"},
        )
        data = response.json()

        owner = data.get("owner")
        if owner and owner != identity:
            raise CloudSyncError(
                "Drive file belongs to another identity",
                backend=self.name,
                details={"owner": owner, "identity": identity},
            )
        return Snapshot.from_dict(data)

    def close(self) -> None:
        self.session.close()
