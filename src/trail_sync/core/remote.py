"""HTTP client for the remote store.

The remote is a Supabase-style backend: a PostgREST table API under
``/rest/v1`` and an object storage API under ``/storage/v1``.  Every write
is an upsert keyed by primary id, so replaying a queue item is safe.
"""

import logging
import threading
from typing import Any
from urllib.parse import quote

import requests

from ..config import Config
from ..errors import TrailSyncError

logger = logging.getLogger(__name__)


class RemoteStoreError(TrailSyncError):
    """A remote call failed (transport error or non-2xx response).

    Attributes:
        status_code: HTTP status, or ``None`` for transport failures.
    """

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class RemoteStoreClient:
    def __init__(self, config: Config):
        if not config.remote_configured:
            raise ValueError("Remote store URL and key must be configured")
        self.config = config
        self._thread_local = threading.local()
        self.base_url = config.remote_url.rstrip("/")

    def _get_session(self) -> requests.Session:
        """Get or create a thread-local requests.Session."""
        if not hasattr(self._thread_local, "session"):
            self._thread_local.session = self._create_session()
        return self._thread_local.session

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.headers.update(
            {
                "apikey": self.config.remote_key,
                "Authorization": f"Bearer {self.config.remote_key}",
            }
        )
        session.verify = not self.config.insecure
        return session

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        url = path if path.startswith("http") else f"{self.base_url}{path}"
        try:
            response = self._get_session().request(
                method, url, timeout=self.config.timeout, **kwargs
            )
        except requests.RequestException as exc:
            raise RemoteStoreError(f"{method} {path} failed: {exc}") from exc
        if not response.ok:
            raise RemoteStoreError(
                f"{method} {path} returned {response.status_code}: "
                f"{self._error_message(response)}",
                status_code=response.status_code,
            )
        return response

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text[:200] or response.reason
        if isinstance(body, dict):
            return str(body.get("message") or body.get("error") or body)
        return str(body)

    @staticmethod
    def _rows(response: requests.Response) -> list[dict[str, Any]]:
        if not response.content:
            return []
        body = response.json()
        return body if isinstance(body, list) else [body]

    # ------------------------------------------------------------------
    # Tables
    # ------------------------------------------------------------------

    def upsert(
        self, table: str, row: dict[str, Any], on_conflict: str = "id"
    ) -> list[dict[str, Any]]:
        """Insert or replace *row*, matching existing rows on *on_conflict*."""
        response = self._request(
            "POST",
            f"/rest/v1/{table}",
            params={"on_conflict": on_conflict},
            json=[row],
            headers={
                "Prefer": "resolution=merge-duplicates,return=representation"
            },
        )
        return self._rows(response)

    def update(
        self, table: str, values: dict[str, Any], column: str, value: Any
    ) -> list[dict[str, Any]]:
        """Patch rows where *column* equals *value*; returns the updated rows."""
        response = self._request(
            "PATCH",
            f"/rest/v1/{table}",
            params={column: f"eq.{value}", "select": "id"},
            json=values,
            headers={"Prefer": "return=representation"},
        )
        return self._rows(response)

    def delete(self, table: str, column: str, value: Any) -> None:
        self._request(
            "DELETE", f"/rest/v1/{table}", params={column: f"eq.{value}"}
        )

    def select(self, table: str, column: str, value: Any) -> list[dict[str, Any]]:
        response = self._request(
            "GET",
            f"/rest/v1/{table}",
            params={column: f"eq.{value}", "select": "*"},
        )
        return self._rows(response)

    # ------------------------------------------------------------------
    # Object storage
    # ------------------------------------------------------------------

    def upload(
        self,
        bucket: str,
        path: str,
        data: bytes,
        content_type: str = "image/jpeg",
    ) -> None:
        """Upload *data*, replacing any existing object at *path*."""
        self._request(
            "POST",
            f"/storage/v1/object/{bucket}/{quote(path)}",
            data=data,
            headers={"Content-Type": content_type, "x-upsert": "true"},
        )

    def create_signed_url(self, bucket: str, path: str, expires_in: int) -> str:
        """Return an absolute signed URL valid for *expires_in* seconds."""
        response = self._request(
            "POST",
            f"/storage/v1/object/sign/{bucket}/{quote(path)}",
            json={"expiresIn": expires_in},
        )
        signed = response.json().get("signedURL") or response.json().get("signedUrl")
        if not signed:
            raise RemoteStoreError(f"No signed URL returned for {bucket}/{path}")
        if signed.startswith("http"):
            return signed
        return f"{self.base_url}/storage/v1{signed}"

    def download(self, url: str) -> bytes:
        """Fetch the bytes behind a (signed) URL."""
        return self._request("GET", url).content

    def validate_connection(self) -> bool:
        """Check the remote answers an authenticated table query.

        Raises:
            RemoteStoreError: If the remote is unreachable or rejects the key.
        """
        self._request(
            "GET", "/rest/v1/trails", params={"select": "id", "limit": "1"}
        )
        logger.info("Remote store reachable at %s", self.base_url)
        return True
