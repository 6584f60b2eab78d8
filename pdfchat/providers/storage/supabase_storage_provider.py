"""Supabase Storage provider implementing IObjectStorageProvider.

Talks to the Storage REST API directly over the shared
``httpx.AsyncClient``.  Objects are written to
``pdfs/<epoch-millis>-<filename>`` with ``x-upsert: false`` so an upload
never overwrites an existing object, and the public URL is returned as
the document's ``file_path``.
"""

from __future__ import annotations

import time
from urllib.parse import quote

import httpx

from pdfchat.interfaces.storage_provider import IObjectStorageProvider
from pdfchat.utils.errors import StorageError
from pdfchat.utils.logging import get_logger

_OBJECT_PREFIX = "pdfs"


class SupabaseStorageProvider(IObjectStorageProvider):
    """Uploads files to a Supabase Storage bucket.

    The ``httpx.AsyncClient`` is injected for testability.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        base_url: str,
        service_role_key: str,
        bucket: str,
    ) -> None:
        self._http = http_client
        self._base_url = base_url.rstrip("/")
        self._key = service_role_key
        self._bucket = bucket
        self._logger = get_logger(__name__)

    def _object_path(self, filename: str) -> str:
        safe_name = filename.replace("/", "_").replace("\\", "_") or "document.pdf"
        return f"{_OBJECT_PREFIX}/{int(time.time() * 1000)}-{safe_name}"

    def public_url(self, object_path: str) -> str:
        return (
            f"{self._base_url}/storage/v1/object/public/"
            f"{self._bucket}/{quote(object_path)}"
        )

    async def upload(self, data: bytes, filename: str, content_type: str = "application/pdf") -> str:
        object_path = self._object_path(filename)
        url = f"{self._base_url}/storage/v1/object/{self._bucket}/{quote(object_path)}"
        headers = {
            "Authorization": f"Bearer {self._key}",
            "apikey": self._key,
            "Content-Type": content_type or "application/pdf",
            "x-upsert": "false",
        }
        try:
            response = await self._http.post(url, content=data, headers=headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise StorageError(
                message=f"Upload rejected with HTTP {exc.response.status_code}: {exc.response.text[:200]}",
                provider_name=self.get_provider_name(),
            ) from exc
        except httpx.HTTPError as exc:
            raise StorageError(
                message=f"Upload request failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        self._logger.info(
            "supabase_upload_complete",
            bucket=self._bucket,
            object_path=object_path,
            size=len(data),
        )
        return self.public_url(object_path)

    def get_provider_name(self) -> str:
        return "supabase"
