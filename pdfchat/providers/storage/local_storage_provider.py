"""Filesystem-backed IObjectStorageProvider for development and tests."""

from __future__ import annotations

import asyncio
import time
from pathlib import Path

from pdfchat.interfaces.storage_provider import IObjectStorageProvider
from pdfchat.utils.errors import StorageError
from pdfchat.utils.logging import get_logger


class LocalStorageProvider(IObjectStorageProvider):
    """Writes uploads under ``root_dir/pdfs/`` and returns the file path."""

    def __init__(self, root_dir: str) -> None:
        self._root = Path(root_dir)
        self._logger = get_logger(__name__)

    async def upload(self, data: bytes, filename: str, content_type: str = "application/pdf") -> str:
        safe_name = Path(filename).name or "document.pdf"
        target = self._root / "pdfs" / f"{int(time.time() * 1000)}-{safe_name}"
        try:
            await asyncio.to_thread(self._write, target, data)
        except OSError as exc:
            raise StorageError(
                message=f"Could not write {target}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        self._logger.info("local_upload_complete", path=str(target), size=len(data))
        return str(target)

    @staticmethod
    def _write(target: Path, data: bytes) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        # "xb" refuses to overwrite, matching the no-upsert remote behaviour.
        with open(target, "xb") as f:
            f.write(data)

    def get_provider_name(self) -> str:
        return "local"
