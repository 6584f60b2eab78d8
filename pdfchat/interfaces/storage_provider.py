"""Abstract base class for object storage of uploaded source files."""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations: SupabaseStorageProvider, LocalStorageProvider
# Located in: pdfchat/providers/storage/
class IObjectStorageProvider(ABC):
    """Contract for storing the original uploaded bytes."""

    @abstractmethod
    async def upload(self, data: bytes, filename: str, content_type: str = "application/pdf") -> str:
        """Store *data* and return a locator for it.

        Parameters
        ----------
        data:
            Raw file bytes.
        filename:
            Original client-side file name; implementations prefix it to
            avoid collisions and never overwrite an existing object.
        content_type:
            MIME type recorded with the object.

        Returns
        -------
        str
            Public URL (or filesystem path) of the stored object.

        Raises
        ------
        pdfchat.utils.errors.StorageError
            If the upload fails.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"supabase"``."""
