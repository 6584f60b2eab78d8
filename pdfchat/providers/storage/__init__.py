"""Object storage adapters for uploaded source files.

    - SupabaseStorageProvider -- Supabase Storage REST API (production)
    - LocalStorageProvider    -- local filesystem (development / tests)
"""

from pdfchat.providers.storage.local_storage_provider import LocalStorageProvider
from pdfchat.providers.storage.supabase_storage_provider import SupabaseStorageProvider

__all__ = ["LocalStorageProvider", "SupabaseStorageProvider"]
