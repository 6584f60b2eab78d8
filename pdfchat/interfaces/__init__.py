"""Public interface definitions for all external services and stores.

Every external API or database in pdfchat is accessed through the abstract
base classes defined in this package.  Concrete adapters live in
``pdfchat/providers/`` and are built once in ``pdfchat/main.py`` during
application startup, then injected into services and routes.

CONCRETE PROVIDER MAP:
    Interface                  →  Concrete implementations (in pdfchat/providers/)
    ─────────────────────────────────────────────────────────────────────
    IEmbeddingProvider         →  OpenAIEmbeddingProvider
    ILLMProvider               →  OpenAILLMProvider
    IObjectStorageProvider     →  SupabaseStorageProvider, LocalStorageProvider
    ITextExtractor             →  PyMuPDFTextExtractor
    IIdentityProvider          →  ClerkIdentityProvider
    IDocumentStore             →  PostgresDocumentStore
    IChatStore                 →  PostgresChatStore
    IUserStore                 →  PostgresUserStore
"""

from pdfchat.interfaces.chat_store import IChatStore, IUserStore
from pdfchat.interfaces.document_store import IDocumentStore
from pdfchat.interfaces.embedding_provider import IEmbeddingProvider
from pdfchat.interfaces.identity_provider import IIdentityProvider
from pdfchat.interfaces.llm_provider import ILLMProvider
from pdfchat.interfaces.storage_provider import IObjectStorageProvider
from pdfchat.interfaces.text_extractor import ITextExtractor

__all__ = [
    "IChatStore",
    "IDocumentStore",
    "IEmbeddingProvider",
    "IIdentityProvider",
    "ILLMProvider",
    "IObjectStorageProvider",
    "ITextExtractor",
    "IUserStore",
]
