"""pdfchat FastAPI application entry point.

Wires together all providers, services, and routes via dependency injection.
Loads configuration from ``.env`` and ``config/config.yaml`` and configures
structured logging before anything else logs.
"""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import Any

import httpx
import structlog
import uvicorn
from fastapi import FastAPI

from pdfchat.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
    register_exception_handlers,
)
from pdfchat.api.routes import root_router
from pdfchat.api.routes import router as api_router
from pdfchat.config.loader import build_pipeline_config, load_config
from pdfchat.config.settings import Settings
from pdfchat.interfaces.storage_provider import IObjectStorageProvider
from pdfchat.models.pipeline import PipelineConfig
from pdfchat.pipeline.coordinator import IngestionCoordinator
from pdfchat.providers.database import (
    PostgresChatStore,
    PostgresDocumentStore,
    PostgresUserStore,
    create_engine,
    create_session_factory,
    init_db,
)
from pdfchat.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from pdfchat.providers.extraction.pymupdf_extractor import PyMuPDFTextExtractor
from pdfchat.providers.identity.clerk_identity_provider import ClerkIdentityProvider
from pdfchat.providers.llm.openai_provider import OpenAILLMProvider
from pdfchat.providers.storage.local_storage_provider import LocalStorageProvider
from pdfchat.providers.storage.supabase_storage_provider import SupabaseStorageProvider
from pdfchat.services.answer_service import AnswerSynthesizer
from pdfchat.services.chat_service import ChatService
from pdfchat.services.ingestion.chunker import TextChunker
from pdfchat.services.ingestion.embedding_orchestrator import EmbeddingOrchestrator
from pdfchat.services.retrieval_service import RetrievalService
from pdfchat.services.title_service import TitleService
from pdfchat.services.user_service import UserService
from pdfchat.utils.errors import ConfigurationError
from pdfchat.utils.logging import configure_logging, get_logger

# ---------------------------------------------------------------------------
# Module-level settings & logging
# ---------------------------------------------------------------------------

settings = Settings()
config = load_config(settings=settings)

configure_logging(
    log_level=settings.log_level,
    json_output=settings.is_production,
)
_logger: structlog.BoundLogger = get_logger(__name__)

_VERSION = str((config.get("app") or {}).get("version", "0.1.0"))


# ---------------------------------------------------------------------------
# Provider selection
# ---------------------------------------------------------------------------


def _build_storage_provider(
    app_settings: Settings,
    http_client: httpx.AsyncClient,
) -> IObjectStorageProvider:
    """Supabase Storage in deployments; a local directory for development."""
    backend = app_settings.storage_backend.lower()
    if backend == "local":
        return LocalStorageProvider(root_dir=app_settings.local_storage_dir)
    if backend == "supabase":
        if not app_settings.supabase_url or not app_settings.supabase_service_role_key:
            raise ConfigurationError(
                message="SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY are required "
                "when STORAGE_BACKEND=supabase",
            )
        return SupabaseStorageProvider(
            http_client,
            base_url=app_settings.supabase_url,
            service_role_key=app_settings.supabase_service_role_key,
            bucket=app_settings.supabase_bucket_name,
        )
    raise ConfigurationError(message=f"Unknown STORAGE_BACKEND: {app_settings.storage_backend}")


# ---------------------------------------------------------------------------
# Full DI assembly for the FastAPI application
# ---------------------------------------------------------------------------


def _build_all(app_settings: Settings, pipeline_config: PipelineConfig) -> dict[str, Any]:
    """Construct the full dependency graph for the application.

    Returns a flat dict of named components to be stored on ``app.state``.
    """
    http_client = httpx.AsyncClient(timeout=30.0)

    # -- Persistence --
    engine = create_engine(app_settings)
    session_factory = create_session_factory(engine)
    document_store = PostgresDocumentStore(session_factory, dimension=app_settings.embedding_dimension)
    chat_store = PostgresChatStore(session_factory)
    user_store = PostgresUserStore(session_factory)

    # -- External providers --
    embedding_provider = OpenAIEmbeddingProvider(settings=app_settings)
    llm_provider = OpenAILLMProvider(settings=app_settings)
    storage_provider = _build_storage_provider(app_settings, http_client)
    text_extractor = PyMuPDFTextExtractor()
    identity_provider = ClerkIdentityProvider(
        http_client,
        jwks_url=app_settings.clerk_jwks_url,
        secret_key=app_settings.clerk_secret_key,
        api_url=app_settings.clerk_api_url,
        issuer=app_settings.clerk_issuer or None,
    )

    if not embedding_provider.is_available():
        _logger.warning("openai_not_configured", hint="set OPENAI_API_KEY")

    # -- Services --
    chunker = TextChunker(
        chunk_size=pipeline_config.chunk_size,
        overlap=pipeline_config.chunk_overlap,
    )
    orchestrator = EmbeddingOrchestrator(
        embedding_provider,
        document_store,
        batch_size=pipeline_config.embedding_batch_size,
        batch_pause=pipeline_config.embedding_batch_pause_seconds,
    )
    retrieval = RetrievalService(
        embedding_provider,
        document_store,
        default_k=pipeline_config.default_k,
        max_k=pipeline_config.max_k,
    )
    answerer = AnswerSynthesizer(
        llm_provider,
        temperature=pipeline_config.answer_temperature,
        max_tokens=pipeline_config.answer_max_tokens,
    )
    title_service = TitleService(
        llm_provider,
        temperature=pipeline_config.title_temperature,
        max_tokens=pipeline_config.title_max_tokens,
        max_length=pipeline_config.title_max_length,
    )
    coordinator = IngestionCoordinator(
        storage=storage_provider,
        extractor=text_extractor,
        document_store=document_store,
        chat_store=chat_store,
        chunker=chunker,
        orchestrator=orchestrator,
        title_service=title_service,
        config=pipeline_config,
    )
    chat_service = ChatService(chat_store, document_store, retrieval, answerer)
    user_service = UserService(identity_provider, user_store)

    return {
        "settings": app_settings,
        "pipeline_config": pipeline_config,
        "http_client": http_client,
        "engine": engine,
        "embedding_provider": embedding_provider,
        "llm_provider": llm_provider,
        "storage_provider": storage_provider,
        "identity_provider": identity_provider,
        "document_store": document_store,
        "chat_store": chat_store,
        "user_store": user_store,
        "coordinator": coordinator,
        "chat_service": chat_service,
        "user_service": user_service,
    }


# ---------------------------------------------------------------------------
# Application lifespan (startup / shutdown)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _lifespan(application: FastAPI):  # noqa: ANN201
    """Initialise all providers and services on startup, clean up on shutdown."""
    components = _build_all(settings, build_pipeline_config(config))

    for key, value in components.items():
        setattr(application.state, key, value)

    if settings.db_auto_create:
        await init_db(components["engine"])

    application.state.started_at = time.monotonic()
    _logger.info(
        "app_startup",
        version=_VERSION,
        environment=settings.app_env,
        storage=components["storage_provider"].get_provider_name(),
        chat_model=settings.openai_chat_model,
        embedding_model=settings.openai_embedding_model,
    )

    yield

    # -- Shutdown: close outbound clients, release the pool --
    await components["embedding_provider"].close()
    await components["llm_provider"].close()
    await components["http_client"].aclose()
    await components["engine"].dispose()
    _logger.info("app_shutdown", message="clients closed, engine disposed")


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app() -> FastAPI:
    """Build and configure the FastAPI application."""
    application = FastAPI(
        title="pdfchat API",
        version=_VERSION,
        description=(
            "Upload a PDF, watch it being chunked and embedded, then chat "
            "with it: answers are grounded in the document's nearest chunks."
        ),
        lifespan=_lifespan,
    )

    # -- Middleware (order matters: last added = first executed) --
    application.add_middleware(ErrorHandlingMiddleware, expose_details=not settings.is_production)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application, allowed_origins=settings.get_cors_origins())
    register_exception_handlers(application)

    # -- Routes --
    application.include_router(api_router)
    application.include_router(root_router)

    return application


app = create_app()

# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    uvicorn.run(
        "pdfchat.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )
