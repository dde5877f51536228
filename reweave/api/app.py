"""FastAPI application factory for Reweave.

Creates the app with CORS and the transform routes, and wires the shared
services (orchestrator, lock, progress emitter, result store) onto
``app.state``.
"""

import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..core.config import ReweaveSettings, get_settings
from ..core.locks import RepositoryLock
from ..core.transform.fetcher import FileFetcher
from ..core.transform.orchestrator import TransformationOrchestrator
from ..core.transform.progress import ProgressEmitter
from ..core.transform.transformers import TransformerRegistry
from .jobs import JobStore

logger = logging.getLogger(__name__)


def create_app(
    registry: TransformerRegistry,
    fetcher: FileFetcher,
    lock: Optional[RepositoryLock] = None,
    emitter: Optional[ProgressEmitter] = None,
    settings: Optional[ReweaveSettings] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        registry: Transformers available to runs
        fetcher: Source of repository contents
        lock: Repository lock (optional, one is created from settings)
        emitter: Progress emitter (optional)
        settings: Runtime settings (optional, defaults to ``get_settings()``)

    Returns:
        Configured FastAPI application
    """
    settings = settings or get_settings()
    lock = lock or RepositoryLock(ttl_seconds=settings.lock_ttl_seconds)
    emitter = emitter or ProgressEmitter(retention_seconds=settings.job_retention_seconds)

    app = FastAPI(
        title="Reweave API",
        description="Migration plan execution engine",
        version=__version__,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Shared services
    app.state.settings = settings
    app.state.lock = lock
    app.state.emitter = emitter
    app.state.registry = registry
    app.state.orchestrator = TransformationOrchestrator(
        registry=registry,
        fetcher=fetcher,
        progress=emitter,
        lock=lock,
        settings=settings,
    )
    app.state.results = JobStore(retention_seconds=settings.job_retention_seconds)

    from .routes.transform import router as transform_router

    app.include_router(transform_router, prefix="/api")

    @app.get("/api/health")
    async def health_check():
        return {
            "status": "ok",
            "service": "reweave",
            "transformers": len(registry),
            "active_locks": lock.get_active_lock_count(),
        }

    logger.info("FastAPI app created with %d transformers registered", len(registry))
    return app
