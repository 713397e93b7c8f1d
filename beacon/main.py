"""
BEACON Assistant — Application Entry Point

FastAPI application exposing the RAG assistant core (ingestion, retrieval,
question answering and the streamed learning assistant).

Start locally:
    uvicorn beacon.main:app --host 0.0.0.0 --port 8001 --reload
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from beacon.api.v1.rag import router as rag_router
from beacon.core.config import settings
from beacon.core.database import dispose_engine, init_schema
from beacon.core.exceptions import InputError, InvariantError, ServiceError
from beacon.core.logging import setup_logging
from beacon.services.factory import Services, build_services

logger = logging.getLogger(__name__)


def create_app(services: Services | None = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        services: Pre-built service graph. When None (production), the
            graph is built from settings at startup and closed at shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """
        Application lifespan handler.

        Startup:
            1. Configure logging.
            2. Build the service graph (unless one was injected).
            3. Create the pgvector schema when that backend is selected.

        Shutdown:
            1. Close provider clients.
            2. Dispose the database engine.
        """
        setup_logging()
        logger.info("Starting %s...", settings.PROJECT_NAME)

        owned = services is None
        graph = services if services is not None else build_services(settings)
        app.state.services = graph

        if owned and settings.VECTOR_BACKEND == "pgvector":
            try:
                await init_schema()
            except Exception:
                logger.exception("Database initialization failed")
                raise

        yield

        if owned:
            await graph.aclose()
            await dispose_engine()
        logger.info("%s shutdown complete", settings.PROJECT_NAME)

    app = FastAPI(
        title=settings.PROJECT_NAME,
        description="Retrieval-augmented learning assistant with streamed answers.",
        version="0.1.0",
        lifespan=lifespan,
    )

    @app.exception_handler(InputError)
    async def input_error_handler(request: Request, exc: InputError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(ServiceError)
    async def service_error_handler(
        request: Request, exc: ServiceError
    ) -> JSONResponse:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=503, content={"detail": str(exc)})

    @app.exception_handler(InvariantError)
    async def invariant_error_handler(
        request: Request, exc: InvariantError
    ) -> JSONResponse:
        logger.error(
            "%s %s violated an invariant: %s", request.method, request.url.path, exc
        )
        return JSONResponse(status_code=500, content={"detail": str(exc)})

    app.include_router(rag_router, prefix="/api/v1/rag", tags=["RAG"])

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check for load balancers and orchestrators."""
        return {
            "status": "ok",
            "service": "beacon-rag",
            "environment": settings.ENVIRONMENT,
        }

    return app


app = create_app()
