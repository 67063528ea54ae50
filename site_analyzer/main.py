"""
Site Analyzer - Main Application Entry Point
FastAPI application serving the streaming crawl endpoint.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from site_analyzer.api.v1.routes import analyze, health
from site_analyzer.core.config import get_settings
from site_analyzer.core.logging import configure_logging
from site_analyzer.engines.analyzer.spelling import get_spell_checker

logger = structlog.get_logger(__name__)
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Manage application lifecycle: startup and shutdown."""
    configure_logging()
    logger.info("Starting Site Analyzer", version=settings.APP_VERSION, env=settings.ENV)

    # Load the dictionary once, up front, instead of on the first crawl
    get_spell_checker()

    yield

    logger.info("Application shutdown complete")


def create_application() -> FastAPI:
    app = FastAPI(
        title="Site Analyzer API",
        description="Crawls a site and streams per-page SEO, UX, visual and content reports.",
        version=settings.APP_VERSION,
        docs_url="/docs" if settings.ENV != "production" else None,
        redoc_url="/redoc" if settings.ENV != "production" else None,
        lifespan=lifespan,
    )

    # Middleware (no GZip: it would buffer the NDJSON stream)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(health.router, prefix="/health", tags=["Health"])
    app.include_router(analyze.router, prefix="/api/analyze", tags=["Analyze"])

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("Unhandled exception", path=request.url.path, error=str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error", "request_id": request.headers.get("x-request-id")},
        )

    return app


app = create_application()
