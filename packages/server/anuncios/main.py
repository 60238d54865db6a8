"""
Anuncios API Server

Entry point for the FastAPI application.
"""

import structlog
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from anuncios import __version__
from anuncios.api.pages import router as pages_router
from anuncios.api.v1 import router as api_v1_router
from anuncios.api.v1.auth import router as auth_router
from anuncios.core.config import get_settings
from anuncios.core.database import engine
from anuncios.core.errors import register_exception_handlers
from anuncios.core.gate import SubscriptionGateMiddleware
from anuncios.core.middleware import CSRFMiddleware, SecurityHeadersMiddleware
from anuncios.core.redis import close_redis, get_redis

settings = get_settings()
log = structlog.get_logger()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Anuncios",
        description="Property listing collections behind a subscription gate.",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    # Middleware: the last one added runs first, so this stack reads
    # security headers -> gate -> CSRF -> CORS from the outside in.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization", "X-CSRF-Token"],
    )
    app.add_middleware(CSRFMiddleware)
    app.add_middleware(SubscriptionGateMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)

    register_exception_handlers(app)

    # Auth routes
    app.include_router(auth_router, prefix="/api/auth", tags=["Authentication"])

    # API routes
    app.include_router(api_v1_router, prefix="/api/v1")

    # Pages
    app.include_router(pages_router)

    @app.get("/health", tags=["System"])
    async def health_check():
        """Health check endpoint for liveness probes."""
        return {"status": "ok"}

    @app.get("/ready", tags=["System"])
    async def readiness_check():
        """Readiness check: the row store and the session store must answer."""
        async with engine.connect() as conn:
            await conn.exec_driver_sql("SELECT 1")
        redis = await get_redis()
        await redis.ping()
        return {"status": "ready"}

    @app.on_event("startup")
    async def on_startup():
        log.info("Anuncios starting", version=__version__, debug=settings.debug)

    @app.on_event("shutdown")
    async def on_shutdown():
        log.info("Anuncios shutting down")
        await close_redis()

    return app


app = create_app()


def run() -> None:
    """Console entry point (``anuncios-server``)."""
    uvicorn.run("anuncios.main:app", host=settings.host, port=settings.port, reload=settings.debug)
