"""
FastAPI application factory for the Vault API.

Creates and configures the FastAPI application with middleware,
exception handlers and routers.
"""

import logging
import uuid as uuid_lib
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from vault_api import __version__
from vault_api.config import VaultSettings, get_settings
from vault_api.errors import register_exception_handlers
from vault_api.routes.vault import router as vault_router, public_router as vault_public_router
from vault_api.structured_logger import configure_logging, request_id_ctx

logger = logging.getLogger(__name__)


def create_app(settings: Optional[VaultSettings] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    This factory function encapsulates:
    - Logging configuration
    - CORS and request ID middleware
    - Vault exception handlers
    - Vault routers and the health endpoint

    Returns:
        Configured FastAPI application instance
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level, structured=settings.log_json)

    app = FastAPI(
        title="Vault API",
        description="Hierarchical, access-controlled file and folder vault",
        version=__version__,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    @app.middleware("http")
    async def add_request_id(request: Request, call_next):
        """Add unique request ID for tracing and structured logging"""
        request_id = request.headers.get("X-Request-ID", str(uuid_lib.uuid4()))
        token = request_id_ctx.set(request_id)
        try:
            response = await call_next(request)
        finally:
            request_id_ctx.reset(token)
        response.headers["X-Request-ID"] = request_id
        return response

    app.include_router(vault_router)
    app.include_router(vault_public_router)

    @app.get("/health", tags=["Health"])
    async def health():
        return {"status": "ok", "version": __version__, "storage_provider": settings.storage_provider}

    logger.info(f"Vault API created ({settings.environment}, storage: {settings.storage_provider})")
    return app
