"""
Learnhub API application factory.

Why:
    One function, `create_app`, assembles the FastAPI app: settings, CORS,
    routers, error handlers, the `/uploads` static mount and the lifespan
    that owns the Postgres pool. Tests call it with in-memory services; the
    server runs it through uvicorn's factory mode:

        uvicorn backend.web.main:create_app --factory --port 4000
"""
from __future__ import annotations

from contextlib import asynccontextmanager
import logging
import os
import sys
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from backend.errors import DomainError
from backend.web.config import AppSettings, ensure_secure_config_on_startup, load_settings
from backend.web.responses import domain_error_response, json_private, private_no_store
from backend.web.routes.admin import admin_router
from backend.web.routes.auth import auth_router
from backend.web.routes.instructor import instructor_router
from backend.web.routes.learner import learner_router
from backend.web.wiring import AppServices, open_db_services

logger = logging.getLogger("learnhub.web")


def _should_load_dotenv() -> bool:
    """Decide if we should load a local .env file.

    - Never load under pytest to avoid contaminating test env.
    - Allow explicit opt-out/opt-in via LEARNHUB_ENABLE_DOTENV (default true
      outside pytest).
    """
    if "pytest" in sys.modules or os.getenv("PYTEST_CURRENT_TEST"):
        return False
    flag = (os.getenv("LEARNHUB_ENABLE_DOTENV", "true") or "").strip().lower()
    return flag in ("1", "true", "yes")


def _load_dotenv_if_enabled() -> None:
    if _should_load_dotenv():
        from dotenv import load_dotenv

        load_dotenv()


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(DomainError)
    async def _domain_error(request: Request, exc: DomainError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.code)
        return domain_error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def _request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        # Malformed bodies are a client error like any other validation failure.
        return JSONResponse(
            {"error": "bad_request", "detail": "invalid_request_body"},
            status_code=400,
            headers=private_no_store(),
        )

    @app.exception_handler(Exception)
    async def _unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse({"error": "internal_error"}, status_code=500, headers=private_no_store())


def create_app(
    settings: Optional[AppSettings] = None,
    *,
    services: Optional[AppServices] = None,
) -> FastAPI:
    """Build the ASGI app.

    Parameters
    ----------
    settings:
        Defaults to `load_settings()` (environment, plus `.env` outside pytest).
    services:
        Pre-built services (tests). When omitted, the lifespan opens the
        Postgres pool and builds DB-backed services on startup.
    """
    if settings is None:
        _load_dotenv_if_enabled()
        settings = load_settings()
    ensure_secure_config_on_startup(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if app.state.services is not None:
            yield
            return
        built, pool = await open_db_services(settings)
        app.state.services = built
        try:
            yield
        finally:
            app.state.services = None
            await pool.close()
            logger.info("Database pool closed")

    app = FastAPI(title="Learnhub API", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Requested-With", "Accept"],
    )
    _register_error_handlers(app)

    app.include_router(auth_router)
    app.include_router(admin_router)
    app.include_router(instructor_router)
    app.include_router(learner_router)

    @app.get("/", include_in_schema=False)
    async def root():
        return json_private({"ok": True})

    @app.get("/health")
    async def health():
        return json_private({"ok": True})

    os.makedirs(settings.upload_dir, exist_ok=True)
    app.mount("/uploads", StaticFiles(directory=settings.upload_dir), name="uploads")
    return app


__all__ = ["create_app"]
