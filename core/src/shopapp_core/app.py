from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.templating import Jinja2Templates
from starlette.exceptions import HTTPException as StarletteHTTPException

from shopapp_core import __version__
from shopapp_core.api.models import fail
from shopapp_core.api.routes import router as api_router
from shopapp_core.config import (
    apply_env_overrides,
    load_core_config,
    resolve_configured_paths,
    resolve_static_dir,
)
from shopapp_core.db import resolve_db_path
from shopapp_core.db.migrations import prepare_session_storage
from shopapp_core.home import ensure_shopapp_layout, resolve_shopapp_home
from shopapp_core.shopify.gdpr import gdpr_webhook_handlers
from shopapp_core.shopify.oauth import build_auth_router
from shopapp_core.shopify.webhooks import build_webhook_router
from shopapp_core.ui.router import router as ui_router

logger = logging.getLogger(__name__)


def _status_to_code(status_code: int) -> str:
    if status_code == 400:
        return "bad_request"
    if status_code == 401:
        return "unauthorized"
    if status_code == 403:
        return "forbidden"
    if status_code == 404:
        return "not_found"
    if status_code == 422:
        return "validation_error"
    if 400 <= status_code < 500:
        return "client_error"
    return "server_error"


def create_app() -> FastAPI:
    home = resolve_shopapp_home()
    paths = ensure_shopapp_layout(home)
    config = apply_env_overrides(load_core_config(paths))
    paths = resolve_configured_paths(paths, config)
    db_path = resolve_db_path(paths)
    static_dir = resolve_static_dir(config)

    @asynccontextmanager
    async def _lifespan(app: FastAPI):
        log_path = paths.logs_dir / "app.log"
        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=config.logging.max_size_mb * 1024 * 1024,
            backupCount=config.logging.backup_count,
            encoding="utf-8",
        )
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        file_handler.setFormatter(formatter)

        root = logging.getLogger()
        root.setLevel(logging.INFO)
        # Avoid adding duplicate handlers if reloaded
        if not any(isinstance(h, RotatingFileHandler) for h in root.handlers):
            root.addHandler(file_handler)

        logger.info("ShopApp Core starting up")
        logger.info(f"Logs directory: {paths.logs_dir}")

        if not config.shopify.api_key or not config.shopify.api_secret:
            logger.warning(
                "SHOPIFY_API_KEY / SHOPIFY_API_SECRET are not set; auth and webhooks will fail"
            )
        if not static_dir.is_dir():
            logger.warning(
                "Static directory is missing (%s); the shell will not be served", static_dir
            )

        prepare_session_storage(db_path)

        yield

        logger.info("ShopApp Core shutting down")

    app = FastAPI(title="ShopApp Core", version=__version__, lifespan=_lifespan)

    app.state.shopapp_home = home
    app.state.shopapp_paths = paths
    app.state.shopapp_config = config
    app.state.db_path = db_path
    app.state.static_dir = static_dir
    app.state.shell_templates = Jinja2Templates(directory=str(static_dir))

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        response = await call_next(request)
        logger.info(f"{request.method} {request.url.path} - {response.status_code}")
        return response

    @app.exception_handler(RequestValidationError)
    async def _validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content=fail(
                code="validation_error",
                message="Request validation failed",
                details=exc.errors(),
            ).model_dump(mode="json"),
        )

    @app.exception_handler(HTTPException)
    async def _http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=fail(
                code=_status_to_code(exc.status_code),
                message=str(exc.detail),
            ).model_dump(mode="json"),
            headers=exc.headers,
        )

    @app.exception_handler(StarletteHTTPException)
    async def _starlette_http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=fail(
                code=_status_to_code(exc.status_code),
                message=exc.detail if isinstance(exc.detail, str) else "HTTP error",
            ).model_dump(mode="json"),
            headers=exc.headers,
        )

    @app.exception_handler(Exception)
    async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content=fail(code="internal_error", message="Internal server error").model_dump(
                mode="json"
            ),
        )

    # Auth and webhooks sit under /api but must stay reachable without a session.
    app.include_router(build_auth_router(config.shopify))
    app.include_router(
        build_webhook_router(
            config.shopify.webhooks_path,
            gdpr_webhook_handlers(config.shopify.webhooks_path),
        )
    )
    app.include_router(api_router)

    @app.get("/healthz")
    async def healthz() -> dict[str, str]:
        return {"status": "ok"}

    # Catch-all: static assets, then the shell document. Must be registered last.
    app.include_router(ui_router)

    return app
