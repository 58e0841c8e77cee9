# portal/main.py
import logging
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from portal.config import Settings, settings as default_settings
from portal.core.bootstrap import ensure_default_admin
from portal.core.db import Database
from portal.core.errors import AppError
from portal.core.middleware import BodySizeLimitMiddleware, RateLimitMiddleware, SecurityHeadersMiddleware
from portal.core.schema import ensure_schema
from portal.core.security import resolve_jwt_secret
from portal.services.storage import build_storage

from portal.api.routers import (
    admin,
    answers,
    auth,
    categories,
    events,
    playbooks,
    questions,
    resources,
    team,
    users,
)

logger = logging.getLogger("uvicorn.error")

ROUTERS = (auth, users, admin, resources, playbooks, team, questions, answers, categories, events)


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    field = ".".join(str(p) for p in first.get("loc", ()) if p not in ("body", "query", "path", "form"))
    return f"{field}: {first.get('msg', 'invalid value')}" if field else first.get("msg", "Invalid request")


def _install_error_handlers(app: FastAPI, production: bool) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        return JSONResponse({"error": exc.message}, status_code=exc.status_code)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse({"error": exc.detail}, status_code=exc.status_code, headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse({"error": _validation_message(exc)}, status_code=400)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        # Anything not raised as AppError ends up here
        logger.exception("[Global Error] %s %s", request.method, request.url.path)
        message = "Internal server error" if production else (str(exc) or "Internal server error")
        return JSONResponse({"error": message}, status_code=500)


def create_app(settings: Settings | None = None, database: Database | None = None, storage=None) -> FastAPI:
    """
    Build the application with its own database adapter and storage backend.

    Args:
        settings: Configuration (defaults to the process-wide settings)
        database: Persistence adapter (defaults to one over settings.sqlite_db_path)
        storage: Object storage backend (defaults to build_storage(settings))

    Raises:
        RuntimeError: JWT_SECRET missing while ENV=production
    """
    settings = settings or default_settings
    database = database or Database(settings.sqlite_db_path)
    storage = storage or build_storage(settings)

    app = FastAPI(title=settings.APP_NAME)
    app.state.settings = settings
    app.state.jwt_secret = resolve_jwt_secret(settings)
    app.state.db = database
    app.state.storage = storage
    # httpx transport for the resource stream proxy (None = real network)
    app.state.stream_transport = None

    # Middleware: the last one added runs first
    app.add_middleware(BodySizeLimitMiddleware, max_bytes=settings.max_json_body_bytes)
    app.add_middleware(RateLimitMiddleware, max_requests=settings.rate_limit_max,
                       window_sec=settings.rate_limit_window_sec)
    app.add_middleware(SecurityHeadersMiddleware, production=settings.is_production)
    if settings.CORS_ORIGINS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.CORS_ORIGINS,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    _install_error_handlers(app, settings.is_production)

    @app.on_event("startup")
    async def on_startup():
        added = await ensure_schema(database)
        if added:
            logger.info("[Migration] %d column(s) added", len(added))
        # Ensure there's a default admin account on first run
        await ensure_default_admin(database)

    @app.on_event("shutdown")
    async def on_shutdown():
        await database.shutdown()

    # REST
    for module in ROUTERS:
        app.include_router(module.router, prefix="/api")

    @app.get("/api/health")
    async def health():
        return {
            "status": "ok",
            "env": settings.env,
            "uploadsPath": settings.uploads_path,
            "dbPath": settings.sqlite_db_path,
        }

    # Local uploads are served by the app itself
    if not storage.is_remote:
        Path(storage.root).mkdir(parents=True, exist_ok=True)
        app.mount(storage.url_prefix, StaticFiles(directory=storage.root), name="uploads")

    return app


app = create_app()
