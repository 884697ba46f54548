from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from uniadmin.db import filters as _filters  # noqa: F401  (register SQLAlchemy filters)
from uniadmin.db.init_db import init_db
from uniadmin.db.session import SessionLocal, engine
from uniadmin.errors import Forbidden, StorageUnavailable, UniAdminError
from uniadmin.logging_config import configure_app_logging
from uniadmin.routers import auth, documents, guests, health, maintenance, rbac, translations, visas
from uniadmin.security.gate import ActionGate
from uniadmin.services.notifier import LoggingNotifier
from uniadmin.settings import Settings, get_settings
from uniadmin.workflow import EventBus, build_registry

logger = logging.getLogger(__name__)

RETRY_AFTER_SECONDS = "5"


def _error_body(exc: UniAdminError | StorageUnavailable, detail: str) -> dict[str, str]:
    return {"detail": detail, "code": exc.code}


def install_error_handlers(app: FastAPI, settings: Settings) -> None:
    """Map the core error taxonomy to HTTP responses."""

    @app.exception_handler(UniAdminError)
    async def _client_error(request: Request, exc: UniAdminError) -> JSONResponse:
        body = _error_body(exc, exc.message)
        if isinstance(exc, Forbidden):
            logger.warning(
                "Forbidden path=%s method=%s missing_action=%s",
                request.url.path,
                request.method,
                exc.missing_action,
            )
            if settings.expose_denied_action and exc.missing_action:
                body["missing_action"] = exc.missing_action
        else:
            logger.info("%s path=%s method=%s: %s", exc.code, request.url.path, request.method, exc.message)
        return JSONResponse(status_code=exc.status_code, content=body)

    @app.exception_handler(StorageUnavailable)
    async def _storage_error(request: Request, exc: StorageUnavailable) -> JSONResponse:
        logger.error("Storage unavailable path=%s method=%s: %s", request.url.path, request.method, exc)
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc, str(exc)),
            headers={"Retry-After": RETRY_AFTER_SECONDS},
        )


def create_app(settings: Settings | None = None, *, init_database: bool = True) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        configure_app_logging(settings.log_level)
        logger.info("App startup beginning")

        if init_database:
            seed_path = settings.resolved_seed_config_path() if settings.seed_on_startup else None
            seeded = init_db(engine, SessionLocal, seed_path, bcrypt_rounds=settings.bcrypt_rounds)
            logger.info("Database initialized (tables ensured, seeded=%s)", seeded)

        yield
        # Shutdown (nothing to clean up)

    app = FastAPI(title="uniadmin", lifespan=lifespan)

    # Built eagerly so the app is usable without running the lifespan (tests).
    bus = EventBus()
    notifier = LoggingNotifier()
    notifier.attach(bus)
    app.state.bus = bus
    app.state.notifier = notifier
    app.state.registry = build_registry(ActionGate(), bus)

    install_error_handlers(app, settings)

    app.include_router(health.router)
    app.include_router(auth.router)
    app.include_router(rbac.router)
    app.include_router(documents.router)
    app.include_router(guests.router)
    app.include_router(visas.router)
    app.include_router(translations.router)
    app.include_router(maintenance.router)

    return app


app = create_app()
