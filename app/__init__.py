"""Application factory and top-level wiring for the Gadget Inventory service.

This module is the glue that brings together configuration, database setup,
the self-destruct services, API routers and error handling. Reading
``create_app`` top to bottom gives a bird's-eye view of *what* pieces exist,
*when* they are initialised and *how* they interact.
"""

from __future__ import annotations

import logging
import secrets
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Callable

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.engine import Engine
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.config import AppSettings, get_settings
from .core.errors import (
    GadgetError,
    gadget_error_handler,
    http_exception_handler,
    validation_exception_handler,
)
from .db.session import Base
from .db.session import engine as default_engine
from .middlewares import RequestIdMiddleware, SecurityHeadersMiddleware
from .services.confirmations import Clock, ConfirmationRegistry, utcnow
from .services.reaper import ExpiryReaper

# Importing the SQLAlchemy models registers them with the metadata. Without
# this step ``Base.metadata.create_all`` would not know about our tables.
from .models import gadget as _gadget  # noqa: F401
from .models import user as _user  # noqa: F401

logger = logging.getLogger(__name__)


def create_app(
    settings: AppSettings | None = None,
    *,
    engine: Engine | None = None,
    clock: Clock = utcnow,
    token_bytes: Callable[[int], bytes] = secrets.token_bytes,
) -> FastAPI:
    """Build the FastAPI application.

    ``clock`` and ``token_bytes`` are threaded through to the self-destruct
    services so tests can pin time and the generated confirmation codes.
    """

    settings = settings or get_settings()
    bind = engine or default_engine

    # The registry is the only in-memory state shared between requests; one
    # instance lives for the lifetime of the app.
    registry = ConfirmationRegistry(clock=clock)
    reaper = ExpiryReaper(registry, clock=clock, interval_seconds=settings.REAPER_INTERVAL_SECONDS)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # ``create_all`` ensures tables exist for brand-new databases.
        Base.metadata.create_all(bind=bind)
        reaper.start()
        logger.info("Gadget Inventory started")
        try:
            yield
        finally:
            reaper.stop()
            logger.info("Shutdown complete")

    app = FastAPI(
        title=settings.APP_NAME,
        description="Gadget inventory with a confirmed self-destruct sequence",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.confirmations = registry
    app.state.reaper = reaper
    app.state.clock = clock
    app.state.token_bytes = token_bytes
    app.state.challenge_ttl = timedelta(seconds=settings.SELF_DESTRUCT_TTL_SECONDS)
    app.state.max_attempts = settings.SELF_DESTRUCT_MAX_ATTEMPTS

    # ---------- Middleware ----------
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestIdMiddleware)
    if settings.allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.allowed_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    # ---------- Routers ----------
    from .routers import api_auth as api_auth_router
    from .routers import api_gadgets as api_gadgets_router

    app.include_router(api_auth_router.router)
    app.include_router(api_gadgets_router.router)

    # ---------- Exception handling ----------
    app.add_exception_handler(GadgetError, gadget_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    @app.get("/health")
    async def health() -> dict[str, object]:
        return {"ok": True, "pending_self_destructs": len(registry)}

    return app


__all__ = ["create_app"]
