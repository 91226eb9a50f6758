"""Application factory: configuration, database, middleware, routers and metrics.

``create_app`` accepts an engine so tests can run the whole HTTP surface
against a private in-memory database.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.config import settings
from .core.errors import http_exception_handler, inventory_exception_handler, validation_exception_handler
from .core.exceptions import InventoryError
from .core.logging import configure_logging
from .crud.devices import build_event_bus
from .db import session as db_session
from .db.migrate import run_migrations
from .middlewares import RequestIdMiddleware

# Importing the models registers their tables on ``Base.metadata``.
from .models import device as _device  # noqa: F401
from .models import order as _order  # noqa: F401
from .routers import api_devices, api_orders, api_stock
from .services.events import OrderEventBus
from .services.order_ids import IdAllocator, allocator_from_settings

logger = logging.getLogger(__name__)


def create_app(
    *,
    engine: Engine | None = None,
    allocator: IdAllocator | None = None,
    bus: OrderEventBus | None = None,
) -> FastAPI:
    configure_logging(settings.LOG_LEVEL, json_output=settings.LOG_JSON)

    bind = engine or db_session.engine
    db_session.Base.metadata.create_all(bind=bind)
    applied = run_migrations(bind)
    if applied:
        logger.info("db.migrated", extra={"extra_data": {"columns": applied}})

    app = FastAPI(title=settings.APP_NAME)
    app.state.order_ids = allocator or allocator_from_settings(settings)
    app.state.order_events = bus or build_event_bus()

    if engine is not None:
        factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)

        def _get_db():
            db = factory()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[db_session.get_db] = _get_db

    app.add_middleware(RequestIdMiddleware)
    if settings.ALLOWED_ORIGINS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.ALLOWED_ORIGINS,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(InventoryError, inventory_exception_handler)

    app.include_router(api_orders.router)
    app.include_router(api_devices.router)
    app.include_router(api_stock.router)

    @app.get("/health")
    async def health() -> dict[str, bool]:
        return {"ok": True}

    Instrumentator().instrument(app).expose(app, include_in_schema=False)
    return app


app = create_app()

__all__ = ["app", "create_app"]
