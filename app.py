"""
app.py: FastAPI application factory and startup lifecycle.

This is the ASGI application object imported by uvicorn.
It wires the store, the allocator, the status ledger and the auth service,
registers routers, and runs startup initialization.

Usage (via launcher):
    python main.py

Usage (direct uvicorn):
    uvicorn app:app --reload
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from campus_ledger.controllers.auth_controller import router as auth_router
from campus_ledger.controllers.finance_controller import router as finance_router
from campus_ledger.controllers.hostel_controller import router as hostel_router
from campus_ledger.controllers.hr_controller import router as hr_router
from campus_ledger.controllers.library_controller import router as library_router
from campus_ledger.repository.data_repository import DataRepository
from campus_ledger.services.allocation_service import CapacityAllocator
from campus_ledger.services.auth_service import AuthService
from campus_ledger.services.ledger_service import StatusLedger
from campus_ledger.utils.clock import Clock
from campus_ledger.utils.config import Settings, get_settings
from campus_ledger.utils.logger import get_logger


logger = get_logger(__name__)


def create_app(settings: Optional[Settings] = None, clock: Optional[Clock] = None) -> FastAPI:
    """
    Build and wire the FastAPI application.

    Every service shares one repository and is injected through app.state,
    so tests can build an isolated app per temporary database.
    """
    settings = settings or get_settings()

    repository = DataRepository(settings)
    allocator = CapacityAllocator(repository=repository, settings=settings, clock=clock)
    ledger = StatusLedger(repository=repository, settings=settings, clock=clock)
    auth_service = AuthService(settings=settings, clock=clock)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Run startup initialization before accepting requests."""
        _startup(app)
        yield

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )

    app.include_router(auth_router)
    app.include_router(hostel_router)
    app.include_router(library_router)
    app.include_router(finance_router)
    app.include_router(hr_router)

    app.state.settings = settings
    app.state.repository = repository
    app.state.allocator = allocator
    app.state.ledger = ledger
    app.state.auth_service = auth_service

    return app


def _startup(app: FastAPI) -> None:
    """
    Idempotent startup sequence. Safe to re-run on server restarts.

    The schema must exist before any seeding; demo seeding is opt-in and
    skipped when rooms already exist.
    """
    settings: Settings = app.state.settings
    repository: DataRepository = app.state.repository

    logger.info("Startup: initializing database schema")
    repository.initialize_database()

    if settings.seed_demo_data:
        logger.info("Startup: seeding demo campus for tenant %s", settings.demo_tenant_id)
        inserted = repository.seed_demo_data_if_empty()
        logger.info("Startup: %d demo rows inserted", inserted)

    if not app.state.auth_service.auth_enabled:
        logger.warning("ADMIN_TOKEN is not set; every login will be rejected")

    logger.info("Startup complete, ledger ready")


# Module-level app object for uvicorn
app = create_app()
