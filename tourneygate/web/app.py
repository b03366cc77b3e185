"""FastAPI application factory."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from tourneygate import __version__
from tourneygate.auth.identity import JwtIdentityProvider
from tourneygate.config.logging import setup_logging
from tourneygate.config.settings import Settings, get_settings
from tourneygate.exceptions import OnboardingError
from tourneygate.gate.middleware import TenantGateMiddleware
from tourneygate.storage.database import build_engine, init_db
from tourneygate.storage.repositories.memberships import MembershipLoader
from tourneygate.storage.repositories.tenants import DatabaseTenantRepository
from tourneygate.web.health import check_health
from tourneygate.web.middleware import RequestIDMiddleware
from tourneygate.web.routes.auth import router as auth_router
from tourneygate.web.routes.onboarding import router as onboarding_router
from tourneygate.web.routes.pages import router as pages_router
from tourneygate.web.routes.tenant import router as tenant_router

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.ext.asyncio import AsyncEngine

    from tourneygate.auth.identity import IdentityProvider

logger = structlog.get_logger(__name__)


def create_app(
    settings: Settings | None = None,
    *,
    engine: AsyncEngine | None = None,
    identity_provider: IdentityProvider | None = None,
    membership_loader: MembershipLoader | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Collaborators are constructed here once (or injected by the caller)
    and shared through ``app.state`` and middleware constructor arguments.
    """
    settings = settings or get_settings()
    setup_logging(log_level=settings.log_level, json_output=not settings.debug)

    owns_engine = engine is None
    engine = engine or build_engine(settings)
    identity_provider = identity_provider or JwtIdentityProvider(settings)
    membership_loader = membership_loader or MembershipLoader(
        engine,
        placeholder_slug=settings.placeholder_tenant_slug,
        timeout=settings.lookup_timeout_seconds,
    )
    tenant_repo = DatabaseTenantRepository(
        engine,
        placeholder_slug=settings.placeholder_tenant_slug,
        auto_approve=settings.auto_approve_new_tenants,
        trial_days=settings.tenant_trial_days,
    )

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        if settings.create_tables_on_startup:
            await init_db(engine)
        if settings.ensure_placeholder_on_startup:
            await tenant_repo.ensure_placeholder_tenant()
        yield
        if owns_engine:
            await engine.dispose()

    app = FastAPI(
        title="TourneyGate",
        description="Tenant resolution and access gate for the tournament platform",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.engine = engine
    app.state.identity_provider = identity_provider
    app.state.membership_loader = membership_loader
    app.state.tenant_repo = tenant_repo

    @app.exception_handler(OnboardingError)
    async def onboarding_error_handler(_request: Request, exc: OnboardingError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.message, "error": exc.code},
        )

    # Middleware: last added runs first
    app.add_middleware(
        TenantGateMiddleware,
        settings=settings,
        identity_provider=identity_provider,
        membership_loader=membership_loader,
    )
    app.add_middleware(RequestIDMiddleware)

    @app.get("/api/health")
    async def health_check() -> dict[str, object]:
        return await check_health(engine)

    app.include_router(auth_router)
    app.include_router(onboarding_router)
    app.include_router(tenant_router)
    app.include_router(pages_router)

    logger.info("app_created", environment=settings.environment)
    return app
