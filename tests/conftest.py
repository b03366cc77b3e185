"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

import pytest
from httpx import ASGITransport, AsyncClient
from sqlmodel.ext.asyncio.session import AsyncSession

from tourneygate.auth.identity import JwtIdentityProvider
from tourneygate.config.settings import Settings
from tourneygate.models.database import Tenant, User, UserSession
from tourneygate.models.domain import Principal
from tourneygate.storage.database import build_engine, init_db
from tourneygate.storage.repositories.tenants import DatabaseTenantRepository
from tourneygate.types import ApprovalStatus, Role
from tourneygate.web.app import create_app

if TYPE_CHECKING:
    from pathlib import Path

    from fastapi import FastAPI
    from sqlalchemy.ext.asyncio import AsyncEngine


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    """Settings pointing at a file-backed SQLite database per test."""
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'gate.db'}",
        secret_key="test-secret-key-with-enough-length",
        environment="test",
        lookup_timeout_seconds=2.0,
        ensure_placeholder_on_startup=False,
    )


@pytest.fixture()
async def async_engine(settings: Settings):
    """SQLite engine with all tables created."""
    engine = build_engine(settings)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture()
def tenant_repo(async_engine: AsyncEngine, settings: Settings) -> DatabaseTenantRepository:
    return DatabaseTenantRepository(
        async_engine,
        placeholder_slug=settings.placeholder_tenant_slug,
        auto_approve=settings.auto_approve_new_tenants,
        trial_days=settings.tenant_trial_days,
    )


@pytest.fixture()
async def placeholder(tenant_repo: DatabaseTenantRepository) -> Tenant:
    return await tenant_repo.ensure_placeholder_tenant()


@pytest.fixture()
def make_tenant(async_engine: AsyncEngine) -> Callable[..., Awaitable[Tenant]]:
    async def _make(
        slug: str = "arena",
        approval_status: ApprovalStatus = ApprovalStatus.APPROVED,
        is_active: bool = True,
        invite_code: str | None = None,
    ) -> Tenant:
        async with AsyncSession(async_engine) as session:
            tenant = Tenant(
                name=slug.title(),
                slug=slug,
                approval_status=approval_status.value,
                is_active=is_active,
                invite_code=invite_code,
            )
            session.add(tenant)
            await session.commit()
            await session.refresh(tenant)
            return tenant

    return _make


@pytest.fixture()
def make_user(async_engine: AsyncEngine) -> Callable[..., Awaitable[User]]:
    async def _make(
        email: str = "player@example.com",
        tenant_id: str | None = None,
        role: Role = Role.ATHLETE,
        approval_status: ApprovalStatus = ApprovalStatus.APPROVED,
        document_number: str | None = None,
        sessions: int = 0,
    ) -> User:
        async with AsyncSession(async_engine) as session:
            user = User(
                email=email,
                name=email.split("@")[0],
                tenant_id=tenant_id,
                role=role.value,
                approval_status=approval_status.value,
                document_number=document_number,
            )
            session.add(user)
            await session.flush()
            for _ in range(sessions):
                session.add(UserSession(user_id=user.id, tenant_id=tenant_id))
            await session.commit()
            await session.refresh(user)
            return user

    return _make


@pytest.fixture()
def identity(settings: Settings) -> JwtIdentityProvider:
    return JwtIdentityProvider(settings)


@pytest.fixture()
def bearer(identity: JwtIdentityProvider) -> Callable[[User | Principal], dict[str, str]]:
    """Build an Authorization header for a user row or principal."""

    def _headers(who: User | Principal) -> dict[str, str]:
        principal = (
            who
            if isinstance(who, Principal)
            else Principal(id=who.id, email=who.email, name=who.name, image=who.image)
        )
        return {"Authorization": f"Bearer {identity.issue_token(principal)}"}

    return _headers


@pytest.fixture()
def app(settings: Settings, async_engine: AsyncEngine, identity: JwtIdentityProvider) -> FastAPI:
    return create_app(settings, engine=async_engine, identity_provider=identity)


@pytest.fixture()
async def client(app: FastAPI):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

