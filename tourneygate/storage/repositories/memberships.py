"""Membership and tenant reads for the request gate."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, TypeVar

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from tourneygate.exceptions import LookupFailure
from tourneygate.gate.status import build_routing_context
from tourneygate.models.database import Tenant, User
from tourneygate.models.domain import Membership, RoutingContext, TenantRecord
from tourneygate.types import ApprovalStatus, Role

if TYPE_CHECKING:
    from collections.abc import Awaitable

    from sqlalchemy.ext.asyncio import AsyncEngine

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def to_membership(user: User) -> Membership:
    return Membership(
        principal_id=user.id,
        tenant_id=user.tenant_id,
        role=Role(user.role),
        approval_status=ApprovalStatus(user.approval_status),
    )


def to_tenant_record(tenant: Tenant) -> TenantRecord:
    return TenantRecord(
        id=tenant.id,
        slug=tenant.slug,
        approval_status=ApprovalStatus(tenant.approval_status),
        is_active=tenant.is_active,
        plan=tenant.plan,
    )


class MembershipLoader:
    """Reads the facts the gate evaluates. Every read is bounded by ``timeout``.

    Any datastore error or timeout surfaces as ``LookupFailure``; callers
    decide what a failure means for the request.
    """

    def __init__(
        self,
        engine: AsyncEngine,
        placeholder_slug: str = "default",
        timeout: float = 5.0,
    ) -> None:
        self._engine = engine
        self._placeholder_slug = placeholder_slug
        self._timeout = timeout

    async def load_membership(self, principal_id: str) -> Membership:
        user = await self._bounded(self._fetch_user(principal_id), "membership")
        if user is None:
            return Membership.missing(principal_id)
        return to_membership(user)

    async def load_tenant(self, tenant_id: str) -> TenantRecord | None:
        tenant = await self._bounded(self._fetch_tenant(tenant_id), "tenant")
        return to_tenant_record(tenant) if tenant else None

    async def load_placeholder_tenant_id(self) -> str | None:
        return await self._bounded(self._fetch_placeholder_id(), "placeholder_tenant")

    async def load_context(self, principal_id: str) -> RoutingContext:
        """Load everything the evaluator needs and evaluate it.

        Membership and placeholder id are read concurrently; the tenant read
        depends on the membership and follows it. If either concurrent read
        fails, the other is cancelled.
        """
        try:
            async with asyncio.TaskGroup() as group:
                membership_task = group.create_task(self.load_membership(principal_id))
                placeholder_task = group.create_task(self.load_placeholder_tenant_id())
        except ExceptionGroup as exc_group:
            failure = next(
                (exc for exc in exc_group.exceptions if isinstance(exc, LookupFailure)), None
            )
            if failure is None:
                raise
            raise failure from failure.__cause__
        membership = membership_task.result()
        placeholder_id = placeholder_task.result()
        tenant = await self.load_tenant(membership.tenant_id) if membership.tenant_id else None
        if membership.tenant_id and tenant is None:
            logger.warning(
                "membership_tenant_missing",
                principal_id=principal_id,
                tenant_id=membership.tenant_id,
            )
        return build_routing_context(membership, tenant, placeholder_id)

    async def _bounded(self, read: Awaitable[T], what: str) -> T:
        try:
            return await asyncio.wait_for(read, timeout=self._timeout)
        except TimeoutError as exc:
            logger.warning("lookup_timeout", read=what, timeout=self._timeout)
            msg = f"{what} lookup timed out after {self._timeout}s"
            raise LookupFailure(msg) from exc
        except (SQLAlchemyError, OSError) as exc:
            logger.warning("lookup_failed", read=what, error=str(exc))
            msg = f"{what} lookup failed"
            raise LookupFailure(msg) from exc

    async def _fetch_user(self, principal_id: str) -> User | None:
        async with AsyncSession(self._engine) as session:
            return await session.get(User, principal_id)

    async def _fetch_tenant(self, tenant_id: str) -> Tenant | None:
        async with AsyncSession(self._engine) as session:
            return await session.get(Tenant, tenant_id)

    async def _fetch_placeholder_id(self) -> str | None:
        async with AsyncSession(self._engine) as session:
            stmt = select(Tenant.id).where(col(Tenant.slug) == self._placeholder_slug)
            result = await session.execute(stmt)
            return result.scalars().first()
