"""Tenant repository: onboarding mutations and placeholder bootstrap.

The two paths that assign a tenant to a user (create as owner, associate
with an existing tenant) each run in one transaction that also moves the
user's open sessions to the new tenant.
"""

from __future__ import annotations

import secrets
from datetime import timedelta
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from tourneygate.exceptions import (
    DocumentNotFoundError,
    InviteExpiredError,
    InviteNotFoundError,
    MutationConflict,
    OnboardingCompleteError,
    UserNotFoundError,
)
from tourneygate.gate.status import has_valid_tenant, needs_onboarding
from tourneygate.models.database import Tenant, User, UserSession, _utc_now
from tourneygate.storage.repositories.memberships import to_membership, to_tenant_record
from tourneygate.types import ApprovalStatus, PlanTier, Role

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

logger = structlog.get_logger(__name__)


class DatabaseTenantRepository:
    """PostgreSQL-backed tenant store."""

    def __init__(
        self,
        engine: AsyncEngine,
        placeholder_slug: str = "default",
        auto_approve: bool = True,
        trial_days: int = 7,
    ) -> None:
        self._engine = engine
        self._placeholder_slug = placeholder_slug
        self._auto_approve = auto_approve
        self._trial_days = trial_days

    async def get(self, tenant_id: str) -> Tenant | None:
        async with AsyncSession(self._engine) as session:
            return await session.get(Tenant, tenant_id)

    async def ensure_placeholder_tenant(self) -> Tenant:
        """Create the placeholder tenant if it does not exist yet."""
        async with AsyncSession(self._engine) as session:
            existing = await self._get_by_slug(session, self._placeholder_slug)
            if existing:
                return existing
            tenant = Tenant(
                name="Default Tenant",
                slug=self._placeholder_slug,
                approval_status=ApprovalStatus.APPROVED.value,
                is_active=True,
                plan=PlanTier.FREE.value,
            )
            session.add(tenant)
            try:
                await session.commit()
            except IntegrityError:
                # Another process bootstrapped it first.
                await session.rollback()
                existing = await self._get_by_slug(session, self._placeholder_slug)
                if existing is None:
                    raise
                return existing
            await session.refresh(tenant)
            logger.info("placeholder_tenant_created", tenant_id=tenant.id)
            return tenant

    async def issue_invite_code(self, tenant_id: str, ttl_hours: int = 72) -> str:
        """Generate a fresh invite code for a tenant, replacing any previous one."""
        code = secrets.token_hex(5).upper()
        async with AsyncSession(self._engine) as session:
            tenant = await session.get(Tenant, tenant_id)
            if tenant is None:
                msg = f"Tenant {tenant_id} not found"
                raise LookupError(msg)
            tenant.invite_code = code
            tenant.invite_expires_at = _utc_now() + timedelta(hours=ttl_hours)
            tenant.updated_at = _utc_now()
            session.add(tenant)
            await session.commit()
        logger.info("invite_code_issued", tenant_id=tenant_id, ttl_hours=ttl_hours)
        return code

    async def create_for_owner(self, user_id: str, name: str, slug: str) -> Tenant:
        """Create a tenant and make ``user_id`` its approved owner."""
        async with AsyncSession(self._engine) as session:
            user = await self._require_onboarding_user(session, user_id)

            if slug == self._placeholder_slug or await self._get_by_slug(session, slug):
                raise MutationConflict("Slug already in use", code="SLUG_EXISTS")

            approval = ApprovalStatus.APPROVED if self._auto_approve else ApprovalStatus.PENDING
            tenant = Tenant(
                name=name,
                slug=slug,
                approval_status=approval.value,
                is_active=True,
                plan=PlanTier.FREE.value,
                trial_ends_at=_utc_now() + timedelta(days=self._trial_days),
            )
            session.add(tenant)
            try:
                await session.flush()  # populate tenant.id without committing
            except IntegrityError as exc:
                await session.rollback()
                raise MutationConflict("Slug already in use", code="SLUG_EXISTS") from exc

            user.tenant_id = tenant.id
            user.role = Role.OWNER.value
            user.approval_status = ApprovalStatus.APPROVED.value
            user.approved_at = _utc_now()
            await self._assign(session, user, tenant.id)

            await session.refresh(tenant)
            logger.info("tenant_created", tenant_id=tenant.id, slug=slug, owner_id=user_id)
            return tenant

    async def associate(
        self,
        user_id: str,
        document_number: str,
        invite_code: str | None = None,
    ) -> tuple[Tenant, bool]:
        """Attach a user to an existing tenant as an athlete.

        With an invite code the association waits for approval; a match on a
        pre-registered document number is approved immediately. Returns the
        tenant and whether the user was approved.
        """
        async with AsyncSession(self._engine) as session:
            user = await self._require_onboarding_user(session, user_id)

            if invite_code:
                tenant = await self._tenant_for_invite(session, invite_code)
            else:
                tenant = await self._tenant_for_document(session, document_number, user_id)
            pre_registered = invite_code is None

            user.tenant_id = tenant.id
            user.role = Role.ATHLETE.value
            user.document_number = document_number
            if pre_registered:
                user.approval_status = ApprovalStatus.APPROVED.value
                user.approved_at = _utc_now()
            else:
                user.approval_status = ApprovalStatus.PENDING.value
                user.approved_at = None
            await self._assign(session, user, tenant.id)

            await session.refresh(tenant)
            logger.info(
                "tenant_associated",
                tenant_id=tenant.id,
                user_id=user_id,
                approved=pre_registered,
            )
            return tenant, pre_registered

    async def _assign(self, session: AsyncSession, user: User, tenant_id: str) -> None:
        """Persist the user change and the session backfill as one commit."""
        user.updated_at = _utc_now()
        session.add(user)
        await session.execute(
            update(UserSession)
            .where(col(UserSession.user_id) == user.id)
            .values(tenant_id=tenant_id)
        )
        try:
            await session.commit()
        except IntegrityError as exc:
            await session.rollback()
            logger.warning("tenant_assignment_conflict", user_id=user.id, error=str(exc.orig))
            raise MutationConflict("Tenant assignment conflicts with existing data") from exc

    async def _require_onboarding_user(self, session: AsyncSession, user_id: str) -> User:
        user = await session.get(User, user_id)
        if user is None:
            raise UserNotFoundError("User not found")

        placeholder = await self._get_by_slug(session, self._placeholder_slug)
        placeholder_id = placeholder.id if placeholder else None
        membership = to_membership(user)

        tenant = await session.get(Tenant, user.tenant_id) if user.tenant_id else None
        record = to_tenant_record(tenant) if tenant else None
        if has_valid_tenant(membership, record, placeholder_id) or not needs_onboarding(
            membership, placeholder_id
        ):
            raise OnboardingCompleteError("Onboarding already completed")
        return user

    async def _tenant_for_invite(self, session: AsyncSession, invite_code: str) -> Tenant:
        stmt = select(Tenant).where(col(Tenant.invite_code) == invite_code)
        result = await session.execute(stmt)
        tenant = result.scalars().first()
        if tenant is None or tenant.slug == self._placeholder_slug:
            raise InviteNotFoundError("Invite code is invalid")
        if tenant.invite_expires_at and tenant.invite_expires_at < _utc_now():
            raise InviteExpiredError("Invite code has expired")
        return tenant

    async def _tenant_for_document(
        self, session: AsyncSession, document_number: str, user_id: str
    ) -> Tenant:
        stmt = (
            select(Tenant)
            .join(User, col(User.tenant_id) == col(Tenant.id))
            .where(
                col(User.document_number) == document_number,
                col(User.id) != user_id,
                col(Tenant.slug) != self._placeholder_slug,
            )
        )
        result = await session.execute(stmt)
        tenant = result.scalars().first()
        if tenant is None:
            raise DocumentNotFoundError(
                "Document not found. Use the invite code provided by the organization."
            )
        return tenant

    @staticmethod
    async def _get_by_slug(session: AsyncSession, slug: str) -> Tenant | None:
        stmt = select(Tenant).where(col(Tenant.slug) == slug)
        result = await session.execute(stmt)
        return result.scalars().first()
