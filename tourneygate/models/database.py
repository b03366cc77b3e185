"""SQLModel database table models."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlmodel import Field, SQLModel

from tourneygate.types import ApprovalStatus, PlanTier, Role


def _utc_now() -> datetime:
    """Return current UTC time as naive datetime for TIMESTAMP WITHOUT TIME ZONE columns."""
    return datetime.now(UTC).replace(tzinfo=None)


def _new_uuid() -> str:
    return str(uuid.uuid4())


class Tenant(SQLModel, table=True):
    __tablename__ = "tenants"

    id: str = Field(default_factory=_new_uuid, primary_key=True)
    name: str
    slug: str = Field(unique=True, index=True)
    approval_status: str = Field(default=ApprovalStatus.PENDING.value)
    is_active: bool = Field(default=True)
    plan: str = Field(default=PlanTier.FREE.value)
    invite_code: str | None = Field(default=None, unique=True)
    invite_expires_at: datetime | None = None
    trial_ends_at: datetime | None = None
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)


class User(SQLModel, table=True):
    """A user row doubles as the principal's membership record."""

    __tablename__ = "users"

    id: str = Field(default_factory=_new_uuid, primary_key=True)
    email: str = Field(unique=True, index=True)
    name: str | None = None
    image: str | None = None
    tenant_id: str | None = Field(default=None, foreign_key="tenants.id", index=True)
    role: str = Field(default=Role.ATHLETE.value)
    approval_status: str = Field(default=ApprovalStatus.PENDING.value)
    document_number: str | None = Field(default=None, index=True)
    approved_at: datetime | None = None
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)


class UserSession(SQLModel, table=True):
    __tablename__ = "user_sessions"

    id: str = Field(default_factory=_new_uuid, primary_key=True)
    user_id: str = Field(foreign_key="users.id", index=True)
    tenant_id: str | None = None
    expires_at: datetime | None = None
    created_at: datetime = Field(default_factory=_utc_now)
