"""API request/response schemas for FastAPI endpoints."""

import re
from datetime import datetime

from pydantic import BaseModel, Field, field_validator


class CreateTenantRequest(BaseModel):
    name: str = Field(min_length=3, max_length=100)
    slug: str = Field(min_length=3, max_length=50, pattern=r"^[a-z0-9-]+$")


class AssociateTenantRequest(BaseModel):
    invite_code: str | None = Field(default=None, max_length=20)
    document_number: str = Field(
        min_length=11,
        max_length=14,
        pattern=r"^\d{3}\.?\d{3}\.?\d{3}-?\d{2}$",
    )

    @field_validator("invite_code")
    @classmethod
    def _blank_invite_is_none(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        value = value.strip()
        if len(value) < 6:
            msg = "invite code must be at least 6 characters"
            raise ValueError(msg)
        return value

    @property
    def normalized_document(self) -> str:
        return re.sub(r"\D", "", self.document_number)


class TenantSummary(BaseModel):
    id: str
    name: str
    slug: str
    trial_ends_at: datetime | None = None


class CreateTenantResponse(BaseModel):
    message: str
    tenant: TenantSummary


class AssociateTenantResponse(BaseModel):
    message: str
    tenant_id: str
    tenant_name: str
    approved: bool


class OnboardingStatusResponse(BaseModel):
    has_valid_tenant: bool
    is_pending: bool
    needs_onboarding: bool
    user_pending: bool
    tenant_pending: bool
    tenant_inactive: bool
    tenant_approved: bool
    tenant_active: bool
    is_default_tenant: bool
    has_tenant_id: bool
    role: str | None


class CurrentTenantResponse(BaseModel):
    id: str
    name: str
    slug: str
    plan: str
    is_active: bool
    approval_status: str
    trial_ends_at: datetime | None
    created_at: datetime
    updated_at: datetime


class SessionUser(BaseModel):
    id: str
    email: str
    name: str | None = None
    image: str | None = None
    tenant_id: str | None = None
    role: str | None = None


class SessionResponse(BaseModel):
    authenticated: bool
    user: SessionUser


class InviteCodeRequest(BaseModel):
    ttl_hours: int = Field(default=72, ge=1, le=720)


class InviteCodeResponse(BaseModel):
    invite_code: str
    expires_at: datetime
