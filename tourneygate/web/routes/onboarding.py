"""Onboarding API: status check and the two tenant-assignment paths."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from tourneygate.models.api import (
    AssociateTenantRequest,
    AssociateTenantResponse,
    CreateTenantRequest,
    CreateTenantResponse,
    OnboardingStatusResponse,
    TenantSummary,
)
from tourneygate.models.domain import Principal, RoutingContext
from tourneygate.storage.repositories.tenants import DatabaseTenantRepository
from tourneygate.web.dependencies import get_gate_context, get_tenant_repo, require_principal

router = APIRouter(prefix="/api/onboarding", tags=["onboarding"])


@router.get("/check-status", response_model=OnboardingStatusResponse)
async def check_status(
    _principal: Principal = Depends(require_principal),
    context: RoutingContext | None = Depends(get_gate_context),
) -> OnboardingStatusResponse:
    """Report the flags the onboarding screens branch on."""
    if context is None or not context.membership.exists:
        raise HTTPException(status_code=404, detail="User not found")

    status = context.status
    membership = context.membership
    return OnboardingStatusResponse(
        has_valid_tenant=status.has_valid_tenant,
        is_pending=status.should_block,
        needs_onboarding=status.needs_onboarding,
        user_pending=status.user_pending,
        tenant_pending=status.tenant_pending,
        tenant_inactive=status.tenant_inactive,
        tenant_approved=status.tenant_approved,
        tenant_active=status.tenant_active,
        is_default_tenant=status.is_default_tenant,
        has_tenant_id=membership.tenant_id is not None,
        role=membership.role.value if membership.role else None,
    )


@router.post("/create-tenant", status_code=201, response_model=CreateTenantResponse)
async def create_tenant(
    body: CreateTenantRequest,
    principal: Principal = Depends(require_principal),
    tenant_repo: DatabaseTenantRepository = Depends(get_tenant_repo),
) -> CreateTenantResponse:
    tenant = await tenant_repo.create_for_owner(principal.id, name=body.name, slug=body.slug)
    return CreateTenantResponse(
        message="Tenant created",
        tenant=TenantSummary(
            id=tenant.id,
            name=tenant.name,
            slug=tenant.slug,
            trial_ends_at=tenant.trial_ends_at,
        ),
    )


@router.post("/associate", status_code=201, response_model=AssociateTenantResponse)
async def associate_tenant(
    body: AssociateTenantRequest,
    principal: Principal = Depends(require_principal),
    tenant_repo: DatabaseTenantRepository = Depends(get_tenant_repo),
) -> AssociateTenantResponse:
    tenant, approved = await tenant_repo.associate(
        principal.id,
        document_number=body.normalized_document,
        invite_code=body.invite_code,
    )
    return AssociateTenantResponse(
        message="Association approved" if approved else "Association requested",
        tenant_id=tenant.id,
        tenant_name=tenant.name,
        approved=approved,
    )
