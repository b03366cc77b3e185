"""Tenant API, scoped by the tenant id the gate supplies."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from tourneygate.models.api import CurrentTenantResponse, InviteCodeRequest, InviteCodeResponse
from tourneygate.models.domain import RoutingContext
from tourneygate.storage.repositories.tenants import DatabaseTenantRepository
from tourneygate.web.dependencies import (
    get_tenant_repo,
    require_tenant_id,
    require_tenant_manager,
)

router = APIRouter(prefix="/api/tenant", tags=["tenant"])


@router.get("/current", response_model=CurrentTenantResponse)
async def current_tenant(
    tenant_id: str = Depends(require_tenant_id),
    tenant_repo: DatabaseTenantRepository = Depends(get_tenant_repo),
) -> CurrentTenantResponse:
    tenant = await tenant_repo.get(tenant_id)
    if tenant is None:
        raise HTTPException(status_code=404, detail="Tenant not found")
    return CurrentTenantResponse(
        id=tenant.id,
        name=tenant.name,
        slug=tenant.slug,
        plan=tenant.plan,
        is_active=tenant.is_active,
        approval_status=tenant.approval_status,
        trial_ends_at=tenant.trial_ends_at,
        created_at=tenant.created_at,
        updated_at=tenant.updated_at,
    )


@router.post("/invite-code", status_code=201, response_model=InviteCodeResponse)
async def issue_invite_code(
    body: InviteCodeRequest | None = None,
    tenant_id: str = Depends(require_tenant_id),
    _context: RoutingContext = Depends(require_tenant_manager),
    tenant_repo: DatabaseTenantRepository = Depends(get_tenant_repo),
) -> InviteCodeResponse:
    """Issue a fresh invite code for the caller's tenant, replacing the previous one."""
    ttl_hours = body.ttl_hours if body else InviteCodeRequest().ttl_hours
    try:
        code = await tenant_repo.issue_invite_code(tenant_id, ttl_hours=ttl_hours)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail="Tenant not found") from exc
    tenant = await tenant_repo.get(tenant_id)
    if tenant is None or tenant.invite_expires_at is None:
        raise HTTPException(status_code=404, detail="Tenant not found")
    return InviteCodeResponse(invite_code=code, expires_at=tenant.invite_expires_at)
