"""Status evaluation: pure functions from loaded facts to gate booleans."""

from __future__ import annotations

from tourneygate.models.domain import (
    GateStatus,
    Membership,
    RoutingContext,
    TenantRecord,
)
from tourneygate.types import ApprovalStatus


def user_pending(membership: Membership) -> bool:
    return membership.approval_status == ApprovalStatus.PENDING


def tenant_pending(tenant: TenantRecord | None) -> bool:
    return tenant is not None and tenant.approval_status == ApprovalStatus.PENDING


def tenant_inactive(tenant: TenantRecord | None) -> bool:
    return tenant is not None and not tenant.is_active


def is_default_tenant(membership: Membership, placeholder_tenant_id: str | None) -> bool:
    return placeholder_tenant_id is not None and membership.tenant_id == placeholder_tenant_id


def needs_onboarding(membership: Membership, placeholder_tenant_id: str | None) -> bool:
    """Whether the principal must create or join a real tenant.

    A principal with no membership row at all is not forced into
    onboarding. Blocking flags play no part here.
    """
    if not membership.exists:
        return False
    if membership.tenant_id is None:
        return True
    return is_default_tenant(membership, placeholder_tenant_id)


def has_valid_tenant(
    membership: Membership,
    tenant: TenantRecord | None,
    placeholder_tenant_id: str | None,
) -> bool:
    return (
        membership.tenant_id is not None
        and not is_default_tenant(membership, placeholder_tenant_id)
        and tenant is not None
        and tenant.approval_status == ApprovalStatus.APPROVED
        and tenant.is_active
    )


def evaluate(
    membership: Membership,
    tenant: TenantRecord | None,
    placeholder_tenant_id: str | None,
) -> GateStatus:
    """Compute every derived flag for one request."""
    u_pending = user_pending(membership)
    t_pending = tenant_pending(tenant)
    t_inactive = tenant_inactive(tenant)
    return GateStatus(
        user_pending=u_pending,
        tenant_pending=t_pending,
        tenant_inactive=t_inactive,
        should_block=u_pending or t_pending or t_inactive,
        is_default_tenant=is_default_tenant(membership, placeholder_tenant_id),
        needs_onboarding=needs_onboarding(membership, placeholder_tenant_id),
        tenant_approved=tenant is not None and tenant.approval_status == ApprovalStatus.APPROVED,
        tenant_active=tenant is not None and tenant.is_active,
        has_valid_tenant=has_valid_tenant(membership, tenant, placeholder_tenant_id),
    )


def build_routing_context(
    membership: Membership,
    tenant: TenantRecord | None,
    placeholder_tenant_id: str | None,
) -> RoutingContext:
    return RoutingContext(
        membership=membership,
        tenant=tenant,
        placeholder_tenant_id=placeholder_tenant_id,
        status=evaluate(membership, tenant, placeholder_tenant_id),
    )
