"""Inter-module data contracts for the request gate (not persisted directly)."""

from __future__ import annotations

from dataclasses import dataclass

from tourneygate.types import ApprovalStatus, Role


@dataclass(frozen=True, slots=True)
class Principal:
    """The authenticated caller, as asserted by the identity provider."""

    id: str
    email: str
    name: str | None = None
    image: str | None = None

    @property
    def is_consistent(self) -> bool:
        return bool(self.id) and bool(self.email)


@dataclass(frozen=True, slots=True)
class Membership:
    """Links a principal to at most one tenant.

    ``exists`` is False when the principal has no persisted row at all,
    which is distinct from a row whose ``tenant_id`` is None.
    """

    principal_id: str
    tenant_id: str | None = None
    role: Role | None = None
    approval_status: ApprovalStatus | None = None
    exists: bool = True

    @classmethod
    def missing(cls, principal_id: str) -> Membership:
        return cls(principal_id=principal_id, exists=False)


@dataclass(frozen=True, slots=True)
class TenantRecord:
    id: str
    slug: str
    approval_status: ApprovalStatus
    is_active: bool
    plan: str


@dataclass(frozen=True, slots=True)
class GateStatus:
    """Derived booleans for one request. Computed, never persisted."""

    user_pending: bool
    tenant_pending: bool
    tenant_inactive: bool
    should_block: bool
    is_default_tenant: bool
    needs_onboarding: bool
    tenant_approved: bool
    tenant_active: bool
    has_valid_tenant: bool


@dataclass(frozen=True, slots=True)
class RoutingContext:
    membership: Membership
    tenant: TenantRecord | None
    placeholder_tenant_id: str | None
    status: GateStatus

    @property
    def tenant_id(self) -> str | None:
        return self.membership.tenant_id
