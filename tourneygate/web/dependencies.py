"""FastAPI dependencies over the collaborators held on ``app.state``."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import HTTPException, Request

from tourneygate.types import Role

if TYPE_CHECKING:
    from tourneygate.config.settings import Settings
    from tourneygate.models.domain import Principal, RoutingContext
    from tourneygate.storage.repositories.tenants import DatabaseTenantRepository

MANAGER_ROLES = frozenset({Role.OWNER, Role.ADMIN})


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_tenant_repo(request: Request) -> DatabaseTenantRepository:
    return request.app.state.tenant_repo


def get_optional_principal(request: Request) -> Principal | None:
    return getattr(request.state, "principal", None)


def require_principal(request: Request) -> Principal:
    """The gate's resolved principal; 401 when the request is anonymous."""
    principal = get_optional_principal(request)
    if principal is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return principal


def get_gate_context(request: Request) -> RoutingContext | None:
    return getattr(request.state, "gate_context", None)


def require_tenant_id(request: Request) -> str:
    """Tenant id supplied by the gate for row-level scoping of queries."""
    settings = get_app_settings(request)
    tenant_id = request.headers.get(settings.tenant_header)
    if not tenant_id:
        raise HTTPException(status_code=403, detail="Tenant not identified")
    return tenant_id


def require_tenant_manager(request: Request) -> RoutingContext:
    """Gate context of a principal allowed to manage its tenant (owner or admin)."""
    context = get_gate_context(request)
    if context is None or context.membership.role not in MANAGER_ROLES:
        raise HTTPException(status_code=403, detail="Insufficient role")
    return context
