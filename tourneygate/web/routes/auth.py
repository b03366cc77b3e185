"""Session introspection for the client."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from tourneygate.models.api import SessionResponse, SessionUser
from tourneygate.models.domain import Principal, RoutingContext
from tourneygate.web.dependencies import get_gate_context, require_principal

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.get("/session", response_model=SessionResponse)
async def current_session(
    principal: Principal = Depends(require_principal),
    context: RoutingContext | None = Depends(get_gate_context),
) -> SessionResponse:
    """Return the resolved principal, enriched with membership facts when loaded."""
    membership = context.membership if context else None
    return SessionResponse(
        authenticated=True,
        user=SessionUser(
            id=principal.id,
            email=principal.email,
            name=principal.name,
            image=principal.image,
            tenant_id=membership.tenant_id if membership else None,
            role=membership.role.value if membership and membership.role else None,
        ),
    )
