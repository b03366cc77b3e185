"""Routing decision engine.

``decide`` maps (principal, pathname, routing context) to exactly one
outcome. Rules are evaluated top to bottom and the first match wins; the
order is the contract. In particular onboarding is checked before blocking,
because a principal without a real tenant has nothing that could be
approved and would otherwise bounce between the pending page and onboarding.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from tourneygate.types import GateAction

if TYPE_CHECKING:
    from tourneygate.gate.paths import PathRules
    from tourneygate.models.domain import Principal, RoutingContext

REDIRECT_STATUS = 307


@dataclass(frozen=True, slots=True)
class GateDecision:
    action: GateAction
    reason: str
    status_code: int = 200
    location: str | None = None
    error: str | None = None
    detail: str | None = None
    tenant_id: str | None = None
    attach_markers: bool = True

    @property
    def is_allow(self) -> bool:
        return self.action == GateAction.ALLOW

    @property
    def is_redirect(self) -> bool:
        return self.location is not None


def _allow(reason: str, tenant_id: str | None = None, *, attach_markers: bool = True) -> GateDecision:
    return GateDecision(
        action=GateAction.ALLOW,
        reason=reason,
        tenant_id=tenant_id,
        attach_markers=attach_markers,
    )


def _redirect(
    action: GateAction, location: str, reason: str, *, attach_markers: bool = True
) -> GateDecision:
    return GateDecision(
        action=action,
        reason=reason,
        status_code=REDIRECT_STATUS,
        location=location,
        attach_markers=attach_markers,
    )


def _reject(
    action: GateAction,
    status_code: int,
    error: str,
    detail: str,
    reason: str,
    *,
    attach_markers: bool = True,
) -> GateDecision:
    return GateDecision(
        action=action,
        reason=reason,
        status_code=status_code,
        error=error,
        detail=detail,
        attach_markers=attach_markers,
    )


def decide(
    pathname: str,
    principal: Principal | None,
    context: RoutingContext | None,
    rules: PathRules,
) -> GateDecision:
    """Return the gate's decision for one request.

    ``context`` may only be None for anonymous or inconsistent principals;
    for everyone else it must have been loaded.
    """
    is_public = rules.is_public(pathname)
    is_api = rules.is_api(pathname)

    # 1-3: anonymous
    if principal is None:
        if is_public:
            return _allow("anonymous_public", attach_markers=False)
        if is_api:
            return _reject(
                GateAction.REJECT_UNAUTHENTICATED,
                401,
                "UNAUTHORIZED",
                "Not authenticated",
                "anonymous_api",
                attach_markers=False,
            )
        return _redirect(
            GateAction.REDIRECT_LOGIN, rules.login_path, "anonymous_page", attach_markers=False
        )

    # 4: authenticated but unidentifiable
    if not principal.is_consistent:
        if rules.is_login(pathname):
            return _allow("inconsistent_principal_on_login", attach_markers=False)
        return _redirect(
            GateAction.REDIRECT_LOGIN,
            rules.login_path,
            "inconsistent_principal",
            attach_markers=False,
        )

    if context is None:
        msg = "routing context is required for an authenticated principal"
        raise ValueError(msg)

    status = context.status
    is_onboarding = rules.is_onboarding(pathname)

    # 5: onboarding dominates blocking
    if (
        status.needs_onboarding
        and not is_onboarding
        and not is_api
        and not is_public
        and not rules.is_static_asset(pathname)
    ):
        return _redirect(GateAction.REDIRECT_ONBOARDING, rules.onboarding_path, "needs_onboarding")

    # 6: pending or inactive, only once a real tenant is assigned
    if (
        status.should_block
        and context.membership.tenant_id is not None
        and not status.needs_onboarding
        and not is_public
        and not rules.is_allowed_while_blocked(pathname)
    ):
        return _redirect(GateAction.REDIRECT_PENDING, rules.pending_path, "blocked")

    # The placeholder tenant is never a working tenant for authorization.
    tenant_id = None if status.is_default_tenant else context.membership.tenant_id

    # 7: onboarding pages
    if rules.is_onboarding_page(pathname):
        if status.needs_onboarding:
            return _allow("onboarding_in_progress", tenant_id)
        # A blocked principal only gets this far on the pending page.
        if status.has_valid_tenant and not status.should_block:
            return _redirect(GateAction.REDIRECT_APP, rules.app_home_path, "onboarding_complete")
        return _allow("onboarding_status_view", tenant_id)

    # 8: nothing to scope the request to
    if tenant_id is None and not is_public and not is_onboarding:
        if is_api:
            return _reject(
                GateAction.REJECT_FORBIDDEN,
                403,
                "TENANT_MISSING",
                "Tenant not identified",
                "tenant_missing",
            )
        return _redirect(GateAction.REDIRECT_LOGIN, rules.login_path, "tenant_missing")

    # 9
    return _allow("tenant_resolved", tenant_id)


def decide_on_lookup_failure(pathname: str, rules: PathRules) -> GateDecision:
    """Fail closed when membership facts could not be read.

    Neither onboarding nor blocking is assumed, since both force flows on
    the user. Public pages stay reachable so the login redirect cannot loop.
    """
    if rules.is_public(pathname):
        return _allow("lookup_failed_public", attach_markers=False)
    if rules.is_api(pathname):
        return _reject(
            GateAction.REJECT_UNAVAILABLE,
            503,
            "LOOKUP_FAILURE",
            "Tenant lookup unavailable",
            "lookup_failed_api",
            attach_markers=False,
        )
    return _redirect(
        GateAction.REDIRECT_LOGIN, rules.login_path, "lookup_failed_page", attach_markers=False
    )
