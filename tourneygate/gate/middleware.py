"""The request gate, installed as HTTP middleware in front of every route."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import JSONResponse, RedirectResponse

from tourneygate.auth.identity import RequestCredentials
from tourneygate.exceptions import LookupFailure
from tourneygate.gate.decision import GateDecision, decide, decide_on_lookup_failure
from tourneygate.gate.markers import ContextMarkers
from tourneygate.gate.paths import PathRules

if TYPE_CHECKING:
    from starlette.requests import Request
    from starlette.responses import Response
    from starlette.types import ASGIApp

    from tourneygate.auth.identity import IdentityProvider
    from tourneygate.config.settings import Settings
    from tourneygate.models.domain import Principal, RoutingContext
    from tourneygate.storage.repositories.memberships import MembershipLoader

logger = structlog.get_logger(__name__)


class TenantGateMiddleware(BaseHTTPMiddleware):
    """Resolves identity and tenant, then allows, redirects or rejects the request.

    On allow, downstream handlers find the principal and routing context on
    ``request.state`` and, for API paths, the tenant id in the tenant header.
    A tenant header sent by the client is always discarded first.
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        settings: Settings,
        identity_provider: IdentityProvider,
        membership_loader: MembershipLoader,
    ) -> None:
        super().__init__(app)
        self._identity = identity_provider
        self._loader = membership_loader
        self._rules = PathRules.from_settings(settings)
        self._markers = ContextMarkers(settings)
        self._cookie_name = settings.session_cookie_name
        self._tenant_header = settings.tenant_header.lower()

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        pathname = request.url.path
        if self._rules.is_static_asset(pathname):
            return await call_next(request)

        self._set_tenant_header(request, None)

        credentials = RequestCredentials.from_request(request, self._cookie_name)
        principal = await self._identity.resolve(credentials)

        context: RoutingContext | None = None
        if principal is not None and not principal.is_consistent:
            logger.error(
                "gate_inconsistent_principal",
                path=pathname,
                has_id=bool(principal.id),
                has_email=bool(principal.email),
            )
        elif principal is not None:
            try:
                context = await self._loader.load_context(principal.id)
            except LookupFailure as exc:
                decision = decide_on_lookup_failure(pathname, self._rules)
                logger.warning(
                    "gate_lookup_failed",
                    path=pathname,
                    user_id=principal.id,
                    action=decision.action.value,
                    error=str(exc),
                )
                return await self._respond(request, call_next, decision, principal, None)

        decision = decide(pathname, principal, context, self._rules)
        self._log_decision(pathname, decision, principal, context)
        return await self._respond(request, call_next, decision, principal, context)

    async def _respond(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
        decision: GateDecision,
        principal: Principal | None,
        context: RoutingContext | None,
    ) -> Response:
        is_api = self._rules.is_api(request.url.path)
        response: Response
        if decision.is_allow:
            request.state.principal = principal
            request.state.gate_context = context
            request.state.tenant_id = decision.tenant_id
            if is_api and decision.tenant_id:
                self._set_tenant_header(request, decision.tenant_id)
            response = await call_next(request)
            if is_api and decision.tenant_id:
                response.headers[self._tenant_header] = decision.tenant_id
        elif decision.is_redirect:
            response = RedirectResponse(url=decision.location, status_code=decision.status_code)
        else:
            response = JSONResponse(
                {"detail": decision.detail, "error": decision.error},
                status_code=decision.status_code,
            )

        if decision.attach_markers and principal is not None and context is not None:
            self._markers.attach(response, principal, context.membership, context.status)
        else:
            self._markers.clear(response, present=request.cookies.keys())
        return response

    def _set_tenant_header(self, request: Request, tenant_id: str | None) -> None:
        name = self._tenant_header.encode("latin-1")
        headers = [(k, v) for k, v in request.scope["headers"] if k.lower() != name]
        if tenant_id is not None:
            headers.append((name, tenant_id.encode("latin-1")))
        request.scope["headers"] = headers

    def _log_decision(
        self,
        pathname: str,
        decision: GateDecision,
        principal: Principal | None,
        context: RoutingContext | None,
    ) -> None:
        fields: dict[str, object] = {
            "path": pathname,
            "path_class": self._rules.classify(pathname).value,
            "action": decision.action.value,
            "reason": decision.reason,
            "user_id": principal.id if principal else None,
        }
        if context is not None:
            status = context.status
            fields.update(
                tenant_id=context.tenant_id,
                needs_onboarding=status.needs_onboarding,
                should_block=status.should_block,
                user_pending=status.user_pending,
                tenant_pending=status.tenant_pending,
                tenant_inactive=status.tenant_inactive,
                is_default_tenant=status.is_default_tenant,
                has_valid_tenant=status.has_valid_tenant,
            )
        if decision.is_allow:
            logger.debug("gate_decision", **fields)
        else:
            logger.info("gate_decision", **fields)
