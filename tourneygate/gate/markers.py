"""Session context propagation via client-readable marker cookies."""

from __future__ import annotations

from typing import TYPE_CHECKING
from urllib.parse import quote

from tourneygate.types import MarkerKey

if TYPE_CHECKING:
    from collections.abc import Iterable

    from starlette.responses import Response

    from tourneygate.config.settings import Settings
    from tourneygate.models.domain import GateStatus, Membership, Principal


def marker_values(
    principal: Principal, membership: Membership, status: GateStatus
) -> dict[MarkerKey, str | None]:
    """Flatten the resolved context into the closed marker set."""
    return {
        MarkerKey.USER_ID: principal.id,
        MarkerKey.EMAIL: principal.email,
        MarkerKey.NAME: principal.name,
        MarkerKey.IMAGE: principal.image,
        MarkerKey.TENANT_ID: membership.tenant_id,
        MarkerKey.ROLE: membership.role.value if membership.role else None,
        MarkerKey.APPROVAL_STATUS: (
            membership.approval_status.value if membership.approval_status else None
        ),
        MarkerKey.NEEDS_ONBOARDING: "true" if status.needs_onboarding else "false",
        MarkerKey.IS_AUTHENTICATED: "true",
    }


class ContextMarkers:
    """Writes and clears marker cookies on a response.

    Every write first drops any ``Set-Cookie`` already queued for the same
    key, so repeated calls leave exactly one header per marker.
    """

    def __init__(self, settings: Settings) -> None:
        self._max_age = settings.marker_max_age_seconds
        self._secure = settings.secure_cookies

    def attach(
        self,
        response: Response,
        principal: Principal,
        membership: Membership,
        status: GateStatus,
    ) -> None:
        for key, value in marker_values(principal, membership, status).items():
            self._write(response, key, value)

    def clear(self, response: Response, present: Iterable[str] | None = None) -> None:
        """Expire markers. With ``present``, only the keys the client actually sent."""
        sent = None if present is None else set(present)
        for key in MarkerKey:
            if sent is not None and key.value not in sent:
                continue
            self._write(response, key, None)

    def _write(self, response: Response, key: MarkerKey, value: str | None) -> None:
        _discard_cookie(response, key)
        if value is None:
            response.delete_cookie(key.value, path="/", secure=self._secure, samesite="lax")
            return
        response.set_cookie(
            key.value,
            quote(value, safe=""),
            max_age=self._max_age,
            path="/",
            secure=self._secure,
            httponly=False,
            samesite="lax",
        )


def _discard_cookie(response: Response, name: str) -> None:
    prefix = f"{name}=".encode("latin-1")
    # In place: response.headers is a view over this same list.
    response.raw_headers[:] = [
        (header, value)
        for header, value in response.raw_headers
        if not (header == b"set-cookie" and value.startswith(prefix))
    ]
