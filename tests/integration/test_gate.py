"""End-to-end gate behaviour over the ASGI app."""

from __future__ import annotations

import time

import jwt
import pytest
from httpx import ASGITransport, AsyncClient, Response

from tourneygate.exceptions import LookupFailure
from tourneygate.models.domain import Principal
from tourneygate.storage.repositories.memberships import MembershipLoader
from tourneygate.types import ApprovalStatus, MarkerKey
from tourneygate.web.app import create_app


def set_cookie_headers(response: Response) -> dict[str, str]:
    """Map cookie name to its full Set-Cookie line."""
    return {
        line.split("=", 1)[0]: line for line in response.headers.get_list("set-cookie")
    }


def marker_value(response: Response, key: MarkerKey) -> str:
    line = set_cookie_headers(response)[key.value]
    return line.split("=", 1)[1].split(";", 1)[0]


class _FailingLoader(MembershipLoader):
    async def load_context(self, principal_id: str):
        raise LookupFailure("membership lookup timed out after 2.0s")


@pytest.mark.integration
class TestAnonymous:
    async def test_login_allowed_without_markers(self, client: AsyncClient) -> None:
        resp = await client.get("/login")
        assert resp.status_code == 200
        assert set_cookie_headers(resp) == {}

    async def test_stale_markers_cleared_on_public_page(self, client: AsyncClient) -> None:
        resp = await client.get(
            "/login", headers={"Cookie": "auth.user.id=u-1; auth.isAuthenticated=true"}
        )
        assert resp.status_code == 200
        cookies = set_cookie_headers(resp)
        assert set(cookies) == {"auth.user.id", "auth.isAuthenticated"}
        assert all("max-age=0" in line.lower() for line in cookies.values())

    async def test_page_redirects_to_login(self, client: AsyncClient) -> None:
        resp = await client.get("/dashboard")
        assert resp.status_code == 307
        assert resp.headers["location"] == "/login"

    async def test_api_rejected(self, client: AsyncClient) -> None:
        resp = await client.get("/api/tenant/current")
        assert resp.status_code == 401
        assert resp.json() == {"detail": "Not authenticated", "error": "UNAUTHORIZED"}

    async def test_health_is_public(self, client: AsyncClient) -> None:
        resp = await client.get("/api/health")
        assert resp.status_code == 200

    async def test_static_assets_bypass_gate(self, client: AsyncClient) -> None:
        resp = await client.get("/favicon.ico")
        assert resp.status_code == 404
        assert "location" not in resp.headers

    async def test_non_string_name_claim_renders_login(
        self, client: AsyncClient, settings, placeholder, make_user
    ) -> None:
        user = await make_user()
        claims = {
            "sub": user.id,
            "email": user.email,
            "name": 42,
            "exp": int(time.time()) + 300,
        }
        token = jwt.encode(claims, settings.secret_key, algorithm="HS256")
        resp = await client.get("/login", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 200
        name_cookie = set_cookie_headers(resp).get("auth.user.name", "max-age=0")
        assert "max-age=0" in name_cookie.lower()

    async def test_invalid_token_is_anonymous(self, client: AsyncClient) -> None:
        resp = await client.get("/dashboard", headers={"Authorization": "Bearer not-a-jwt"})
        assert resp.status_code == 307
        assert resp.headers["location"] == "/login"


@pytest.mark.integration
class TestOnboardingRedirects:
    async def test_tenantless_user_sent_to_onboarding(
        self, client: AsyncClient, placeholder, make_user, bearer
    ) -> None:
        user = await make_user()
        resp = await client.get("/dashboard", headers=bearer(user))
        assert resp.status_code == 307
        assert resp.headers["location"] == "/onboarding"
        assert marker_value(resp, MarkerKey.USER_ID) == user.id
        assert marker_value(resp, MarkerKey.NEEDS_ONBOARDING) == "true"
        assert marker_value(resp, MarkerKey.IS_AUTHENTICATED) == "true"

    async def test_onboarding_page_renders(
        self, client: AsyncClient, placeholder, make_user, bearer
    ) -> None:
        user = await make_user(tenant_id=placeholder.id)
        resp = await client.get("/onboarding", headers=bearer(user))
        assert resp.status_code == 200
        assert 'data-page="onboarding"' in resp.text

    async def test_placeholder_inactive_still_onboards(
        self, client: AsyncClient, make_tenant, make_user, bearer
    ) -> None:
        placeholder = await make_tenant(slug="default", is_active=False)
        user = await make_user(tenant_id=placeholder.id)
        resp = await client.get("/dashboard", headers=bearer(user))
        assert resp.headers["location"] == "/onboarding"

    async def test_placeholder_api_forbidden(
        self, client: AsyncClient, placeholder, make_user, bearer
    ) -> None:
        user = await make_user(tenant_id=placeholder.id)
        resp = await client.get("/api/tenant/current", headers=bearer(user))
        assert resp.status_code == 403
        assert resp.json()["error"] == "TENANT_MISSING"

    async def test_session_cookie_credential(
        self, client: AsyncClient, identity, placeholder, make_user
    ) -> None:
        user = await make_user()
        token = identity.issue_token(Principal(id=user.id, email=user.email))
        resp = await client.get("/dashboard", headers={"Cookie": f"session_token={token}"})
        assert resp.headers["location"] == "/onboarding"


@pytest.mark.integration
class TestValidTenant:
    async def test_onboarding_redirects_to_app(
        self, client: AsyncClient, placeholder, make_tenant, make_user, bearer
    ) -> None:
        tenant = await make_tenant()
        user = await make_user(tenant_id=tenant.id)
        resp = await client.get("/onboarding", headers=bearer(user))
        assert resp.status_code == 307
        assert resp.headers["location"] == "/dashboard"
        assert marker_value(resp, MarkerKey.TENANT_ID) == tenant.id
        assert marker_value(resp, MarkerKey.NEEDS_ONBOARDING) == "false"

    async def test_dashboard_allowed_with_markers(
        self, client: AsyncClient, placeholder, make_tenant, make_user, bearer
    ) -> None:
        tenant = await make_tenant()
        user = await make_user(tenant_id=tenant.id)
        resp = await client.get("/dashboard", headers=bearer(user))
        assert resp.status_code == 200
        assert marker_value(resp, MarkerKey.ROLE) == "athlete"
        assert marker_value(resp, MarkerKey.APPROVAL_STATUS) == "approved"

    async def test_tenant_header_injected_and_echoed(
        self, client: AsyncClient, placeholder, make_tenant, make_user, bearer
    ) -> None:
        tenant = await make_tenant()
        user = await make_user(tenant_id=tenant.id)
        resp = await client.get("/api/tenant/current", headers=bearer(user))
        assert resp.status_code == 200
        assert resp.json()["id"] == tenant.id
        assert resp.headers["x-tenant-id"] == tenant.id

    async def test_forged_tenant_header_replaced(
        self, client: AsyncClient, placeholder, make_tenant, make_user, bearer
    ) -> None:
        mine = await make_tenant(slug="mine")
        theirs = await make_tenant(slug="theirs")
        user = await make_user(tenant_id=mine.id)
        resp = await client.get(
            "/api/tenant/current", headers={**bearer(user), "X-Tenant-Id": theirs.id}
        )
        assert resp.json()["id"] == mine.id

    async def test_forged_tenant_header_stripped_for_placeholder(
        self, client: AsyncClient, placeholder, make_tenant, make_user, bearer
    ) -> None:
        theirs = await make_tenant(slug="theirs")
        user = await make_user(tenant_id=placeholder.id)
        resp = await client.get(
            "/api/onboarding/check-status", headers={**bearer(user), "X-Tenant-Id": theirs.id}
        )
        assert resp.status_code == 200
        assert "x-tenant-id" not in resp.headers


@pytest.mark.integration
class TestBlocked:
    async def test_pending_user_sent_to_pending_page(
        self, client: AsyncClient, placeholder, make_tenant, make_user, bearer
    ) -> None:
        tenant = await make_tenant()
        user = await make_user(tenant_id=tenant.id, approval_status=ApprovalStatus.PENDING)
        resp = await client.get("/dashboard", headers=bearer(user))
        assert resp.status_code == 307
        assert resp.headers["location"] == "/onboarding/pending"
        assert marker_value(resp, MarkerKey.APPROVAL_STATUS) == "pending"

    async def test_pending_page_renders_for_pending_user(
        self, client: AsyncClient, placeholder, make_tenant, make_user, bearer
    ) -> None:
        tenant = await make_tenant()
        user = await make_user(tenant_id=tenant.id, approval_status=ApprovalStatus.PENDING)
        resp = await client.get("/onboarding/pending", headers=bearer(user))
        assert resp.status_code == 200

    async def test_inactive_tenant_blocks_api(
        self, client: AsyncClient, placeholder, make_tenant, make_user, bearer
    ) -> None:
        tenant = await make_tenant(is_active=False)
        user = await make_user(tenant_id=tenant.id)
        resp = await client.get("/api/tenant/current", headers=bearer(user))
        assert resp.status_code == 307
        assert resp.headers["location"] == "/onboarding/pending"

    async def test_status_api_reachable_while_blocked(
        self, client: AsyncClient, placeholder, make_tenant, make_user, bearer
    ) -> None:
        tenant = await make_tenant(approval_status=ApprovalStatus.PENDING)
        user = await make_user(tenant_id=tenant.id)
        resp = await client.get("/api/onboarding/check-status", headers=bearer(user))
        assert resp.status_code == 200
        assert resp.json()["tenant_pending"] is True


@pytest.mark.integration
class TestInconsistentPrincipal:
    async def test_redirected_to_login(
        self, client: AsyncClient, identity, placeholder
    ) -> None:
        token = identity.issue_token(Principal(id="u-1", email=""))
        resp = await client.get("/dashboard", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 307
        assert resp.headers["location"] == "/login"

    async def test_login_reachable(self, client: AsyncClient, identity) -> None:
        token = identity.issue_token(Principal(id="u-1", email=""))
        resp = await client.get(
            "/login",
            headers={"Authorization": f"Bearer {token}", "Cookie": "auth.user.email=x"},
        )
        assert resp.status_code == 200
        assert "max-age=0" in set_cookie_headers(resp)["auth.user.email"].lower()


@pytest.mark.integration
class TestLookupFailure:
    @pytest.fixture()
    async def failing_client(self, settings, async_engine, identity):
        app = create_app(
            settings,
            engine=async_engine,
            identity_provider=identity,
            membership_loader=_FailingLoader(async_engine),
        )
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
            yield c

    async def test_page_redirects_to_login(
        self, failing_client: AsyncClient, make_user, bearer
    ) -> None:
        user = await make_user()
        resp = await failing_client.get("/dashboard", headers=bearer(user))
        assert resp.status_code == 307
        assert resp.headers["location"] == "/login"
        assert set_cookie_headers(resp) == {}

    async def test_api_unavailable(self, failing_client: AsyncClient, make_user, bearer) -> None:
        user = await make_user()
        resp = await failing_client.get("/api/tenant/current", headers=bearer(user))
        assert resp.status_code == 503
        assert resp.json()["error"] == "LOOKUP_FAILURE"

    async def test_login_still_reachable(
        self, failing_client: AsyncClient, make_user, bearer
    ) -> None:
        user = await make_user()
        resp = await failing_client.get("/login", headers=bearer(user))
        assert resp.status_code == 200

    async def test_onboarding_not_assumed(
        self, failing_client: AsyncClient, make_user, bearer
    ) -> None:
        user = await make_user()
        resp = await failing_client.get("/onboarding", headers=bearer(user))
        assert resp.headers["location"] == "/login"
