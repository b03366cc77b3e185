"""Identity resolution: turn a request credential into a Principal.

Tokens are JWTs issued by the identity provider. When ``jwks_url`` is
configured they are verified against the provider's published RS256 keys;
otherwise they are verified with HS256 against the application secret.
An absent, expired or invalid credential resolves to ``None``.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

import httpx
import jwt
import structlog

from tourneygate.models.domain import Principal

if TYPE_CHECKING:
    from starlette.requests import Request

    from tourneygate.config.settings import Settings

logger = structlog.get_logger(__name__)

# JWKS cache TTL in seconds (1 hour)
_JWKS_CACHE_TTL = 3600


@dataclass(frozen=True, slots=True)
class RequestCredentials:
    """Whatever the transport supplied: a bearer token, a session cookie, or neither."""

    bearer_token: str | None = None
    cookie_token: str | None = None

    @classmethod
    def from_request(cls, request: Request, cookie_name: str) -> RequestCredentials:
        auth_header = request.headers.get("authorization", "")
        bearer = auth_header[7:].strip() if auth_header.startswith("Bearer ") else ""
        return cls(
            bearer_token=bearer or None,
            cookie_token=request.cookies.get(cookie_name) or None,
        )

    @property
    def token(self) -> str | None:
        return self.bearer_token or self.cookie_token


class IdentityProvider(Protocol):
    async def resolve(self, credentials: RequestCredentials) -> Principal | None: ...


@dataclass
class _JWKSCache:
    keys: list[dict[str, Any]] = field(default_factory=list)
    fetched_at: float = 0.0

    @property
    def is_stale(self) -> bool:
        return time.monotonic() - self.fetched_at > _JWKS_CACHE_TTL


class JwtIdentityProvider:
    """Verifies provider-issued JWTs. One instance per process, built at startup."""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient | None = None) -> None:
        self._secret = settings.secret_key
        self._issuer = settings.jwt_issuer
        self._jwks_url = settings.jwks_url
        self._http_client = http_client
        self._cache = _JWKSCache()

    async def resolve(self, credentials: RequestCredentials) -> Principal | None:
        token = credentials.token
        if not token:
            return None
        try:
            claims = await self._decode(token)
        except jwt.PyJWTError as exc:
            logger.debug("identity_token_invalid", error=str(exc))
            return None
        except httpx.HTTPError as exc:
            logger.warning("identity_keys_unavailable", error=str(exc))
            return None

        return Principal(
            id=str(claims.get("sub") or ""),
            email=str(claims.get("email") or ""),
            name=_optional_str(claims.get("name")),
            image=_optional_str(claims.get("picture")),
        )

    def issue_token(self, principal: Principal, ttl_seconds: int = 3600) -> str:
        """Mint an HS256 token for a principal (local development and tests)."""
        now = int(time.time())
        payload: dict[str, Any] = {
            "sub": principal.id,
            "email": principal.email,
            "iat": now,
            "exp": now + ttl_seconds,
        }
        if principal.name:
            payload["name"] = principal.name
        if principal.image:
            payload["picture"] = principal.image
        if self._issuer:
            payload["iss"] = self._issuer
        return jwt.encode(payload, self._secret, algorithm="HS256")

    async def _decode(self, token: str) -> dict[str, Any]:
        options: dict[str, Any] = {"verify_aud": False, "require": ["exp", "sub"]}
        issuer = self._issuer or None

        if not self._jwks_url:
            return jwt.decode(
                token, self._secret, algorithms=["HS256"], issuer=issuer, options=options
            )

        keys = await self._get_signing_keys()
        jwk_set = jwt.PyJWKSet.from_dict({"keys": keys})

        # Try each key until one works
        last_error: jwt.PyJWTError | None = None
        for jwk in jwk_set.keys:
            try:
                payload: dict[str, Any] = jwt.decode(
                    token, jwk.key, algorithms=["RS256"], issuer=issuer, options=options
                )
                return payload
            except jwt.ExpiredSignatureError:
                raise
            except jwt.PyJWTError as exc:
                last_error = exc
                continue

        if last_error:
            raise last_error
        msg = "No valid signing key found"
        raise jwt.InvalidTokenError(msg)

    async def _get_signing_keys(self) -> list[dict[str, Any]]:
        if not self._cache.is_stale and self._cache.keys:
            return self._cache.keys
        return await self._fetch_jwks()

    async def _fetch_jwks(self) -> list[dict[str, Any]]:
        if not self._jwks_url:
            msg = "JWKS URL is not configured"
            raise jwt.InvalidKeyError(msg)
        try:
            if self._http_client is not None:
                resp = await self._http_client.get(self._jwks_url)
            else:
                async with httpx.AsyncClient(timeout=10.0) as client:
                    resp = await client.get(self._jwks_url)
            resp.raise_for_status()
            keys: list[dict[str, Any]] = resp.json().get("keys", [])
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("jwks_fetch_failed", error=str(exc))
            if self._cache.keys:
                logger.info("jwks_using_stale_cache")
                return self._cache.keys
            if isinstance(exc, httpx.HTTPError):
                raise
            raise jwt.InvalidKeyError(str(exc)) from exc

        self._cache = _JWKSCache(keys=keys, fetched_at=time.monotonic())
        logger.debug("jwks_fetched", key_count=len(keys))
        return keys


def _optional_str(value: Any) -> str | None:
    """Profile claims are only kept when they are non-empty strings."""
    return value if isinstance(value, str) and value else None
