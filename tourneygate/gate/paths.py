"""Pathname classification for the request gate."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from tourneygate.types import PathClass

if TYPE_CHECKING:
    from tourneygate.config.settings import Settings

_STATIC_SUFFIXES = (".svg", ".png", ".jpg", ".jpeg", ".gif", ".webp", ".ico", ".css", ".js")


def _matches(pathname: str, prefixes: tuple[str, ...]) -> bool:
    return any(pathname.startswith(prefix) for prefix in prefixes)


@dataclass(frozen=True, slots=True)
class PathRules:
    """Prefix tables that drive routing. Order of checks lives in ``classify``."""

    login_path: str = "/login"
    onboarding_path: str = "/onboarding"
    pending_path: str = "/onboarding/pending"
    app_home_path: str = "/dashboard"
    api_prefix: str = "/api/"
    onboarding_api_prefix: str = "/api/onboarding"
    public_prefixes: tuple[str, ...] = ("/login", "/api/auth", "/api/webhooks", "/api/health")
    public_exact: tuple[str, ...] = ("/",)
    static_prefixes: tuple[str, ...] = ("/_next/", "/static/", "/.well-known/", "/favicon.ico")
    allowed_while_blocked: tuple[str, ...] = ("/onboarding/pending", "/api/onboarding", "/api/auth")

    @classmethod
    def from_settings(cls, settings: Settings) -> PathRules:
        return cls(
            login_path=settings.login_path,
            onboarding_path=settings.onboarding_path,
            pending_path=settings.pending_path,
            app_home_path=settings.app_home_path,
            public_prefixes=(settings.login_path, "/api/auth", "/api/webhooks", "/api/health"),
            allowed_while_blocked=(settings.pending_path, "/api/onboarding", "/api/auth"),
        )

    def is_public(self, pathname: str) -> bool:
        return pathname in self.public_exact or _matches(pathname, self.public_prefixes)

    def is_api(self, pathname: str) -> bool:
        return pathname.startswith(self.api_prefix)

    def is_onboarding_page(self, pathname: str) -> bool:
        return pathname.startswith(self.onboarding_path)

    def is_onboarding(self, pathname: str) -> bool:
        return self.is_onboarding_page(pathname) or pathname.startswith(self.onboarding_api_prefix)

    def is_static_asset(self, pathname: str) -> bool:
        return _matches(pathname, self.static_prefixes) or pathname.lower().endswith(
            _STATIC_SUFFIXES
        )

    def is_allowed_while_blocked(self, pathname: str) -> bool:
        return _matches(pathname, self.allowed_while_blocked)

    def is_login(self, pathname: str) -> bool:
        return pathname.startswith(self.login_path)

    def classify(self, pathname: str) -> PathClass:
        """Public wins over onboarding, onboarding over api, api over page."""
        if self.is_public(pathname):
            return PathClass.PUBLIC
        if self.is_onboarding(pathname):
            return PathClass.ONBOARDING
        if self.is_api(pathname):
            return PathClass.API
        return PathClass.PAGE
