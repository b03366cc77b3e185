"""Enums and type aliases for TourneyGate."""

from enum import StrEnum


class Role(StrEnum):
    OWNER = "owner"
    ADMIN = "admin"
    ORGANIZER = "organizer"
    ATHLETE = "athlete"


class ApprovalStatus(StrEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class PlanTier(StrEnum):
    FREE = "free"
    PRO = "pro"
    ENTERPRISE = "enterprise"


class PathClass(StrEnum):
    PUBLIC = "public"
    ONBOARDING = "onboarding"
    API = "api"
    PAGE = "page"


class GateAction(StrEnum):
    ALLOW = "allow"
    REDIRECT_LOGIN = "redirect_login"
    REDIRECT_ONBOARDING = "redirect_onboarding"
    REDIRECT_PENDING = "redirect_pending"
    REDIRECT_APP = "redirect_app"
    REJECT_UNAUTHENTICATED = "reject_unauthenticated"
    REJECT_FORBIDDEN = "reject_forbidden"
    REJECT_UNAVAILABLE = "reject_unavailable"


class MarkerKey(StrEnum):
    """Client-readable context markers. Closed set; never carries secrets."""

    USER_ID = "auth.user.id"
    EMAIL = "auth.user.email"
    NAME = "auth.user.name"
    IMAGE = "auth.user.image"
    TENANT_ID = "auth.user.tenantId"
    ROLE = "auth.user.role"
    APPROVAL_STATUS = "auth.user.approvalStatus"
    NEEDS_ONBOARDING = "auth.user.needsOnboarding"
    IS_AUTHENTICATED = "auth.isAuthenticated"
