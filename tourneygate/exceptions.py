"""Exception hierarchy for TourneyGate."""


class TourneyGateError(Exception):
    """Base exception for all TourneyGate errors."""

    code = "INTERNAL_ERROR"


class LookupFailure(TourneyGateError):
    """Raised when membership or tenant reads fail or time out."""

    code = "LOOKUP_FAILURE"


class OnboardingError(TourneyGateError):
    """Base for refusals on the tenant-assignment mutation paths."""

    status_code = 400

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code:
            self.code = code


class OnboardingCompleteError(OnboardingError):
    """Raised when the principal no longer needs onboarding."""

    code = "ONBOARDING_COMPLETE"


class UserNotFoundError(OnboardingError):
    status_code = 404
    code = "USER_NOT_FOUND"


class InviteNotFoundError(OnboardingError):
    status_code = 404
    code = "INVALID_INVITE"


class InviteExpiredError(OnboardingError):
    code = "INVITE_EXPIRED"


class DocumentNotFoundError(OnboardingError):
    """Raised when no pre-registration matches the document number."""

    status_code = 404
    code = "DOCUMENT_NOT_FOUND"


class MutationConflict(OnboardingError):
    """Raised on slug collisions and unique constraint violations."""

    status_code = 409
    code = "CONFLICT"
