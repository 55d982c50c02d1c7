"""Domain error taxonomy.

Services raise these instead of ``HTTPException`` so they stay usable
outside a request. ``impactos.api.errors`` maps them to HTTP responses.
"""

from __future__ import annotations

from typing import Any


class ImpactOSError(Exception):
    """Base class for expected, user-facing failures."""

    code = "error"
    status_code = 400
    default_message = "Request failed"

    def __init__(self, message: str | None = None, details: dict[str, Any] | None = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class Unauthenticated(ImpactOSError):
    code = "unauthenticated"
    status_code = 401
    default_message = "Authentication required"
    login_reason = "unauthenticated"


class EmailNotConfirmed(Unauthenticated):
    code = "email_not_confirmed"
    default_message = "Please confirm your email address before signing in."
    login_reason = "email-not-confirmed"


class Forbidden(ImpactOSError):
    code = "forbidden"
    status_code = 403
    default_message = "You do not have permission to perform this action"


class NoOrganization(ImpactOSError):
    """Authenticated, but the user belongs to no organization yet.

    Not a failure for the user: callers redirect to onboarding.
    """

    code = "no_organization"
    status_code = 409
    default_message = "User has no organization memberships. Please create or join an organization."
    redirect_to = "/onboarding"


class NotFound(ImpactOSError):
    code = "not_found"
    status_code = 404
    default_message = "Not found"


class ValidationFailed(ImpactOSError):
    code = "validation_error"
    status_code = 422
    default_message = "Request validation failed"


class ConstraintViolation(ImpactOSError):
    code = "constraint_violation"
    status_code = 409
    default_message = "The change conflicts with existing data"


class InvalidToken(ImpactOSError):
    code = "invalid_token"
    default_message = "Invalid invitation token"


class InvitationAlreadyUsed(ImpactOSError):
    code = "invitation_already_used"
    default_message = "Invitation has already been used"


class InvitationExpired(ImpactOSError):
    code = "invitation_expired"
    default_message = "Invitation has expired"


class EmailMismatch(ImpactOSError):
    code = "email_mismatch"
    default_message = "Email does not match invitation"


class EmailDeliveryFailed(ImpactOSError):
    code = "email_delivery_failed"
    status_code = 502
    default_message = "Failed to send email"


# Reason codes carried on ``/login?error=...`` redirects.
LOGIN_ERROR_MESSAGES: dict[str, str] = {
    "unauthenticated": "Please sign in to continue.",
    "session-expired": "Your session has expired. Please sign in again.",
    "invalid-confirmation-link": "This confirmation link is invalid.",
    "confirmation-failed": "We could not confirm your email. The link may have expired.",
    "email-not-confirmed": "Please confirm your email address before signing in.",
}


def login_error_message(code: str | None) -> str | None:
    """Resolve a login reason code to its fixed message (unknown codes → None)."""
    if not code:
        return None
    return LOGIN_ERROR_MESSAGES.get(code)
