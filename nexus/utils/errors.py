from __future__ import annotations


class NexusError(Exception):
    """Base class for errors rendered as ``{"success": false, "message": ...}``.

    Each subclass pins the HTTP status it maps to; the message is always safe
    to show to the caller.
    """

    status_code: int = 400
    default_message: str = "Request failed"

    def __init__(self, message: str | None = None, *, status_code: int | None = None) -> None:
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class ValidationError(NexusError):
    status_code = 400
    default_message = "Validation failed"


class Conflict(NexusError):
    # Duplicates answer 400, not 409.
    status_code = 400
    default_message = "Resource already exists"


class InvalidCredentials(NexusError):
    status_code = 401
    default_message = "Invalid email or password"


class TokenMissing(NexusError):
    status_code = 401
    default_message = "Access token is required"


class TokenInvalid(NexusError):
    status_code = 401
    default_message = "Invalid token"


class TokenExpired(NexusError):
    status_code = 401
    default_message = "Token has expired"


class SessionRejected(NexusError):
    status_code = 401
    default_message = "Authentication failed"


class AccountLocked(NexusError):
    status_code = 423
    default_message = "Account is temporarily locked due to too many failed login attempts"


class NoChallenge(NexusError):
    status_code = 400
    default_message = "No OTP setup in progress"


class ChallengeExpired(NexusError):
    status_code = 400
    default_message = "OTP expired"


class InvalidOtp(NexusError):
    status_code = 400
    default_message = "Invalid OTP"


class InvalidMFACode(NexusError):
    status_code = 401
    default_message = "Invalid MFA code"


class Forbidden(NexusError):
    status_code = 403
    default_message = "Insufficient permissions"


class NotFound(NexusError):
    status_code = 404
    default_message = "Resource not found"


class EmailDeliveryFailed(NexusError):
    status_code = 502
    default_message = "Failed to send email. Please try again later"


class AccessCheckFailed(NexusError):
    status_code = 500
    default_message = "Error checking access"
