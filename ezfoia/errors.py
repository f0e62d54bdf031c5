# ezfoia/errors.py
"""
Error taxonomy shared by every handler.

Each error carries the HTTP status and the message that is safe to show the
caller. Anything more specific (exception text, provider bodies, names of
missing secrets) belongs in the server log, never in `public_message`.
"""

from typing import Any, Dict, Optional


class EzfoiaError(Exception):
    status_code = 500
    public_message = "Internal server error"

    def __init__(self, public_message: Optional[str] = None, *, log_detail: Optional[str] = None,
                 status_code: Optional[int] = None):
        self.public_message = public_message or self.public_message
        self.log_detail = log_detail or self.public_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.log_detail)

    def to_body(self) -> Dict[str, Any]:
        return {"error": self.public_message}


class ConfigurationError(EzfoiaError):
    """A required credential or setting is missing."""
    status_code = 500
    public_message = "Service is not configured"


class ServiceUnavailable(ConfigurationError):
    """Upstream credentials are missing, so the call cannot be attempted."""
    public_message = "Service temporarily unavailable. Please try again later."


class AuthenticationError(EzfoiaError):
    status_code = 401
    public_message = "Unauthorized"


class ForbiddenError(EzfoiaError):
    status_code = 403
    public_message = "Forbidden"


class NotFoundError(EzfoiaError):
    status_code = 404
    public_message = "Not found"


class ValidationFailed(EzfoiaError):
    status_code = 400
    public_message = "Invalid request"

    def __init__(self, public_message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(public_message)
        self.details = details or {}

    def to_body(self) -> Dict[str, Any]:
        body = super().to_body()
        if self.details:
            body["details"] = self.details
        return body


class UpstreamError(EzfoiaError):
    """A third-party provider (payments, AI, email, SMS) failed."""
    status_code = 502
    public_message = "Upstream service error. Please try again."


class RateLimited(EzfoiaError):
    status_code = 429
    public_message = "Rate limit exceeded. Please try again later."

    def __init__(self, public_message: Optional[str] = None, retry_after: int = 60):
        super().__init__(public_message)
        self.retry_after = retry_after


class PaymentRequired(EzfoiaError):
    """The caller has no entitlement left and the payment could not be verified."""
    status_code = 402
    public_message = "Payment required"
