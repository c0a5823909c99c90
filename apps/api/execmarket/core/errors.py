"""Error taxonomy for search, disclosure and billing.

Services raise these; ``execmarket.main`` renders them as
``{"detail": message, "code": code}`` with the class's HTTP status.
Messages are safe to show to clients; internal detail goes to the log.
"""

from fastapi import status


class MarketplaceError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "internal_error"
    default_message: str = "Something went wrong."

    def __init__(self, message: str | None = None, *, code: str | None = None):
        self.message = message or self.default_message
        if code:
            self.code = code
        super().__init__(self.message)


class ValidationError(MarketplaceError):
    """Malformed input value. The filter codec collects these instead of raising."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "validation_error"
    default_message = "Invalid value."

    def __init__(self, message: str | None = None, *, field: str | None = None, code: str | None = None):
        self.field = field
        super().__init__(message, code=code)


class AuthenticationError(MarketplaceError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "not_authenticated"
    default_message = "Not authenticated"


class AuthorizationError(MarketplaceError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"
    default_message = "Company or admin membership required"


class QuotaExceededError(MarketplaceError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    code = "quota_exceeded"
    default_message = "Search quota exceeded. Upgrade your plan to continue searching."


class InsufficientCreditsError(QuotaExceededError):
    status_code = status.HTTP_402_PAYMENT_REQUIRED
    code = "insufficient_credits"
    default_message = "Insufficient credits"


class NotFoundError(MarketplaceError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"
    default_message = "Not found"


class ConflictError(MarketplaceError):
    status_code = status.HTTP_409_CONFLICT
    code = "conflict"
    default_message = "Conflicting request"


class PaymentNotConfirmedError(MarketplaceError):
    """Card payment reserved but not yet confirmed by the payment processor."""

    status_code = status.HTTP_402_PAYMENT_REQUIRED
    code = "payment_not_confirmed"
    default_message = "Payment not confirmed yet. The profile unlocks once the payment succeeds."

    def __init__(self, message: str | None = None, *, payment_ref: str | None = None):
        self.payment_ref = payment_ref
        super().__init__(message)


class DependencyError(MarketplaceError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "dependency_unavailable"
    default_message = "Service temporarily unavailable. Please try again."
