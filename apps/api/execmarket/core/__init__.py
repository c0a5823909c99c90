"""Core configuration, auth, errors, logging and shared infrastructure."""

from execmarket.core.config import Settings, get_settings
from execmarket.core.auth import create_access_token, decode_access_token
from execmarket.core.errors import (
    MarketplaceError,
    ValidationError,
    AuthenticationError,
    AuthorizationError,
    QuotaExceededError,
    InsufficientCreditsError,
    NotFoundError,
    ConflictError,
    PaymentNotConfirmedError,
    DependencyError,
)
from execmarket.core.limiter import limiter
from execmarket.core.logging import setup_logging

__all__ = [
    "Settings",
    "get_settings",
    "create_access_token",
    "decode_access_token",
    "MarketplaceError",
    "ValidationError",
    "AuthenticationError",
    "AuthorizationError",
    "QuotaExceededError",
    "InsufficientCreditsError",
    "NotFoundError",
    "ConflictError",
    "PaymentNotConfirmedError",
    "DependencyError",
    "limiter",
    "setup_logging",
]
