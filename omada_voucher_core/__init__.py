"""
Omada voucher controller integration core.

Keeps an OAuth2 client-credentials token valid for the controller's OpenAPI,
mirrors sites, vouchers and usage locally, and issues vouchers on demand.
"""

from .core import VoucherCore
from .exceptions import (
    AmbiguousOutcomeError,
    BaseError,
    CredentialError,
    CredentialNotFoundError,
    NotFoundError,
    RateLimitedError,
    TransientError,
    ValidationError,
)

__version__ = "0.1.0"

__all__ = [
    "VoucherCore",
    "AmbiguousOutcomeError",
    "BaseError",
    "CredentialError",
    "CredentialNotFoundError",
    "NotFoundError",
    "RateLimitedError",
    "TransientError",
    "ValidationError",
]
