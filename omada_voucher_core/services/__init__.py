"""Service layer for the controller integration core."""

from .credential_service import CredentialService, parse_credential
from .diagnostics_service import DiagnosticsService
from .sync_service import SyncScheduler
from .token_service import TokenCache
from .voucher_service import PendingCreate, VoucherService

__all__ = [
    "CredentialService",
    "parse_credential",
    "DiagnosticsService",
    "SyncScheduler",
    "TokenCache",
    "PendingCreate",
    "VoucherService",
]
