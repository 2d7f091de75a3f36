"""Pydantic schemas for credentials, controller payloads and sync state."""

from .controller_schemas import (
    CachedToken,
    RemoteSite,
    RemoteVoucher,
    RemoteVoucherGroup,
    SiteBatchResult,
    SiteRecord,
    TokenGrant,
    UsageSummary,
    Voucher,
    VoucherBatchResult,
    VoucherPlanSpec,
    map_remote_voucher_status,
)
from .credential_schemas import Credential, CredentialSummary
from .sync_schemas import CredentialTestResult, SyncRun, SyncStatus, SyncStepResult

__all__ = [
    "CachedToken",
    "RemoteSite",
    "RemoteVoucher",
    "RemoteVoucherGroup",
    "SiteBatchResult",
    "SiteRecord",
    "TokenGrant",
    "UsageSummary",
    "Voucher",
    "VoucherBatchResult",
    "VoucherPlanSpec",
    "map_remote_voucher_status",
    "Credential",
    "CredentialSummary",
    "CredentialTestResult",
    "SyncRun",
    "SyncStatus",
    "SyncStepResult",
]
