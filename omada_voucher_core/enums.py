"""
Enums used across the omada_voucher_core package.

This module contains enum definitions that are used by multiple modules
to avoid circular import issues.
"""

import enum


class SiteStatus(str, enum.Enum):
    """Lifecycle status of a mirrored site."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    SYNCING = "syncing"


class VoucherStatus(str, enum.Enum):
    """Local voucher status. Only moves forward: active -> used -> expired."""

    ACTIVE = "active"
    USED = "used"
    EXPIRED = "expired"

    @property
    def rank(self) -> int:
        return _VOUCHER_STATUS_RANK[self]


_VOUCHER_STATUS_RANK = {
    VoucherStatus.ACTIVE: 0,
    VoucherStatus.USED: 1,
    VoucherStatus.EXPIRED: 2,
}


class SyncState(str, enum.Enum):
    """Scheduler state."""

    IDLE = "Idle"
    RUNNING = "Running"


class SyncOutcome(str, enum.Enum):
    """Terminal outcome of a sync run."""

    SUCCEEDED = "Succeeded"
    PARTIALLY_FAILED = "PartiallyFailed"
    FAILED = "Failed"


class StepStatus(str, enum.Enum):
    """Result of one step inside a sync run."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"
