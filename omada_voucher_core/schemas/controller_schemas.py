"""
Typed views of controller payloads and voucher plan input.

``from_wire`` constructors are the only place raw controller field names
appear outside the client.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..constants import (
    DEFAULT_CURRENCY,
    REMOTE_VOUCHER_EXPIRED,
    REMOTE_VOUCHER_IN_USE,
    REMOTE_VOUCHER_UNUSED,
    REMOTE_VOUCHER_USED,
    PriceWireUnit,
)
from ..enums import VoucherStatus
from ..utils.unit_utils import price_from_wire, to_money

_REMOTE_STATUS_MAP = {
    REMOTE_VOUCHER_UNUSED: VoucherStatus.ACTIVE,
    REMOTE_VOUCHER_USED: VoucherStatus.USED,
    REMOTE_VOUCHER_IN_USE: VoucherStatus.USED,
    REMOTE_VOUCHER_EXPIRED: VoucherStatus.EXPIRED,
}


def map_remote_voucher_status(code: Any) -> Optional[VoucherStatus]:
    """Controller status code -> local status, ``None`` for unknown codes."""
    try:
        return _REMOTE_STATUS_MAP.get(int(code))
    except (TypeError, ValueError):
        return None


def _from_epoch_millis(value: Any) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)


class CachedToken(BaseModel):
    """Access token held in memory by the token cache."""

    value: str = Field(..., min_length=1, repr=False)
    obtained_at: datetime
    expires_at: datetime

    @model_validator(mode="after")
    def check_expiry_after_issue(self):
        if self.expires_at <= self.obtained_at:
            raise ValueError("expires_at must be later than obtained_at")
        return self

    @classmethod
    def issued(cls, value: str, obtained_at: datetime, ttl_seconds: int) -> "CachedToken":
        return cls(
            value=value,
            obtained_at=obtained_at,
            expires_at=obtained_at + timedelta(seconds=ttl_seconds),
        )

    def is_usable(self, now: datetime, safety_margin_seconds: int) -> bool:
        return now < self.expires_at - timedelta(seconds=safety_margin_seconds)

    def seconds_remaining(self, now: datetime) -> int:
        return max(0, int((self.expires_at - now).total_seconds()))


class RemoteSite(BaseModel):
    site_id: str
    name: str
    location: Optional[str] = None

    @classmethod
    def from_wire(cls, data: Dict[str, Any]) -> "RemoteSite":
        return cls(
            site_id=str(data.get("siteId") or data.get("id")),
            name=data.get("name") or "",
            location=data.get("region") or data.get("address") or None,
        )


class RemoteVoucher(BaseModel):
    voucher_id: str
    code: str
    status: Optional[VoucherStatus] = None
    remote_status: Optional[int] = None
    started_at: Optional[datetime] = None

    @classmethod
    def from_wire(cls, data: Dict[str, Any]) -> "RemoteVoucher":
        remote_status = data.get("status")
        return cls(
            voucher_id=str(data.get("id")),
            code=str(data.get("code")),
            status=map_remote_voucher_status(remote_status),
            remote_status=remote_status,
            started_at=_from_epoch_millis(data.get("startTime")),
        )


class RemoteVoucherGroup(BaseModel):
    group_id: str
    name: str
    unit_price: Decimal = Decimal("0.00")
    currency: str = DEFAULT_CURRENCY
    total_count: int = 0
    vouchers: List[RemoteVoucher] = Field(default_factory=list)

    @classmethod
    def from_wire(
        cls, data: Dict[str, Any], price_unit: PriceWireUnit = PriceWireUnit.DECIMAL
    ) -> "RemoteVoucherGroup":
        return cls(
            group_id=str(data.get("id")),
            name=data.get("name") or "",
            unit_price=price_from_wire(data.get("unitPrice"), price_unit),
            currency=data.get("currency") or DEFAULT_CURRENCY,
            total_count=int(data.get("totalCount") or 0),
            vouchers=[RemoteVoucher.from_wire(v) for v in data.get("data") or []],
        )


class UsageSummary(BaseModel):
    total: int = 0
    unused: int = 0
    used: int = 0
    in_use: int = 0
    expired: int = 0
    total_amount: Decimal = Decimal("0.00")
    currency: str = DEFAULT_CURRENCY
    raw: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_wire(
        cls,
        data: Dict[str, Any],
        price_unit: PriceWireUnit = PriceWireUnit.DECIMAL,
        default_currency: str = DEFAULT_CURRENCY,
    ) -> "UsageSummary":
        return cls(
            total=int(data.get("totalCount") or 0),
            unused=int(data.get("unusedCount") or 0),
            used=int(data.get("usedCount") or 0),
            in_use=int(data.get("inUseCount") or 0),
            expired=int(data.get("expiredCount") or 0),
            total_amount=price_from_wire(data.get("totalAmount"), price_unit),
            currency=data.get("currency") or default_currency,
            raw=data,
        )


class VoucherPlanSpec(BaseModel):
    """What a caller asks for when issuing vouchers for a plan."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    plan_id: Optional[str] = None
    name: str = Field(..., min_length=1, max_length=64)
    quantity: int = Field(..., ge=1, le=100)
    code_length: int = Field(default=8, ge=6, le=10)
    code_form: List[int] = Field(default_factory=lambda: [0])
    limit_type: int = Field(default=1, ge=0, le=2)
    limit_num: int = Field(default=1, ge=1)
    duration_minutes: int = Field(..., gt=0)
    down_limit_mbps: Optional[Decimal] = Field(default=None, ge=0)
    up_limit_mbps: Optional[Decimal] = Field(default=None, ge=0)
    unit_price: Decimal = Field(default=Decimal("0.00"), ge=0)
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    description: Optional[str] = None

    @field_validator("unit_price", mode="before")
    @classmethod
    def normalize_price(cls, v):
        return to_money(v, field="unit_price")


class Voucher(BaseModel):
    """Read model of a mirrored voucher."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    remote_voucher_id: str
    site_id: str
    plan_id: Optional[str] = None
    group_id: Optional[str] = None
    code: str
    status: VoucherStatus
    unit_price: Decimal
    currency: str
    created_at: Optional[datetime] = None
    used_at: Optional[datetime] = None


class SiteRecord(BaseModel):
    """Read model of a mirrored site."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    remote_site_id: str
    name: str
    location: Optional[str] = None
    status: str
    last_synced_at: Optional[datetime] = None


class VoucherBatchResult(BaseModel):
    """What a voucher upsert changed. ``newly_used`` feeds sale recording."""

    inserted: int = 0
    updated: int = 0
    newly_used: List[Voucher] = Field(default_factory=list)
    vouchers: List[Voucher] = Field(default_factory=list)


class SiteBatchResult(BaseModel):
    inserted: int = 0
    updated: int = 0
    deactivated: int = 0


class TokenGrant(BaseModel):
    """Result of a client-credentials exchange."""

    access_token: str = Field(..., min_length=1, repr=False)
    expires_in: Optional[int] = None
