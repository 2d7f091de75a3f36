"""
Mirrored controller vouchers.
"""

from sqlalchemy import Column, DateTime, ForeignKey, Index, Numeric, String

from ..enums import VoucherStatus
from .db_base import TimestampMixin, UUIDMixin
from .db_config import Base


class Voucher(Base, UUIDMixin, TimestampMixin):
    """A voucher code issued on a site. Status only moves forward."""

    __tablename__ = "vouchers"

    remote_voucher_id = Column(String(100), nullable=False)
    site_id = Column(String(36), ForeignKey("sites.id"), nullable=False, index=True)
    plan_id = Column(String(100), nullable=True)
    group_id = Column(String(100), nullable=True, index=True)
    code = Column(String(64), nullable=False)
    status = Column(String(20), nullable=False, default=VoucherStatus.ACTIVE.value)
    unit_price = Column(Numeric(12, 2), nullable=False, default=0)
    currency = Column(String(3), nullable=False)
    used_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_voucher_remote_lookup", "site_id", "remote_voucher_id", unique=True),
    )
