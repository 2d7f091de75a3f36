"""
Mirrored controller sites and their usage snapshot.
"""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship

from ..enums import SiteStatus
from .db_base import JSON, TimestampMixin, UUIDMixin, utc_now
from .db_config import Base


class Site(Base, UUIDMixin, TimestampMixin):
    """Local mirror of a controller site. Never hard-deleted."""

    __tablename__ = "sites"

    remote_site_id = Column(String(100), nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=False)
    location = Column(String(255), nullable=True)
    status = Column(String(20), nullable=False, default=SiteStatus.ACTIVE.value)
    last_synced_at = Column(DateTime(timezone=True), nullable=True)

    usage = relationship("SiteUsage", uselist=False, back_populates="site")


class SiteUsage(Base, UUIDMixin):
    """Latest voucher usage summary for a site (one row per site, overwritten)."""

    __tablename__ = "site_usage"

    site_id = Column(String(36), ForeignKey("sites.id"), nullable=False, unique=True)
    total = Column(Integer, nullable=False, default=0)
    unused = Column(Integer, nullable=False, default=0)
    used = Column(Integer, nullable=False, default=0)
    in_use = Column(Integer, nullable=False, default=0)
    expired = Column(Integer, nullable=False, default=0)
    total_amount = Column(Numeric(12, 2), nullable=False, default=0)
    currency = Column(String(3), nullable=False)
    raw_summary = Column(JSON, nullable=True)
    captured_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    site = relationship("Site", back_populates="usage")
