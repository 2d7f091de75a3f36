"""
Factory Boy factories for generating consistent test data.

Model factories persist through the global database manager; schema
factories build the typed controller payloads the services consume.
"""

from decimal import Decimal

import factory
import factory.alchemy

from omada_voucher_core.db import Site, Voucher, get_db_manager
from omada_voucher_core.enums import SiteStatus, VoucherStatus
from omada_voucher_core.schemas import (
    RemoteSite,
    RemoteVoucher,
    RemoteVoucherGroup,
    UsageSummary,
    VoucherPlanSpec,
)

# ==================== BASE FACTORIES ====================


class BaseFactory(factory.alchemy.SQLAlchemyModelFactory):
    """Base factory with common patterns."""

    class Meta:
        abstract = True
        sqlalchemy_session_factory = lambda: get_db_manager().get_session()  # noqa: E731
        sqlalchemy_session_persistence = "commit"


# ==================== MODEL FACTORIES ====================


class SiteFactory(BaseFactory):
    class Meta:
        model = Site

    remote_site_id = factory.Sequence(lambda n: f"site-{n:04d}")
    name = factory.Sequence(lambda n: f"Hotspot {n}")
    location = "Sao Paulo"
    status = SiteStatus.ACTIVE.value


class VoucherFactory(BaseFactory):
    class Meta:
        model = Voucher

    remote_voucher_id = factory.Sequence(lambda n: f"v-{n}")
    site_id = factory.LazyAttribute(lambda o: SiteFactory().id)
    group_id = "grp-1"
    code = factory.Sequence(lambda n: f"{n:08d}")
    status = VoucherStatus.ACTIVE.value
    unit_price = Decimal("5.00")
    currency = "BRL"


# ==================== SCHEMA FACTORIES ====================


class RemoteSiteFactory(factory.Factory):
    class Meta:
        model = RemoteSite

    site_id = factory.Sequence(lambda n: f"site-{n:04d}")
    name = factory.Sequence(lambda n: f"Hotspot {n}")
    location = "Sao Paulo"


class RemoteVoucherFactory(factory.Factory):
    class Meta:
        model = RemoteVoucher

    voucher_id = factory.Sequence(lambda n: f"v-{n}")
    code = factory.Sequence(lambda n: f"{n:08d}")
    status = VoucherStatus.ACTIVE
    remote_status = 0


class RemoteVoucherGroupFactory(factory.Factory):
    class Meta:
        model = RemoteVoucherGroup

    group_id = factory.Sequence(lambda n: f"grp-{n}")
    name = factory.Sequence(lambda n: f"Plano {n}")
    unit_price = Decimal("5.00")
    currency = "BRL"
    vouchers = factory.LazyFunction(lambda: [RemoteVoucherFactory() for _ in range(2)])
    total_count = factory.LazyAttribute(lambda o: len(o.vouchers))


class UsageSummaryFactory(factory.Factory):
    class Meta:
        model = UsageSummary

    total = 10
    unused = 4
    used = 3
    in_use = 1
    expired = 2
    total_amount = Decimal("30.00")
    currency = "BRL"


class VoucherPlanSpecFactory(factory.Factory):
    class Meta:
        model = VoucherPlanSpec

    plan_id = factory.Sequence(lambda n: f"plan-{n}")
    name = "Plano 1 Hora"
    quantity = 3
    duration_minutes = 60
    down_limit_mbps = Decimal("10")
    up_limit_mbps = Decimal("2")
    unit_price = Decimal("5.00")
    currency = "BRL"
