"""
Tests for VoucherService: issuing vouchers, resolving unknown create
outcomes and reacting to sites that vanished remotely.
"""

import re
from decimal import Decimal

import pytest
import requests

from omada_voucher_core.adapters import ControllerClient
from omada_voucher_core.enums import SiteStatus, VoucherStatus
from omada_voucher_core.exceptions import (
    AmbiguousOutcomeError,
    NotFoundError,
    ServiceError,
    ValidationError,
)
from omada_voucher_core.services import SyncScheduler, VoucherService
from tests.fixtures.factories import VoucherPlanSpecFactory
from tests.fixtures.stub_controller import CREATE_GROUP, GROUP, GROUPS, envelope


@pytest.fixture
def client(credential_service, app_config, stub_controller, clock):
    return ControllerClient(
        credential_service,
        config=app_config.controller,
        token_config=app_config.token,
        session=stub_controller,
        clock=clock,
    )


@pytest.fixture
def controller(stub_controller):
    stub_controller.add_site("site-a", "Hotspot A")
    stub_controller.add_site("site-b", "Hotspot B")
    return stub_controller


@pytest.fixture
def scheduler(client, mirror, app_config, clock):
    return SyncScheduler(client, mirror, config=app_config.sync, clock=clock, sleep=lambda _: None)


@pytest.fixture
def service(client, mirror, scheduler, clock, controller):
    scheduler.trigger()
    return VoucherService(client, mirror, scheduler=scheduler, clock=clock)


@pytest.fixture
def site(mirror, service):
    return mirror.get_site(remote_site_id="site-a")


@pytest.fixture
def plan():
    return VoucherPlanSpecFactory(
        plan_id="plan-1h", name="Plano 1 Hora", quantity=3, unit_price="15.00", currency="BRL"
    )


def _operations(controller):
    return [call["operation"] for call in controller.calls]


# ==================== ISSUE TESTS ====================


class TestCreateVouchers:
    def test_vouchers_created_and_mirrored(self, service, site, plan, controller, mirror):
        # Act
        vouchers = service.create_vouchers(site.id, plan)

        # Assert
        assert len(vouchers) == 3
        assert all(v.status == VoucherStatus.ACTIVE for v in vouchers)
        assert all(v.plan_id == "plan-1h" for v in vouchers)
        assert all(v.unit_price == Decimal("15.00") for v in vouchers)
        assert len(mirror.list_vouchers(site.id)) == 3

    def test_group_name_is_unique_per_create(self, service, site, plan, controller):
        service.create_vouchers(site.id, plan)
        service.create_vouchers(site.id, plan)

        names = [g["name"] for g in controller.groups["site-a"]]
        assert len(set(names)) == 2
        assert all(re.fullmatch(r"Plano 1 Ho - [0-9A-F]{8}", n) for n in names)

    def test_zero_controller_price_uses_plan_price(self, service, site, plan, controller):
        controller.fail_next(
            GROUP,
            envelope(
                0,
                {
                    "id": "grp-free",
                    "name": "whatever",
                    "unitPrice": 0,
                    "totalRows": 1,
                    "currentPage": 1,
                    "currentSize": 3,
                    "data": [{"id": "v-free", "code": "99999999", "status": 0}],
                },
            ),
        )

        vouchers = service.create_vouchers(site.id, plan)

        assert vouchers[0].unit_price == Decimal("15.00")

    def test_empty_group_is_an_error(self, service, site, plan, controller):
        controller.fail_next(
            GROUP, envelope(0, {"id": "grp-empty", "totalRows": 0, "currentPage": 1, "data": []})
        )

        with pytest.raises(ServiceError):
            service.create_vouchers(site.id, plan)

    def test_unknown_site(self, service, plan):
        with pytest.raises(NotFoundError):
            service.create_vouchers("no-such-site", plan)


# ==================== AMBIGUOUS OUTCOME TESTS ====================


class TestAmbiguousCreate:
    def test_timeout_after_create_is_resolved_by_listing(self, service, site, plan, controller, mirror):
        controller.fail_next(CREATE_GROUP, requests.exceptions.ReadTimeout("read timed out"), apply_first=True)

        vouchers = service.create_vouchers(site.id, plan)

        assert len(vouchers) == 3
        assert len(controller.groups["site-a"]) == 1
        assert service.pending_creates() == {}

    def test_create_that_never_happened(self, service, site, plan, controller):
        controller.fail_next(CREATE_GROUP, requests.exceptions.ReadTimeout("read timed out"))

        with pytest.raises(AmbiguousOutcomeError):
            service.create_vouchers(site.id, plan)

        assert site.id in service.pending_creates()
        controller.calls.clear()

        vouchers = service.create_vouchers(site.id, plan)

        ops = _operations(controller)
        assert ops.index(GROUPS) < ops.index(CREATE_GROUP)
        assert len(vouchers) == 3
        assert len(controller.groups["site-a"]) == 1
        assert service.pending_creates() == {}

    def test_late_appearing_group_mirrored_before_next_create(
        self, service, site, plan, controller, mirror
    ):
        controller.fail_next(CREATE_GROUP, requests.exceptions.ReadTimeout("read timed out"), apply_first=True)
        controller.fail_next(
            GROUPS, envelope(0, {"totalRows": 0, "currentPage": 1, "currentSize": 2, "data": []})
        )

        with pytest.raises(AmbiguousOutcomeError):
            service.create_vouchers(site.id, plan)
        pending_name = service.pending_creates()[site.id]

        service.create_vouchers(site.id, plan)

        assert pending_name in [g["name"] for g in controller.groups["site-a"]]
        assert len(controller.groups["site-a"]) == 2
        assert len(mirror.list_vouchers(site.id)) == 6
        assert service.pending_creates() == {}

    def test_pending_is_per_site(self, service, site, plan, controller, mirror):
        controller.fail_next(CREATE_GROUP, requests.exceptions.ReadTimeout("read timed out"))
        with pytest.raises(AmbiguousOutcomeError):
            service.create_vouchers(site.id, plan)
        controller.calls.clear()

        other = mirror.get_site(remote_site_id="site-b")
        service.create_vouchers(other.id, plan)

        assert GROUPS not in _operations(controller)
        assert site.id in service.pending_creates()


# ==================== VANISHED SITE TESTS ====================


class TestVanishedSite:
    def test_not_found_triggers_resync(self, service, site, plan, controller, mirror):
        controller.remove_site("site-a")

        with pytest.raises(NotFoundError):
            service.create_vouchers(site.id, plan)

        assert mirror.get_site(site_id=site.id).status == SiteStatus.INACTIVE.value

    def test_inactive_site_rejected(self, service, site, plan, controller):
        controller.remove_site("site-a")
        with pytest.raises(NotFoundError):
            service.create_vouchers(site.id, plan)

        with pytest.raises(ValidationError):
            service.create_vouchers(site.id, plan)
