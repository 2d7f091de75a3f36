"""
Unit conversion tests, including the pinned wire representation of prices,
rate limits and durations sent to the controller.
"""

from decimal import Decimal

import pytest

from omada_voucher_core.adapters.controller_client import build_voucher_group_payload
from omada_voucher_core.constants import PriceWireUnit
from omada_voucher_core.exceptions import ValidationError
from omada_voucher_core.schemas import VoucherPlanSpec
from omada_voucher_core.utils.unit_utils import (
    duration_to_wire,
    mbps_to_kbps,
    price_from_wire,
    price_to_wire,
    to_money,
)


class TestToMoney:
    @pytest.mark.parametrize(
        "value, expected",
        [
            (15, Decimal("15.00")),
            ("15.1", Decimal("15.10")),
            (15.1, Decimal("15.10")),
            ("2.005", Decimal("2.01")),
            (None, Decimal("0.00")),
            ("", Decimal("0.00")),
        ],
    )
    def test_quantizes_to_cents(self, value, expected):
        assert to_money(value) == expected

    @pytest.mark.parametrize("value", ["abc", "NaN", "Infinity"])
    def test_rejects_non_numeric(self, value):
        with pytest.raises(ValidationError) as exc_info:
            to_money(value, field="unit_price")
        assert exc_info.value.context["field"] == "unit_price"


class TestPriceWire:
    def test_decimal_wire_unit(self):
        assert price_to_wire(Decimal("15.00"), PriceWireUnit.DECIMAL) == 15.0
        assert price_from_wire(15, PriceWireUnit.DECIMAL) == Decimal("15.00")

    def test_minor_wire_unit(self):
        assert price_to_wire(Decimal("15.00"), PriceWireUnit.MINOR) == 1500
        assert price_from_wire(1500, PriceWireUnit.MINOR) == Decimal("15.00")
        assert price_from_wire("199", PriceWireUnit.MINOR) == Decimal("1.99")

    def test_missing_wire_price_is_zero(self):
        assert price_from_wire(None, PriceWireUnit.MINOR) == Decimal("0.00")


class TestRatesAndDurations:
    def test_mbps_to_kbps(self):
        assert mbps_to_kbps(10) == 10240
        assert mbps_to_kbps(Decimal("1.5")) == 1536
        assert mbps_to_kbps(None) == 0

    def test_duration_in_minutes(self):
        assert duration_to_wire(60) == 60

    def test_duration_must_be_positive(self):
        with pytest.raises(ValidationError):
            duration_to_wire(0)


class TestVoucherGroupWireContract:
    """Pins what the controller receives for a plan. Changing these values changes billing."""

    @pytest.fixture
    def plan(self):
        return VoucherPlanSpec(
            name="Plano 1h - AB12CD34",
            quantity=5,
            code_length=8,
            duration_minutes=60,
            down_limit_mbps=Decimal("10"),
            up_limit_mbps=Decimal("2"),
            unit_price="15.00",
            currency="BRL",
        )

    def test_decimal_contract(self, plan):
        payload = build_voucher_group_payload(plan, PriceWireUnit.DECIMAL)

        assert payload["unitPrice"] == 15.0
        assert payload["currency"] == "BRL"
        assert payload["amount"] == 5
        assert payload["duration"] == 60
        assert payload["durationType"] == 0
        assert payload["rateLimit"] == {
            "mode": 0,
            "customRateLimit": {
                "downLimitEnable": True,
                "downLimit": 10240,
                "upLimitEnable": True,
                "upLimit": 2048,
            },
        }

    def test_minor_units_contract(self, plan):
        payload = build_voucher_group_payload(plan, PriceWireUnit.MINOR)
        assert payload["unitPrice"] == 1500

    def test_no_rate_limit_disables_flags(self, plan):
        payload = build_voucher_group_payload(
            plan.model_copy(update={"down_limit_mbps": None, "up_limit_mbps": None})
        )
        limits = payload["rateLimit"]["customRateLimit"]
        assert limits["downLimitEnable"] is False
        assert limits["downLimit"] == 0

    def test_default_currency_applied(self, plan):
        payload = build_voucher_group_payload(
            plan.model_copy(update={"currency": None}), default_currency="USD"
        )
        assert payload["currency"] == "USD"
