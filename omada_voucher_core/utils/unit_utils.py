"""
Unit conversion between local plan values and controller wire values.

Every price, rate limit and duration that crosses the controller boundary
goes through this module. Prices are ``Decimal`` quantized to two fractional
digits locally; their wire form depends on ``PriceWireUnit``.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional, Union

from ..constants import KBPS_PER_MBPS, PriceWireUnit
from ..exceptions import ValidationError

CENT = Decimal("0.01")

Number = Union[int, float, str, Decimal]


def to_money(value: Optional[Number], field: str = "price") -> Decimal:
    """Parse any numeric-ish value into a 2-place Decimal. ``None``/"" become 0.00."""
    if value is None or value == "":
        return Decimal("0.00")
    try:
        # str() first so floats like 15.1 do not drag binary noise along
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValidationError(
            f"Invalid monetary value for {field}: {value!r}", field=field, cause=e
        ) from e
    if not amount.is_finite():
        raise ValidationError(f"Invalid monetary value for {field}: {value!r}", field=field)
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def price_to_wire(amount: Decimal, unit: PriceWireUnit) -> Union[float, int]:
    """Local price -> controller field value."""
    amount = to_money(amount)
    if unit == PriceWireUnit.MINOR:
        return int((amount * 100).to_integral_value(rounding=ROUND_HALF_UP))
    return float(amount)


def price_from_wire(value: Any, unit: PriceWireUnit) -> Decimal:
    """Controller field value -> local price."""
    if value is None or value == "":
        return Decimal("0.00")
    if unit == PriceWireUnit.MINOR:
        return to_money(to_money(value) / 100)
    return to_money(value)


def mbps_to_kbps(mbps: Optional[Number]) -> int:
    """Plan rate limits are stored in Mbps; the controller wants Kbps."""
    if not mbps:
        return 0
    return int(Decimal(str(mbps)) * KBPS_PER_MBPS)


def duration_to_wire(minutes: int) -> int:
    """Voucher durations are exchanged in whole minutes."""
    if minutes <= 0:
        raise ValidationError("Voucher duration must be positive", field="duration_minutes")
    return int(minutes)
