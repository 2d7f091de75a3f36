"""
Tests for json_utils: Decimal, datetime, Enum, SecretStr and pydantic support.
"""

import json
from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, SecretStr

from omada_voucher_core.enums import VoucherStatus
from omada_voucher_core.utils.json_utils import dumps, loads


class SamplePydanticModel(BaseModel):
    name: str
    value: int


class TestEnhancedJSONEncoder:
    def test_encode_decimal_keeps_exact_digits(self):
        assert dumps({"price": Decimal("19.90")}) == '{"price": "19.90"}'

    def test_encode_datetime(self):
        assert dumps({"at": datetime(2026, 1, 1, 10, 30)}) == '{"at": "2026-01-01T10:30:00"}'

    def test_encode_date(self):
        assert dumps({"day": date(2026, 1, 1)}) == '{"day": "2026-01-01"}'

    def test_encode_enum(self):
        assert json.loads(dumps({"status": VoucherStatus.USED})) == {"status": "used"}

    def test_encode_secret_is_masked(self):
        result = dumps({"client_secret": SecretStr("hunter2")})
        assert "hunter2" not in result

    def test_encode_pydantic_model(self):
        result = dumps({"model": SamplePydanticModel(name="test", value=42)})
        assert json.loads(result) == {"model": {"name": "test", "value": 42}}


class TestLoads:
    def test_loads_round_trip_plain_data(self):
        assert loads('{"a": [1, 2]}') == {"a": [1, 2]}

    def test_loads_bytes(self):
        assert loads(b'{"ok": true}') == {"ok": True}
