"""Tests for secret redaction helpers."""

from pydantic import SecretStr

from omada_voucher_core.utils.credential_utils import REDACTED, mask_identifier, redact_secrets


class TestRedactSecrets:
    def test_masks_secret_in_string(self):
        assert redact_secrets("secret is abc123!", ["abc123"]) == f"secret is {REDACTED}!"

    def test_walks_nested_structures(self):
        value = {"msg": "bad abc123", "items": ["abc123", 5], "nested": {"x": "abc123abc123"}}
        result = redact_secrets(value, [SecretStr("abc123")])

        assert result == {
            "msg": f"bad {REDACTED}",
            "items": [REDACTED, 5],
            "nested": {"x": REDACTED + REDACTED},
        }

    def test_longest_secret_masked_first(self):
        result = redact_secrets("token=abcdef", ["abc", "abcdef"])
        assert result == f"token={REDACTED}"

    def test_no_secrets_returns_value_unchanged(self):
        value = {"a": "b"}
        assert redact_secrets(value, [None, ""]) is value

    def test_non_string_leaves_untouched(self):
        assert redact_secrets(42, ["42"]) == 42


class TestMaskIdentifier:
    def test_keeps_prefix(self):
        assert mask_identifier("client-7f3a") == f"clie{REDACTED}"

    def test_short_values_fully_masked(self):
        assert mask_identifier("abc") == REDACTED

    def test_empty(self):
        assert mask_identifier(None) is None
