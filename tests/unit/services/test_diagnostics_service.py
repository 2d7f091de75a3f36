"""
Tests for DiagnosticsService. Nothing it returns may carry the client secret
or an access token.
"""

import pytest
import requests
from pydantic import SecretStr

from omada_voucher_core.adapters import ControllerClient
from omada_voucher_core.services import CredentialService, DiagnosticsService
from omada_voucher_core.utils.credential_utils import REDACTED
from tests.fixtures.sample_data import TEST_CLIENT_SECRET, TEST_CONTROLLER_URL
from tests.fixtures.stub_controller import SITES, TOKEN, envelope


def _build(credential_service, app_config, stub_controller, clock):
    client = ControllerClient(
        credential_service,
        config=app_config.controller,
        token_config=app_config.token,
        session=stub_controller,
        clock=clock,
    )
    return DiagnosticsService(credential_service, client)


@pytest.fixture
def diagnostics(credential_service, app_config, stub_controller, clock):
    stub_controller.add_site("site-a", "Hotspot A")
    return _build(credential_service, app_config, stub_controller, clock)


class TestCredentialTest:
    def test_valid_credentials(self, diagnostics, stub_controller):
        result = diagnostics.test_credentials()

        assert result.success is True
        assert result.details["controller_url"] == TEST_CONTROLLER_URL
        assert result.details["site_count"] == 1
        assert stub_controller.token_exchanges == 1

    def test_always_exchanges_a_fresh_token(self, diagnostics, stub_controller):
        diagnostics.client.tokens.get_valid_token()

        diagnostics.test_credentials()

        assert stub_controller.token_exchanges == 2

    def test_wrong_secret_reported_as_invalid(self, diagnostics, credential_store, credential):
        # Changed behind the handle's back: the test must reload it
        credential_store.save(credential.model_copy(update={"client_secret": SecretStr("not-it-0000")}))

        result = diagnostics.test_credentials()

        assert result.success is False
        assert result.error_type == "CredentialError"
        assert result.message == "Invalid controller credentials"
        assert result.details["controller_code"] == -44116
        assert "not-it-0000" not in result.model_dump_json()

    def test_not_configured(self, credential_store, app_config, stub_controller, clock):
        diagnostics = _build(CredentialService(credential_store), app_config, stub_controller, clock)

        result = diagnostics.test_credentials()

        assert result.success is False
        assert result.error_type == "CredentialNotFoundError"
        assert result.message == "Controller credentials are not configured"
        assert stub_controller.token_exchanges == 0

    def test_unreachable_controller(self, diagnostics, stub_controller):
        stub_controller.fail_next(TOKEN, requests.exceptions.ConnectTimeout("connect timed out"))

        result = diagnostics.test_credentials()

        assert result.success is False
        assert result.error_type == "TransientError"
        assert result.message.startswith("Controller test failed:")

    def test_rejected_fresh_token_not_retried(self, diagnostics, stub_controller):
        stub_controller.fail_next(SITES, envelope(-44112, msg="expired"))

        result = diagnostics.test_credentials()

        assert result.success is False
        assert result.error_type == "CredentialError"
        assert len(stub_controller.calls_for(SITES)) == 1

    def test_rejected_fresh_token_cleared_from_cache(self, diagnostics, stub_controller):
        stub_controller.fail_next(SITES, envelope(-44112, msg="expired"))

        result = diagnostics.test_credentials()

        assert result.success is False
        assert diagnostics.client.tokens.get_token_info()["has_token"] is False

        diagnostics.client.list_sites()

        assert stub_controller.token_exchanges == 2

    def test_secret_echoed_by_controller_is_masked(self, diagnostics, stub_controller):
        stub_controller.fail_next(SITES, envelope(-1001, msg=f"bad {TEST_CLIENT_SECRET}"))

        result = diagnostics.test_credentials()

        dumped = result.model_dump_json()
        assert TEST_CLIENT_SECRET not in dumped
        assert REDACTED in dumped


class TestCredentialAdmin:
    def test_summary_redacted(self, diagnostics):
        summary = diagnostics.get_credential_summary()

        assert summary.client_secret == REDACTED
        assert TEST_CLIENT_SECRET not in summary.model_dump_json()

    def test_update_discards_token(self, diagnostics):
        diagnostics.client.tokens.get_valid_token()

        summary = diagnostics.update_credentials(
            {
                "controller_url": TEST_CONTROLLER_URL,
                "tenant_id": "tenant-2",
                "client_id": "client-2",
                "client_secret": "secret-2-value",
            }
        )

        assert summary.tenant_id == "tenant-2"
        assert summary.client_secret == REDACTED
        assert diagnostics.get_token_info()["has_token"] is False

    def test_clear_token_cache(self, diagnostics, stub_controller):
        diagnostics.client.tokens.get_valid_token()

        diagnostics.clear_token_cache()
        diagnostics.client.tokens.get_valid_token()

        assert stub_controller.token_exchanges == 2
