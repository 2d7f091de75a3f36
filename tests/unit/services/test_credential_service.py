"""
Tests for CredentialService: lazy loading, reloads, updates and listeners.
"""

from unittest.mock import Mock

import pytest

from omada_voucher_core.exceptions import CredentialNotFoundError, ValidationError
from omada_voucher_core.services import CredentialService, parse_credential
from omada_voucher_core.utils.credential_utils import REDACTED
from tests.fixtures.sample_data import TEST_CLIENT_SECRET, TEST_CONTROLLER_URL, TEST_TENANT_ID


class TestParseCredential:
    def test_valid_dict(self):
        credential = parse_credential(
            {
                "controller_url": TEST_CONTROLLER_URL + "/",
                "tenant_id": TEST_TENANT_ID,
                "client_id": "abc",
                "client_secret": "xyz",
            }
        )
        assert credential.controller_url == TEST_CONTROLLER_URL

    def test_missing_fields_listed(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_credential({"controller_url": TEST_CONTROLLER_URL, "client_secret": "xyz"})

        assert set(exc_info.value.context["invalid_fields"]) == {"tenant_id", "client_id"}


class TestCredentialLoading:
    def test_load_is_lazy_and_cached(self, credential, credential_store):
        credential_store.save(credential)
        store = Mock(wraps=credential_store)
        service = CredentialService(store)

        service.load()
        service.load()

        assert store.load.call_count == 1

    def test_current_without_credential_raises(self, credential_store):
        service = CredentialService(credential_store)

        with pytest.raises(CredentialNotFoundError):
            service.current()

    def test_reload_notifies_only_on_change(self, credential_service, credential_store):
        listener = Mock()
        credential_service.add_reload_listener(listener)

        credential_service.reload()
        listener.assert_not_called()

        rotated = credential_service.current().model_copy(update={"client_id": "client-rotated"})
        credential_store.save(rotated)
        credential_service.reload()

        listener.assert_called_once()
        assert listener.call_args.args[0].client_id == "client-rotated"


class TestCredentialUpdate:
    def test_update_persists_and_notifies(self, credential_service, credential_store):
        listener = Mock()
        credential_service.add_reload_listener(listener)

        updated = credential_service.update(
            {
                "controller_url": "https://other.test",
                "tenant_id": TEST_TENANT_ID,
                "client_id": "client-new",
                "client_secret": "new-secret-value",
            }
        )

        assert updated.updated_at is not None
        assert credential_service.current().client_id == "client-new"
        assert credential_store.load().controller_url == "https://other.test"
        listener.assert_called_once_with(updated)

    def test_invalid_update_leaves_current(self, credential_service):
        with pytest.raises(ValidationError):
            credential_service.update({"controller_url": "not-a-url"})

        assert credential_service.current().client_secret.get_secret_value() == TEST_CLIENT_SECRET


class TestCredentialSummary:
    def test_summary_redacts_secret(self, credential_service):
        summary = credential_service.summary()

        assert summary.configured is True
        assert summary.client_secret == REDACTED
        assert TEST_CLIENT_SECRET not in summary.model_dump_json()

    def test_summary_not_configured(self, credential_store):
        summary = CredentialService(credential_store).summary()
        assert summary.configured is False
        assert summary.client_secret is None

    def test_known_secrets_do_not_hit_store(self, credential_service):
        credential_service.store = Mock()

        secrets = credential_service.known_secrets()

        assert [s.get_secret_value() for s in secrets] == [TEST_CLIENT_SECRET]
        credential_service.store.load.assert_not_called()
