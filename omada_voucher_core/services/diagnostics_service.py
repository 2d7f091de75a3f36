"""
Diagnostics Facade.

Administrative operations around the controller credential: test it end to
end, inspect it without the secret, replace it, and reset the token cache.
Nothing returned from here ever contains the client secret or a token.
"""

from typing import TYPE_CHECKING, Any, Dict, Union

from ..exceptions import BaseError, CredentialError, CredentialNotFoundError
from ..schemas.credential_schemas import Credential, CredentialSummary
from ..schemas.sync_schemas import CredentialTestResult
from ..utils.credential_utils import redact_secrets
from ..utils.logger import get_logger
from .credential_service import CredentialService

if TYPE_CHECKING:
    from ..adapters.controller_client import ControllerClient


class DiagnosticsService:
    def __init__(self, credentials: CredentialService, client: "ControllerClient"):
        self.credentials = credentials
        self.client = client
        self.logger = get_logger()

    def test_credentials(self) -> CredentialTestResult:
        """
        Reload the stored credential, obtain a fresh token with it and make
        one authenticated call.
        """
        secrets = []
        try:
            credential = self.credentials.reload()
            if credential is None:
                raise CredentialNotFoundError()
            secrets.append(credential.client_secret)

            token = self.client.tokens.force_refresh()
            secrets.append(token)
            connectivity = self.client.test_connectivity(token)
        except CredentialNotFoundError as e:
            return self._failure(e, "Controller credentials are not configured", secrets)
        except CredentialError as e:
            return self._failure(e, "Invalid controller credentials", secrets)
        except BaseError as e:
            return self._failure(e, f"Controller test failed: {e.message}", secrets)

        self.logger.info("Controller credential test succeeded")
        return CredentialTestResult(
            success=True,
            message="Controller credentials are valid",
            details=redact_secrets(
                {
                    "controller_url": credential.controller_url,
                    "tenant_id": credential.tenant_id,
                    **connectivity,
                },
                secrets,
            ),
        )

    def clear_token_cache(self) -> None:
        self.client.tokens.invalidate()
        self.logger.info("Token cache cleared")

    def get_credential_summary(self) -> CredentialSummary:
        return self.credentials.summary()

    def update_credentials(self, data: Union[Credential, Dict[str, Any]]) -> CredentialSummary:
        """Persist a new credential; the cached token is discarded."""
        credential = self.credentials.update(data)
        self.client.tokens.invalidate()
        return credential.summary()

    def get_token_info(self) -> Dict[str, Any]:
        return self.client.tokens.get_token_info()

    def _failure(self, error: BaseError, message: str, secrets: list) -> CredentialTestResult:
        self.logger.warning(
            "Controller credential test failed",
            extra={"error_type": error.error_type, "error_code": error.error_code.value},
        )
        return CredentialTestResult(
            success=False,
            message=redact_secrets(message, secrets),
            error_type=error.error_type,
            error_code=error.error_code.value,
            details=redact_secrets(
                {k: v for k, v in error.context.items() if k not in ("cause", "error_id")},
                secrets,
            ),
        )
