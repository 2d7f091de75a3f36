"""
Process-wide handle on the controller credential.

Every component that needs the credential receives this handle instead of
reading the store on its own, so a reload or an admin update is seen by all
of them at once.
"""

import threading
from typing import Any, Callable, Dict, List, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from ..exceptions import CredentialNotFoundError, ErrorCode, ValidationError
from ..repositories.credential_repository import CredentialStore
from ..schemas.credential_schemas import Credential, CredentialSummary
from ..utils.credential_utils import mask_identifier
from ..utils.logger import get_logger

ReloadListener = Callable[[Optional[Credential]], None]


def parse_credential(data: Union[Credential, Dict[str, Any]]) -> Credential:
    """Build a Credential, turning pydantic failures into ValidationError."""
    if isinstance(data, Credential):
        return data
    try:
        return Credential(**data)
    except PydanticValidationError as e:
        invalid_fields = [".".join(str(p) for p in err["loc"]) for err in e.errors()]
        raise ValidationError(
            f"Invalid controller credential: {', '.join(invalid_fields)}",
            field="credential",
            error_code=ErrorCode.MISSING_REQUIRED,
            invalid_fields=invalid_fields,
        ) from e


class CredentialService:
    """
    Holds the current credential and notifies listeners when it changes.

    Listeners (the token cache) are called outside the internal lock.
    """

    def __init__(self, store: CredentialStore):
        self.store = store
        self.logger = get_logger()
        self._lock = threading.RLock()
        self._credential: Optional[Credential] = None
        self._loaded = False
        self._listeners: List[ReloadListener] = []

    def add_reload_listener(self, listener: ReloadListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def load(self) -> Optional[Credential]:
        """Load from the store on first use; later calls return the cached value."""
        with self._lock:
            if self._loaded:
                return self._credential
        return self.reload()

    def reload(self) -> Optional[Credential]:
        """Re-read the store. Listeners fire only when the credential changed."""
        credential = self.store.load()
        with self._lock:
            changed = self._loaded and credential != self._credential
            self._credential = credential
            self._loaded = True

        self.logger.info(
            "Controller credential loaded",
            extra={"configured": credential is not None, "changed": changed},
        )
        if changed:
            self._notify(credential)
        return credential

    def current(self) -> Credential:
        credential = self.load()
        if credential is None:
            raise CredentialNotFoundError()
        return credential

    def update(self, data: Union[Credential, Dict[str, Any]]) -> Credential:
        """Validate, persist and publish a new credential."""
        credential = self.store.save(parse_credential(data))
        with self._lock:
            self._credential = credential
            self._loaded = True

        self.logger.info(
            "Controller credential updated",
            extra={"tenant_id": credential.tenant_id, "client_id": mask_identifier(credential.client_id)},
        )
        self._notify(credential)
        return credential

    def known_secrets(self) -> List[Any]:
        """Secrets to mask in anything surfaced. Never touches the store."""
        with self._lock:
            credential = self._credential
        return [credential.client_secret] if credential is not None else []

    def summary(self) -> CredentialSummary:
        credential = self.load()
        if credential is None:
            return CredentialSummary.not_configured()
        return credential.summary()

    def _notify(self, credential: Optional[Credential]) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            listener(credential)
