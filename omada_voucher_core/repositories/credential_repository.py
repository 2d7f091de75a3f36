"""
Credential Store Adapter.

Reads and writes the single controller credential record. The secret is
encrypted at rest with pgcrypto on PostgreSQL.
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Optional

from pydantic import SecretStr
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError

from ..db.db_base import utc_now
from ..db.db_config import DatabaseManager
from ..db.db_credential_models import ControllerCredential
from ..exceptions import ErrorCode, RepositoryError, ValidationError
from ..schemas.credential_schemas import Credential
from ..utils.encryption_utils import decrypt_client_secret, encrypt_client_secret
from ..utils.logger import get_logger


class CredentialStore(ABC):
    """Where the controller credential lives."""

    @abstractmethod
    def load(self) -> Optional[Credential]:
        """Return the active credential, or ``None`` if none is configured."""

    @abstractmethod
    def save(self, credential: Credential) -> Credential:
        """Replace the active credential and return it as stored."""


class SQLCredentialStore(CredentialStore):
    """Credential store backed by the ``controller_credentials`` table."""

    def __init__(self, db_manager: DatabaseManager, encryption_key: Optional[str] = None):
        self.db_manager = db_manager
        self.encryption_key = encryption_key
        self.logger = get_logger()

    @contextmanager
    def _transaction(self, operation: str):
        try:
            with self.db_manager.transaction() as session:
                yield session
        except SQLAlchemyError as e:
            raise RepositoryError(
                f"Credential store {operation} failed",
                error_code=ErrorCode.DATABASE_ERROR,
                cause=e,
                operation=operation,
            ) from e

    def load(self) -> Optional[Credential]:
        with self._transaction("load") as session:
            record = (
                session.query(ControllerCredential)
                .order_by(ControllerCredential.updated_at.desc())
                .first()
            )
            if record is None:
                return None

            secret = decrypt_client_secret(
                session, record.client_secret, self.encryption_key, record.tenant_id
            )
            try:
                return Credential(
                    controller_url=record.controller_url,
                    tenant_id=record.tenant_id,
                    client_id=record.client_id,
                    client_secret=SecretStr(secret or ""),
                    updated_at=record.updated_at,
                )
            except PydanticValidationError as e:
                raise ValidationError(
                    "Stored controller credential is incomplete",
                    field="credential",
                    error_code=ErrorCode.MISSING_REQUIRED,
                    invalid_fields=[".".join(str(p) for p in err["loc"]) for err in e.errors()],
                ) from e

    def save(self, credential: Credential) -> Credential:
        with self._transaction("save") as session:
            records = session.query(ControllerCredential).all()
            record = records[0] if records else ControllerCredential()
            # Single active record per deployment
            for stale in records[1:]:
                session.delete(stale)

            record.controller_url = credential.controller_url
            record.tenant_id = credential.tenant_id
            record.client_id = credential.client_id
            record.client_secret = encrypt_client_secret(
                session,
                credential.client_secret.get_secret_value(),
                self.encryption_key,
                credential.tenant_id,
            )
            record.updated_at = utc_now()
            session.add(record)
            session.flush()

            self.logger.info(
                "Controller credential saved",
                extra={"credential_id": record.id, "tenant_id": credential.tenant_id},
            )
            return credential.model_copy(update={"updated_at": record.updated_at})
