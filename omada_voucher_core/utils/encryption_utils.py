"""
Simple encryption utilities for credential storage.

Handles cross-database encryption (PostgreSQL pgcrypto, SQLite plaintext for testing).
"""

from typing import Optional

from sqlalchemy import text
from sqlalchemy.orm import Session

from ..exceptions import ErrorCode, ServiceError


def _is_postgres(session: Session) -> bool:
    return session.bind.dialect.name == "postgresql"


def _require_key(encryption_key: Optional[str], key_suffix: str) -> str:
    if not encryption_key:
        raise ServiceError(
            "Encryption key is not configured",
            error_code=ErrorCode.CONFIGURATION_ERROR,
            operation="encrypt_value",
        )
    return f"{encryption_key}_{key_suffix}" if key_suffix else encryption_key


def encrypt_value(
    session: Session, value: str, encryption_key: Optional[str], key_suffix: str = ""
) -> bytes:
    """
    Encrypt a value using database-specific encryption.

    Args:
        session: Database session
        value: Value to encrypt
        encryption_key: Symmetric key (required on PostgreSQL)
        key_suffix: Additional key suffix for different data types

    Returns:
        Encrypted bytes
    """
    if _is_postgres(session):
        key = _require_key(encryption_key, key_suffix)
        return session.execute(
            text("SELECT pgp_sym_encrypt(:data, :key)"), {"data": value, "key": key}
        ).scalar()

    # SQLite for testing - return as-is
    return value.encode() if isinstance(value, str) else value


def decrypt_value(
    session: Session, encrypted_value: bytes, encryption_key: Optional[str], key_suffix: str = ""
) -> Optional[str]:
    """
    Decrypt a value using database-specific decryption.

    Returns:
        Decrypted string or None
    """
    if not encrypted_value:
        return None

    if _is_postgres(session):
        key = _require_key(encryption_key, key_suffix)
        return session.execute(
            text("SELECT pgp_sym_decrypt(:data, :key)"),
            {"data": encrypted_value, "key": key},
        ).scalar()

    if isinstance(encrypted_value, bytes):
        return encrypted_value.decode()
    return encrypted_value


def encrypt_client_secret(
    session: Session, secret: str, encryption_key: Optional[str], tenant_id: str
) -> bytes:
    """Encrypt a controller client secret, keyed per controller tenant."""
    return encrypt_value(session, secret, encryption_key, f"cred_{tenant_id}")


def decrypt_client_secret(
    session: Session, encrypted: bytes, encryption_key: Optional[str], tenant_id: str
) -> Optional[str]:
    """Decrypt a controller client secret."""
    return decrypt_value(session, encrypted, encryption_key, f"cred_{tenant_id}")
