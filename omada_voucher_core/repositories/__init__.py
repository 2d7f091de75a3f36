"""Persistence adapters for the credential record and the controller mirror."""

from .credential_repository import CredentialStore, SQLCredentialStore
from .mirror_repository import MirrorRepository

__all__ = ["CredentialStore", "SQLCredentialStore", "MirrorRepository"]
