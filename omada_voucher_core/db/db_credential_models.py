"""
Controller credential model.

Just the data structure - encryption and validation live in the repository.
"""

from sqlalchemy import Column, String

from .db_base import EncryptedBinary, TimestampMixin, UUIDMixin
from .db_config import Base


class ControllerCredential(Base, UUIDMixin, TimestampMixin):
    """The single active controller credential for this deployment."""

    __tablename__ = "controller_credentials"

    controller_url = Column(String(500), nullable=False)
    tenant_id = Column(String(100), nullable=False)
    client_id = Column(String(200), nullable=False)
    client_secret = Column(EncryptedBinary, nullable=False)  # Encrypted storage
