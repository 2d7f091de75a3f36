"""Database layer: SQLAlchemy models and connection management."""

from .db_base import JSON, EncryptedBinary, TimestampMixin, UUIDMixin, utc_now
from .db_config import (
    Base,
    DatabaseConfig,
    DatabaseManager,
    close_db,
    get_db_manager,
    get_production_config,
    import_all_models,
    initialize_db,
)
from .db_credential_models import ControllerCredential
from .db_site_models import Site, SiteUsage
from .db_voucher_models import Voucher

__all__ = [
    "JSON",
    "EncryptedBinary",
    "TimestampMixin",
    "UUIDMixin",
    "utc_now",
    "Base",
    "DatabaseConfig",
    "DatabaseManager",
    "close_db",
    "get_db_manager",
    "get_production_config",
    "import_all_models",
    "initialize_db",
    "ControllerCredential",
    "Site",
    "SiteUsage",
    "Voucher",
]
