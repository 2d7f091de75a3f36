"""Utility modules for the Omada voucher core."""

from .backoff_utils import calculate_exponential_backoff
from .credential_utils import REDACTED, mask_identifier, redact_secrets
from .encryption_utils import (
    decrypt_client_secret,
    decrypt_value,
    encrypt_client_secret,
    encrypt_value,
)
from .json_utils import dumps, loads
from .logger import (
    AzureQueueHandler,
    ContextAwareLogger,
    CorrelationContextFilter,
    configure_logging,
    get_logger,
)
from .unit_utils import (
    duration_to_wire,
    mbps_to_kbps,
    price_from_wire,
    price_to_wire,
    to_money,
)

__all__ = [
    "calculate_exponential_backoff",
    "REDACTED",
    "mask_identifier",
    "redact_secrets",
    "decrypt_client_secret",
    "decrypt_value",
    "encrypt_client_secret",
    "encrypt_value",
    "dumps",
    "loads",
    "AzureQueueHandler",
    "ContextAwareLogger",
    "CorrelationContextFilter",
    "configure_logging",
    "get_logger",
    "duration_to_wire",
    "mbps_to_kbps",
    "price_from_wire",
    "price_to_wire",
    "to_money",
]
