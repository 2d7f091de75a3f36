"""
Constants for the Omada voucher controller integration core.

This module centralizes magic strings, controller error codes and wire
constants so the rest of the package never hard-codes them.
"""

from enum import Enum


class LogLevel(str, Enum):
    """Standard logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class EnvironmentVariable(str, Enum):
    """Standard environment variable names."""

    AZURE_STORAGE_CONNECTION = "AzureWebJobsStorage"
    DATABASE_URL = "DATABASE_URL"
    APP_ENV = "APP_ENV"
    LOG_LEVEL = "LOG_LEVEL"
    ENCRYPTION_KEY = "OMADA_ENCRYPTION_KEY"
    CONTROLLER_VERIFY_SSL = "OMADA_VERIFY_SSL"
    CONTROLLER_TIMEOUT = "OMADA_REQUEST_TIMEOUT"
    SYNC_INTERVAL = "OMADA_SYNC_INTERVAL_SECONDS"
    TOKEN_SAFETY_MARGIN = "OMADA_TOKEN_SAFETY_MARGIN_SECONDS"
    PRICE_WIRE_UNIT = "OMADA_PRICE_WIRE_UNIT"


class PriceWireUnit(str, Enum):
    """How voucher prices are represented on the wire."""

    DECIMAL = "decimal"  # 15.00 -> 15.0
    MINOR = "minor"  # 15.00 -> 1500


class ControllerPath(str, Enum):
    """Controller OpenAPI path templates."""

    TOKEN = "/openapi/authorize/token"
    SITES = "/openapi/v1/{tenant_id}/sites"
    VOUCHER_GROUPS = "/openapi/v1/{tenant_id}/sites/{site_id}/hotspot/voucher-groups"
    VOUCHER_GROUP = "/openapi/v1/{tenant_id}/sites/{site_id}/hotspot/voucher-groups/{group_id}"
    USAGE_SUMMARY = "/openapi/v1/{tenant_id}/sites/{site_id}/hotspot/vouchers/statistics/summary"


# Envelope success code
CONTROLLER_SUCCESS_CODE = 0

# General server-side failure, safe to retry
CONTROLLER_GENERAL_ERROR_CODES = frozenset({-1})

# Client id / secret / tenant / grant rejected during the token exchange
CONTROLLER_CREDENTIAL_ERROR_CODES = frozenset({-44106, -44107, -44108, -44111, -44116, -44118})

# Access token expired or unknown to the controller
CONTROLLER_TOKEN_REJECTED_CODES = frozenset({-44112, -44113})

# Referenced site / voucher group no longer exists
CONTROLLER_NOT_FOUND_CODES = frozenset({-1600, -33004, -33501})

# Request parameters rejected
CONTROLLER_VALIDATION_ERROR_CODES = frozenset({-1001})

# Remote voucher status codes
REMOTE_VOUCHER_UNUSED = 0
REMOTE_VOUCHER_USED = 1
REMOTE_VOUCHER_EXPIRED = 2
REMOTE_VOUCHER_IN_USE = 3

# Kbps per Mbps as understood by the controller rate-limit fields
KBPS_PER_MBPS = 1024

DEFAULT_CURRENCY = "BRL"
DEFAULT_RETRY_AFTER_SECONDS = 5
