"""
Pydantic schemas for the controller credential.

The credential is validated at construction so an incomplete record is
rejected before any call reaches the controller.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator

from ..utils.credential_utils import REDACTED, redact_secrets


class BaseCredentialSchema(BaseModel):
    """Base schema for credential payloads."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
        extra="forbid",  # Don't allow extra fields
    )


class Credential(BaseCredentialSchema):
    """OAuth2 client-credentials tuple for the controller's OpenAPI."""

    controller_url: str = Field(..., min_length=1, description="Controller base URL")
    tenant_id: str = Field(..., min_length=1, description="Controller tenant id (omadacId)")
    client_id: str = Field(..., min_length=1, description="OpenAPI client id")
    client_secret: SecretStr = Field(..., description="OpenAPI client secret")
    updated_at: Optional[datetime] = Field(None, description="Last time the record changed")

    @field_validator("controller_url")
    @classmethod
    def validate_controller_url(cls, v):
        """Only http(s) URLs; trailing slashes are dropped so paths join cleanly."""
        if not v.startswith(("https://", "http://")):
            raise ValueError("Controller URL must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("client_secret")
    @classmethod
    def validate_client_secret(cls, v):
        if not v.get_secret_value().strip():
            raise ValueError("Client secret cannot be empty")
        return v

    def summary(self) -> "CredentialSummary":
        """Non-secret view, with any stray copy of the secret masked."""
        visible = redact_secrets(
            {
                "controller_url": self.controller_url,
                "tenant_id": self.tenant_id,
                "client_id": self.client_id,
            },
            [self.client_secret],
        )
        return CredentialSummary(
            configured=True,
            client_secret=REDACTED,
            updated_at=self.updated_at,
            **visible,
        )


class CredentialSummary(BaseModel):
    """What the outbound surface is allowed to show about the credential."""

    configured: bool
    controller_url: Optional[str] = None
    tenant_id: Optional[str] = None
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def not_configured(cls) -> "CredentialSummary":
        return cls(configured=False)
