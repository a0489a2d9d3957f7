"""Pydantic models for identity provider configuration and call outcomes"""

from typing import Optional

from pydantic import BaseModel, Field

from .errors import ProviderErrorKind

DEFAULT_BASE_URL = "https://identitytoolkit.googleapis.com/v1"


class ProviderConfig(BaseModel):
    """Credentials and deadlines for the identity provider, injected at construction"""
    api_key: str = Field(..., repr=False)
    base_url: str = DEFAULT_BASE_URL
    timeout: float = Field(15.0, gt=0, description="Deadline for mutating calls, in seconds")
    probe_timeout: float = Field(10.0, gt=0, description="Deadline for connectivity probes, in seconds")

    @classmethod
    def from_settings(cls, settings) -> "ProviderConfig":
        return cls(
            api_key=settings.IDENTITY_PROVIDER_API_KEY,
            base_url=settings.IDENTITY_PROVIDER_BASE_URL,
            timeout=settings.IDENTITY_PROVIDER_TIMEOUT,
            probe_timeout=settings.IDENTITY_PROVIDER_PROBE_TIMEOUT,
        )


class ProviderAccount(BaseModel):
    """Account returned by account creation or sign-in.

    ``session_token`` is the short-lived bearer credential used only to
    authorize the verification email; it is never persisted.
    """
    remote_id: str
    email: str
    session_token: Optional[str] = Field(None, repr=False)
    email_verified: bool = False
    created: bool = False  # False when an existing account was signed into


class CodeExchangeResult(BaseModel):
    """Outcome of exchanging an out-of-band code; failures are values, not exceptions"""
    success: bool
    message: str
    email: Optional[str] = None
    verified: bool = False
    remote_id: Optional[str] = None
    error_kind: Optional[ProviderErrorKind] = None
    transport_error: bool = False
