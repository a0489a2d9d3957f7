"""Identity provider client

Wraps the external identity provider's accounts API: account creation (with
sign-in fallback for an already registered email), sign-in, verification
emails and out-of-band code exchange.

Usage:
    from services.identity_provider import IdentityProviderClient, ProviderConfig

    client = IdentityProviderClient(ProviderConfig.from_settings(settings))
"""

from .client import IdentityProviderClient

from .errors import (
    IdentityProviderError,
    ProviderErrorKind,
    ProviderRejected,
    TransportError,
    classify_provider_message,
)

from .models import (
    CodeExchangeResult,
    ProviderAccount,
    ProviderConfig,
)

__all__ = [
    # Client
    "IdentityProviderClient",
    # Errors
    "IdentityProviderError",
    "ProviderErrorKind",
    "ProviderRejected",
    "TransportError",
    "classify_provider_message",
    # Models
    "CodeExchangeResult",
    "ProviderAccount",
    "ProviderConfig",
]
