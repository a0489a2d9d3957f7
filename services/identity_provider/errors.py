"""Error taxonomy for identity provider calls.

The provider reports failures as ``{"error": {"message": "EMAIL_EXISTS"}}``
style envelopes. The message strings are only matched here; everything past
the client boundary works with :class:`ProviderErrorKind`.
"""

from enum import Enum
from typing import Optional


class ProviderErrorKind(str, Enum):
    EMAIL_EXISTS = "email_exists"
    CREDENTIALS_MISMATCH = "credentials_mismatch"
    EMAIL_NOT_FOUND = "email_not_found"
    INVALID_CODE = "invalid_code"
    EXPIRED_CODE = "expired_code"
    USER_DISABLED = "user_disabled"
    RATE_LIMITED = "rate_limited"
    NO_SESSION = "no_session"
    UNKNOWN = "unknown"


# Checked in order, first substring hit wins
_MESSAGE_KINDS = (
    ("EMAIL_EXISTS", ProviderErrorKind.EMAIL_EXISTS),
    ("INVALID_LOGIN_CREDENTIALS", ProviderErrorKind.CREDENTIALS_MISMATCH),
    ("INVALID_PASSWORD", ProviderErrorKind.CREDENTIALS_MISMATCH),
    ("EMAIL_NOT_FOUND", ProviderErrorKind.EMAIL_NOT_FOUND),
    ("EXPIRED_OOB_CODE", ProviderErrorKind.EXPIRED_CODE),
    ("INVALID_OOB_CODE", ProviderErrorKind.INVALID_CODE),
    ("USER_DISABLED", ProviderErrorKind.USER_DISABLED),
    ("TOO_MANY_ATTEMPTS_TRY_LATER", ProviderErrorKind.RATE_LIMITED),
    ("INVALID_ID_TOKEN", ProviderErrorKind.NO_SESSION),
    ("MISSING_ID_TOKEN", ProviderErrorKind.NO_SESSION),
)


def classify_provider_message(message: Optional[str]) -> ProviderErrorKind:
    """Map a provider error message onto a ProviderErrorKind (UNKNOWN if unrecognised)"""
    if not message:
        return ProviderErrorKind.UNKNOWN
    normalized = message.upper()
    for marker, kind in _MESSAGE_KINDS:
        if marker in normalized:
            return kind
    return ProviderErrorKind.UNKNOWN


class IdentityProviderError(Exception):
    """Base class for failed identity provider calls"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class TransportError(IdentityProviderError):
    """Network failure, timeout or unreadable response"""


class ProviderRejected(IdentityProviderError):
    """The provider answered with a structured error"""

    def __init__(self, kind: ProviderErrorKind, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code

    def __repr__(self) -> str:
        return f"ProviderRejected(kind={self.kind.value!r}, message={self.message!r})"
