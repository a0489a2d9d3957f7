"""Local-side errors raised by the user record store and registration intake"""

from enum import Enum


class ErrorKind(str, Enum):
    """Failure category carried by every unsuccessful orchestrator result"""
    VALIDATION = "validation"
    CREDENTIALS_MISMATCH = "credentials_mismatch"
    PROVIDER_REJECTED = "provider_rejected"
    TRANSPORT = "transport"
    PERSISTENCE = "persistence"
    NOT_FOUND = "not_found"
    INTERNAL = "internal"


class VerificationError(Exception):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class PersistenceError(VerificationError):
    """A read or write against the users table failed"""


class NotFound(VerificationError):
    """No local user record matches"""


class RegistrationValidationError(VerificationError):
    """Required registration fields are missing"""


class DuplicateRecord(PersistenceError):
    """A write collided with a unique constraint on the users table"""
