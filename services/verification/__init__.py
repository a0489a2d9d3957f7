"""Email Verification Service

Keeps the local users table in step with the identity provider's view of
each account's email verification.

Key pieces:
    UserRecordStore          - atomic reads/updates of the users table
    VerificationOrchestrator - registration, code/poll confirmation, operator overrides
    ReconciliationReporter   - read-only status views for operators

Usage:
    from services.verification import (
        UserRecordStore,
        VerificationOrchestrator,
        ReconciliationReporter,
    )
"""

from .errors import (
    DuplicateRecord,
    ErrorKind,
    NotFound,
    PersistenceError,
    RegistrationValidationError,
    VerificationError,
)

from .models import (
    BulkVerificationResult,
    OperationResult,
    RegistrationResult,
    ResendResult,
    StatusReport,
    StatusSummary,
    UserIdentity,
    VerificationResult,
    VerificationState,
)

from .store import UserRecordStore
from .orchestrator import VerificationOrchestrator
from .reporter import ReconciliationReporter

__all__ = [
    # Components
    "UserRecordStore",
    "VerificationOrchestrator",
    "ReconciliationReporter",
    # Errors
    "DuplicateRecord",
    "ErrorKind",
    "NotFound",
    "PersistenceError",
    "RegistrationValidationError",
    "VerificationError",
    # Models
    "BulkVerificationResult",
    "OperationResult",
    "RegistrationResult",
    "ResendResult",
    "StatusReport",
    "StatusSummary",
    "UserIdentity",
    "VerificationResult",
    "VerificationState",
]
