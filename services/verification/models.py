"""Pydantic models for email verification state and orchestrator results"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, computed_field

from .errors import ErrorKind


class VerificationState(str, Enum):
    UNVERIFIED = "unverified"
    PENDING_VERIFICATION = "pending_verification"
    VERIFIED = "verified"


class UserIdentity(BaseModel):
    """Local source-of-truth record for one registered user"""
    local_id: int
    email: str
    remote_provider_id: Optional[str] = None
    verified: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @computed_field
    @property
    def state(self) -> VerificationState:
        if self.verified:
            return VerificationState.VERIFIED
        if self.remote_provider_id:
            return VerificationState.PENDING_VERIFICATION
        return VerificationState.UNVERIFIED

    @classmethod
    def from_row(cls, user) -> "UserIdentity":
        """Build from a db.models.User row"""
        return cls(
            local_id=user.id,
            email=user.email,
            remote_provider_id=user.remote_provider_id,
            verified=bool(user.email_verified),
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


# Orchestrator / reporter results

class OperationResult(BaseModel):
    success: bool
    message: str
    error_kind: Optional[ErrorKind] = None


class RegistrationResult(OperationResult):
    email_sent: bool = False
    email_verified: bool = False
    remote_id: Optional[str] = None
    user: Optional[UserIdentity] = None


class VerificationResult(OperationResult):
    email: Optional[str] = None
    email_verified: bool = False
    user: Optional[UserIdentity] = None


class ResendResult(OperationResult):
    email_sent: bool = False
    email_verified: bool = False


class BulkVerificationResult(OperationResult):
    count: int = 0
    users: List[UserIdentity] = []


class StatusReport(OperationResult):
    user: Optional[UserIdentity] = None
    state: Optional[VerificationState] = None
    is_verified: bool = False


class StatusSummary(OperationResult):
    total: int = 0
    verified_count: int = 0
    unverified_count: int = 0
    pending_count: int = 0
    linked_count: int = 0  # users with a remote provider account
    verification_rate: float = 0.0  # percent, one decimal
    users: List[UserIdentity] = []
