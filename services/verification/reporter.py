"""Read-only verification views for the operator console"""

import logging

from .errors import ErrorKind, NotFound, PersistenceError
from .models import StatusReport, StatusSummary, VerificationState
from .store import UserRecordStore

logger = logging.getLogger(__name__)


class ReconciliationReporter:
    """Aggregates the local verification state; never writes"""

    def __init__(self, store: UserRecordStore):
        self.store = store

    async def status_for(self, email: str) -> StatusReport:
        try:
            identity = await self.store.find_by_email(email)
        except NotFound:
            return StatusReport(success=False, error_kind=ErrorKind.NOT_FOUND, message="User not found")
        except PersistenceError as e:
            return StatusReport(success=False, error_kind=ErrorKind.PERSISTENCE, message=e.message)

        return StatusReport(
            success=True,
            user=identity,
            state=identity.state,
            is_verified=identity.verified,
            message="VERIFIED" if identity.verified else "NOT VERIFIED",
        )

    async def all_with_status(self) -> StatusSummary:
        try:
            users = await self.store.list_all_with_status()
        except PersistenceError as e:
            return StatusSummary(success=False, error_kind=ErrorKind.PERSISTENCE, message=e.message)

        total = len(users)
        verified = sum(1 for u in users if u.verified)
        pending = sum(1 for u in users if u.state == VerificationState.PENDING_VERIFICATION)
        linked = sum(1 for u in users if u.remote_provider_id)
        rate = round(verified / total * 100, 1) if total else 0.0

        logger.debug(f"Verification summary: {verified}/{total} verified, {pending} pending")
        return StatusSummary(
            success=True,
            message=f"{verified} of {total} users verified",
            total=total,
            verified_count=verified,
            unverified_count=total - verified,
            pending_count=pending,
            linked_count=linked,
            verification_rate=rate,
            users=users,
        )
