"""Email verification orchestration.

Drives a user through unverified -> pending_verification -> verified by
coordinating identity provider calls with the local user record store.
Verified is terminal: nothing here ever clears the flag.

Every public method returns a result model and never raises.
"""

import logging
from typing import Optional

from services.identity_provider import (
    IdentityProviderClient,
    ProviderAccount,
    ProviderErrorKind,
    ProviderRejected,
    TransportError,
)
from .errors import ErrorKind, NotFound, PersistenceError
from .models import (
    BulkVerificationResult,
    RegistrationResult,
    ResendResult,
    UserIdentity,
    VerificationResult,
)
from .store import UserRecordStore

logger = logging.getLogger(__name__)

# Grep-able log markers
UNMAPPED_ACCOUNT_EVENT = "remote_account_unmapped"
OPERATOR_OVERRIDE_EVENT = "operator_override"


def _provider_error_kind(error: Exception) -> ErrorKind:
    if isinstance(error, TransportError):
        return ErrorKind.TRANSPORT
    if isinstance(error, ProviderRejected) and error.kind == ProviderErrorKind.CREDENTIALS_MISMATCH:
        return ErrorKind.CREDENTIALS_MISMATCH
    return ErrorKind.PROVIDER_REJECTED


class VerificationOrchestrator:
    """State machine for email verification"""

    def __init__(self, provider: IdentityProviderClient, store: UserRecordStore):
        self.provider = provider
        self.store = store

    # Registration: unverified -> pending_verification

    async def register(self, email: str, password: str, local_id: Optional[int]) -> RegistrationResult:
        """
        Create (or re-find) the provider account, link it locally and send the
        verification email.

        Steps and their failure policy:
          1. provider account  - failure aborts, nothing written
          2. local link        - failure aborts, logged as an unmapped remote account
          3. verification mail - failure is reported as email_sent=False only;
             skipped when either side already has the email verified
        """
        if not email or not password or local_id is None:
            return RegistrationResult(
                success=False,
                error_kind=ErrorKind.VALIDATION,
                message="Email, password and local user id are required",
            )

        try:
            return await self._register(email, password, local_id)
        except Exception as e:
            logger.error(f"Unexpected registration error for {email}: {e}", exc_info=True)
            return RegistrationResult(
                success=False,
                error_kind=ErrorKind.INTERNAL,
                message="Server error during registration",
            )

    async def _register(self, email: str, password: str, local_id: int) -> RegistrationResult:
        # 1. Provider account
        try:
            account = await self.provider.create_account(email, password)
        except (ProviderRejected, TransportError) as e:
            logger.warning(f"Registration failed for {email} at provider: {e.message}")
            return RegistrationResult(
                success=False,
                error_kind=_provider_error_kind(e),
                message=e.message,
            )

        # 2. Local link
        try:
            identity = await self.store.set_remote_id(local_id, account.remote_id)
        except (PersistenceError, NotFound) as e:
            logger.error(
                f"{UNMAPPED_ACCOUNT_EVENT}: provider account {account.remote_id} exists for "
                f"{email} but local user {local_id} could not be linked: {e.message}"
            )
            return RegistrationResult(
                success=False,
                error_kind=ErrorKind.NOT_FOUND if isinstance(e, NotFound) else ErrorKind.PERSISTENCE,
                remote_id=account.remote_id,
                message="Provider account created but the local record could not be updated",
            )

        # Already verified at the provider or locally (operator override): no mail to send
        if account.email_verified or identity.verified:
            identity = await self._sync_verified(identity)
            return RegistrationResult(
                success=True,
                email_sent=False,
                email_verified=True,
                remote_id=account.remote_id,
                user=identity,
                message="Email address is already verified",
            )

        # 3. Verification email
        email_sent = await self._send_verification_email(account)
        message = (
            "User registered successfully! Please check your email for verification."
            if email_sent
            else "User registered, but the verification email could not be sent. Please request a new one."
        )
        return RegistrationResult(
            success=True,
            email_sent=email_sent,
            email_verified=identity.verified,
            remote_id=account.remote_id,
            user=identity,
            message=message,
        )

    async def _send_verification_email(self, account: ProviderAccount) -> bool:
        if not account.session_token:
            logger.warning(f"No provider session for {account.email}, verification email not sent")
            return False
        try:
            await self.provider.send_verification_email(account.session_token)
        except (ProviderRejected, TransportError) as e:
            logger.warning(f"Verification email to {account.email} failed: {e.message}")
            return False
        return True

    async def _sync_verified(self, identity: UserIdentity) -> UserIdentity:
        """Copy provider-confirmed verification into the local record"""
        if identity.verified:
            return identity
        try:
            synced = await self.store.mark_verified(identity.email)
        except (PersistenceError, NotFound) as e:
            logger.warning(f"Could not sync provider verification for {identity.email}: {e.message}")
            return identity
        logger.info(f"Synced provider-confirmed verification for {identity.email}")
        return synced

    # Provider confirmation: pending_verification -> verified

    async def confirm_via_code(self, oob_code: str) -> VerificationResult:
        """Exchange the code from the verification link and mark the email verified"""
        if not oob_code:
            return VerificationResult(
                success=False,
                error_kind=ErrorKind.VALIDATION,
                message="Verification code is required",
            )

        try:
            exchange = await self.provider.exchange_verification_code(oob_code)
            if not exchange.success:
                return VerificationResult(
                    success=False,
                    error_kind=ErrorKind.TRANSPORT if exchange.transport_error else ErrorKind.PROVIDER_REJECTED,
                    email=exchange.email,
                    message=exchange.message,
                )

            try:
                identity = await self.store.mark_verified(exchange.email)
            except NotFound:
                logger.warning(f"Provider confirmed {exchange.email} but no local user exists")
                return VerificationResult(
                    success=False,
                    error_kind=ErrorKind.NOT_FOUND,
                    email=exchange.email,
                    message="User not found",
                )
            except PersistenceError as e:
                return VerificationResult(
                    success=False,
                    error_kind=ErrorKind.PERSISTENCE,
                    email=exchange.email,
                    message=e.message,
                )

            return VerificationResult(
                success=True,
                email=identity.email,
                email_verified=True,
                user=identity,
                message="Email verified successfully!",
            )
        except Exception as e:
            logger.error(f"Unexpected error confirming verification code: {e}", exc_info=True)
            return VerificationResult(
                success=False,
                error_kind=ErrorKind.INTERNAL,
                message="Server error during email verification",
            )

    async def confirm_via_poll(self, email: str, password: str) -> VerificationResult:
        """
        Ask the provider whether the email is verified yet.

        "Not verified yet" is a successful answer (success=True,
        email_verified=False); provider and transport failures come back as
        success=False so callers can simply try again later.
        """
        if not email or not password:
            return VerificationResult(
                success=False,
                error_kind=ErrorKind.VALIDATION,
                message="Email and password are required",
            )

        try:
            try:
                account = await self.provider.sign_in(email, password)
            except (ProviderRejected, TransportError) as e:
                return VerificationResult(
                    success=False,
                    error_kind=_provider_error_kind(e),
                    email=email,
                    message=e.message,
                )

            if not account.email_verified:
                return VerificationResult(
                    success=True,
                    email=email,
                    email_verified=False,
                    message="NOT VERIFIED",
                )

            try:
                identity = await self.store.mark_verified(email)
            except NotFound:
                return VerificationResult(
                    success=False,
                    error_kind=ErrorKind.NOT_FOUND,
                    email=email,
                    email_verified=True,
                    message="User not found",
                )
            except PersistenceError as e:
                return VerificationResult(
                    success=False,
                    error_kind=ErrorKind.PERSISTENCE,
                    email=email,
                    email_verified=True,
                    message=e.message,
                )

            return VerificationResult(
                success=True,
                email=email,
                email_verified=True,
                user=identity,
                message="VERIFIED",
            )
        except Exception as e:
            logger.error(f"Unexpected error polling verification for {email}: {e}", exc_info=True)
            return VerificationResult(
                success=False,
                error_kind=ErrorKind.INTERNAL,
                email=email,
                message="Server error while checking verification status",
            )

    async def resend_verification(self, email: str, password: str) -> ResendResult:
        """Send a fresh verification email, or sync locally if the provider already verified"""
        if not email or not password:
            return ResendResult(
                success=False,
                error_kind=ErrorKind.VALIDATION,
                message="Email and password are required",
            )

        try:
            try:
                account = await self.provider.sign_in(email, password)
            except (ProviderRejected, TransportError) as e:
                return ResendResult(success=False, error_kind=_provider_error_kind(e), message=e.message)

            if account.email_verified:
                try:
                    await self.store.mark_verified(email)
                except (PersistenceError, NotFound) as e:
                    logger.warning(f"Could not sync provider verification for {email}: {e.message}")
                return ResendResult(
                    success=True,
                    email_sent=False,
                    email_verified=True,
                    message="Email address is already verified",
                )

            try:
                await self.provider.send_verification_email(account.session_token)
            except (ProviderRejected, TransportError) as e:
                return ResendResult(success=False, error_kind=_provider_error_kind(e), message=e.message)

            return ResendResult(success=True, email_sent=True, message="Verification email sent")
        except Exception as e:
            logger.error(f"Unexpected error resending verification to {email}: {e}", exc_info=True)
            return ResendResult(
                success=False,
                error_kind=ErrorKind.INTERNAL,
                message="Server error while resending verification email",
            )

    # Operator overrides: bypass the provider

    async def override_single(self, email: str) -> VerificationResult:
        """Mark one user verified without provider confirmation"""
        if not email:
            return VerificationResult(
                success=False,
                error_kind=ErrorKind.VALIDATION,
                message="Email is required",
            )

        try:
            identity = await self.store.mark_verified(email)
        except NotFound:
            logger.info(f"Operator override requested for unknown user {email}")
            return VerificationResult(
                success=False,
                error_kind=ErrorKind.NOT_FOUND,
                email=email,
                message="User not found",
            )
        except PersistenceError as e:
            return VerificationResult(
                success=False,
                error_kind=ErrorKind.PERSISTENCE,
                email=email,
                message=e.message,
            )
        except Exception as e:
            logger.error(f"Unexpected error verifying {email}: {e}", exc_info=True)
            return VerificationResult(
                success=False,
                error_kind=ErrorKind.INTERNAL,
                email=email,
                message="Server error during manual verification",
            )

        logger.warning(f"{OPERATOR_OVERRIDE_EVENT}: {email} marked verified without provider confirmation")
        return VerificationResult(
            success=True,
            email=identity.email,
            email_verified=True,
            user=identity,
            message="Email verified successfully!",
        )

    async def override_by_local_id(self, local_id: int) -> VerificationResult:
        """Operator override addressed by local user id"""
        try:
            identity = await self.store.find_by_local_id(local_id)
        except NotFound:
            return VerificationResult(
                success=False,
                error_kind=ErrorKind.NOT_FOUND,
                message="User not found",
            )
        except PersistenceError as e:
            return VerificationResult(
                success=False,
                error_kind=ErrorKind.PERSISTENCE,
                message=e.message,
            )
        except Exception as e:
            logger.error(f"Unexpected error looking up local user {local_id}: {e}", exc_info=True)
            return VerificationResult(
                success=False,
                error_kind=ErrorKind.INTERNAL,
                message="Server error during manual verification",
            )
        return await self.override_single(identity.email)

    async def override_bulk(self) -> BulkVerificationResult:
        """Mark every currently unverified user verified"""
        try:
            users = await self.store.mark_all_unverified_as_verified()
        except PersistenceError as e:
            return BulkVerificationResult(
                success=False,
                error_kind=ErrorKind.PERSISTENCE,
                message=e.message,
            )
        except Exception as e:
            logger.error(f"Unexpected error during bulk verification: {e}", exc_info=True)
            return BulkVerificationResult(
                success=False,
                error_kind=ErrorKind.INTERNAL,
                message="Server error during bulk verification",
            )

        logger.warning(
            f"{OPERATOR_OVERRIDE_EVENT}: bulk verification promoted {len(users)} users "
            "without provider confirmation"
        )
        return BulkVerificationResult(
            success=True,
            count=len(users),
            users=users,
            message=f"Verified {len(users)} users",
        )
