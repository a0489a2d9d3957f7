"""
Client for the identity provider's accounts REST API (Identity Toolkit v1).
Handles account creation, sign-in, verification emails and out-of-band code exchange.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from .errors import (
    ProviderErrorKind,
    ProviderRejected,
    TransportError,
    classify_provider_message,
)
from .models import CodeExchangeResult, ProviderAccount, ProviderConfig

logger = logging.getLogger(__name__)


def _error_message(data: Any) -> Optional[str]:
    """Pull ``error.message`` out of the provider's error envelope"""
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict):
            return error.get("message")
        if isinstance(error, str):
            return error
    return None


class IdentityProviderClient:
    """Stateless request/response wrapper around the identity provider."""

    def __init__(self, config: ProviderConfig, client: Optional[httpx.AsyncClient] = None):
        """
        Initialize the identity provider client.

        Args:
            config: API key, base URL and deadlines
            client: Optional preconfigured httpx client (tests inject a mock transport)
        """
        self.config = config
        self.base_url = config.base_url.rstrip('/')
        self.client = client or httpx.AsyncClient(timeout=config.timeout)

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()

    async def _post(self, operation: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """POST to ``accounts:{operation}`` and return the decoded body.

        Raises TransportError on network failure, timeout or a body that is
        not JSON, and ProviderRejected on any non-200 answer.
        """
        url = f"{self.base_url}/accounts:{operation}"
        try:
            response = await self.client.post(
                url,
                params={"key": self.config.api_key},
                json=payload,
                timeout=self.config.timeout,
            )
        except httpx.TimeoutException as e:
            logger.warning(f"Identity provider {operation} timed out after {self.config.timeout}s")
            raise TransportError(f"{operation} timed out") from e
        except httpx.HTTPError as e:
            logger.warning(f"Identity provider {operation} transport error: {e}")
            raise TransportError(f"{operation} failed: {e}") from e

        try:
            data = response.json()
        except ValueError as e:
            raise TransportError(
                f"{operation} returned an unreadable response ({response.status_code})"
            ) from e

        if response.status_code != 200:
            message = _error_message(data) or f"HTTP {response.status_code}"
            kind = classify_provider_message(message)
            logger.info(f"Identity provider rejected {operation}: {message} ({kind.value})")
            raise ProviderRejected(kind, message, status_code=response.status_code)

        if not isinstance(data, dict):
            raise TransportError(f"{operation} returned an unexpected payload")
        return data

    @staticmethod
    def _require(data: Dict[str, Any], field: str, operation: str) -> str:
        value = data.get(field)
        if not value:
            raise ProviderRejected(
                ProviderErrorKind.UNKNOWN, f"{operation} response is missing {field}"
            )
        return value

    async def create_account(self, email: str, password: str) -> ProviderAccount:
        """
        Create a provider account, or sign in if the email is already registered.

        A repeated registration with the original password resolves to the same
        remote account. A repeated registration with a different password fails
        with ProviderRejected(CREDENTIALS_MISMATCH, "credentials mismatch").
        """
        try:
            data = await self._post(
                "signUp",
                {"email": email, "password": password, "returnSecureToken": True},
            )
        except ProviderRejected as e:
            if e.kind != ProviderErrorKind.EMAIL_EXISTS:
                raise
            logger.info(f"Provider account already exists for {email}, signing in instead")
            try:
                return await self.sign_in(email, password)
            except ProviderRejected as sign_in_error:
                if sign_in_error.kind == ProviderErrorKind.CREDENTIALS_MISMATCH:
                    raise ProviderRejected(
                        ProviderErrorKind.CREDENTIALS_MISMATCH,
                        "credentials mismatch",
                        status_code=sign_in_error.status_code,
                    ) from sign_in_error
                raise

        account = ProviderAccount(
            remote_id=self._require(data, "localId", "signUp"),
            email=data.get("email") or email,
            session_token=data.get("idToken"),
            email_verified=False,
            created=True,
        )
        logger.info(f"Created provider account {account.remote_id} for {email}")
        return account

    async def sign_in(self, email: str, password: str) -> ProviderAccount:
        """Sign in with email/password and look up whether the email is verified"""
        data = await self._post(
            "signInWithPassword",
            {"email": email, "password": password, "returnSecureToken": True},
        )
        remote_id = self._require(data, "localId", "signInWithPassword")
        session_token = self._require(data, "idToken", "signInWithPassword")

        lookup = await self._post("lookup", {"idToken": session_token})
        users = lookup.get("users") or []
        record = users[0] if users else {}

        return ProviderAccount(
            remote_id=remote_id,
            email=data.get("email") or email,
            session_token=session_token,
            email_verified=bool(record.get("emailVerified", False)),
        )

    async def send_verification_email(self, session_token: Optional[str]) -> None:
        """Ask the provider to mail a verification link to the session's user"""
        if not session_token:
            raise ProviderRejected(ProviderErrorKind.NO_SESSION, "no session")

        await self._post(
            "sendOobCode",
            {"requestType": "VERIFY_EMAIL", "idToken": session_token},
        )
        logger.info("Verification email dispatched by identity provider")

    async def exchange_verification_code(self, code: str) -> CodeExchangeResult:
        """
        Exchange the out-of-band code from a verification link.

        Never raises: transport and provider failures come back as
        ``CodeExchangeResult(success=False, ...)``.
        """
        if not code:
            return CodeExchangeResult(
                success=False,
                message="No verification code supplied",
                error_kind=ProviderErrorKind.INVALID_CODE,
            )

        try:
            data = await self._post("update", {"oobCode": code})
        except ProviderRejected as e:
            return CodeExchangeResult(success=False, message=e.message, error_kind=e.kind)
        except TransportError as e:
            return CodeExchangeResult(success=False, message=e.message, transport_error=True)

        email = data.get("email")
        if not email or data.get("emailVerified") is not True:
            logger.warning("Identity provider accepted a code without confirming the email")
            return CodeExchangeResult(
                success=False,
                message="Provider did not confirm the email address",
                email=email,
                error_kind=ProviderErrorKind.UNKNOWN,
            )

        return CodeExchangeResult(
            success=True,
            message="Email confirmed by identity provider",
            email=email,
            verified=True,
            remote_id=data.get("localId"),
        )

    async def probe(self) -> bool:
        """
        Check that the identity provider is reachable.

        Any HTTP answer counts as reachable; only transport failures do not.
        """
        try:
            response = await self.client.get(self.base_url, timeout=self.config.probe_timeout)
            logger.debug(f"Identity provider probe answered {response.status_code}")
            return True
        except httpx.HTTPError as e:
            logger.error(f"Identity provider probe failed: {e}")
            return False
