"""Shared test fixtures.

Provides:
  - MockTransport: replays canned httpx responses and records requests
  - FakeIdentityToolkit: in-memory stand-in for the provider's accounts API
  - An in-memory SQLite database (aiosqlite) with the users table
  - Wired store / provider client / orchestrator / reporter
"""

import itertools
import json
from typing import Any, Dict, Optional

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from db.database import Base
from db import models  # noqa: F401  (registers the users table)
from services.identity_provider import IdentityProviderClient, ProviderConfig
from services.verification import (
    ReconciliationReporter,
    UserRecordStore,
    VerificationOrchestrator,
)

BASE_URL = "https://identitytoolkit.test/v1"


class MockTransport(httpx.AsyncBaseTransport):
    """Mock HTTP transport that returns preconfigured responses.

    Each request pops the next entry; an exception entry is raised instead of
    answered. If the list is exhausted, returns a 500 error.
    """

    def __init__(self, responses: Optional[list] = None) -> None:
        self.responses = list(responses or [])
        self.requests: list[httpx.Request] = []

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.responses:
            response = self.responses.pop(0)
            if isinstance(response, Exception):
                raise response
            response.stream = httpx.ByteStream(response.content)
            return response
        return httpx.Response(500, json={"error": {"message": "No more mock responses"}})


def provider_error(message: str, status_code: int = 400) -> httpx.Response:
    return httpx.Response(status_code, json={"error": {"code": status_code, "message": message}})


class FakeIdentityToolkit(httpx.AsyncBaseTransport):
    """Behaves like the provider's accounts:* endpoints for a handful of users.

    ``fail(operation, failure)`` makes the next call to that operation raise
    ``failure`` (an exception) or answer with it (an httpx.Response).
    """

    def __init__(self) -> None:
        self.accounts: Dict[str, Dict[str, Any]] = {}
        self.tokens: Dict[str, str] = {}
        self.codes: Dict[str, str] = {}
        self.sent_verifications: list[str] = []
        self.requests: list[httpx.Request] = []
        self.failures: Dict[str, Any] = {}
        self._ids = itertools.count(1)

    def fail(self, operation: str, failure: Any) -> None:
        self.failures[operation] = failure

    def confirm_email(self, email: str) -> None:
        """Simulate the user following the verification link in their mail client"""
        self.accounts[email]["emailVerified"] = True

    def code_for(self, email: str) -> str:
        return next(code for code, owner in self.codes.items() if owner == email)

    def operations(self) -> list[str]:
        return [r.url.path.rsplit(":", 1)[-1] for r in self.requests if r.method == "POST"]

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.method == "GET":
            return httpx.Response(404, text="Not Found")

        operation = request.url.path.rsplit(":", 1)[-1]
        failure = self.failures.pop(operation, None)
        if isinstance(failure, Exception):
            raise failure
        if failure is not None:
            return failure

        body = json.loads(request.content or b"{}")
        return getattr(self, f"_{operation}")(body)

    def _issue_token(self, email: str) -> str:
        token = f"token-{next(self._ids)}"
        self.tokens[token] = email
        return token

    def _signUp(self, body: Dict[str, Any]) -> httpx.Response:
        email = body["email"]
        if email in self.accounts:
            return provider_error("EMAIL_EXISTS")
        account = {"localId": f"R{len(self.accounts) + 1}", "password": body["password"], "emailVerified": False}
        self.accounts[email] = account
        return httpx.Response(200, json={
            "localId": account["localId"],
            "email": email,
            "idToken": self._issue_token(email),
        })

    def _signInWithPassword(self, body: Dict[str, Any]) -> httpx.Response:
        account = self.accounts.get(body["email"])
        if account is None:
            return provider_error("EMAIL_NOT_FOUND")
        if account["password"] != body["password"]:
            return provider_error("INVALID_PASSWORD")
        return httpx.Response(200, json={
            "localId": account["localId"],
            "email": body["email"],
            "idToken": self._issue_token(body["email"]),
            "registered": True,
        })

    def _lookup(self, body: Dict[str, Any]) -> httpx.Response:
        email = self.tokens.get(body.get("idToken"))
        if email is None:
            return provider_error("INVALID_ID_TOKEN")
        account = self.accounts[email]
        return httpx.Response(200, json={"users": [{
            "localId": account["localId"],
            "email": email,
            "emailVerified": account["emailVerified"],
        }]})

    def _sendOobCode(self, body: Dict[str, Any]) -> httpx.Response:
        email = self.tokens.get(body.get("idToken"))
        if email is None:
            return provider_error("INVALID_ID_TOKEN")
        self.codes[f"oob-{len(self.codes) + 1}"] = email
        self.sent_verifications.append(email)
        return httpx.Response(200, json={"email": email})

    def _update(self, body: Dict[str, Any]) -> httpx.Response:
        email = self.codes.pop(body.get("oobCode"), None)
        if email is None:
            return provider_error("INVALID_OOB_CODE")
        self.confirm_email(email)
        return httpx.Response(200, json={
            "localId": self.accounts[email]["localId"],
            "email": email,
            "emailVerified": True,
        })


@pytest.fixture
def provider_config() -> ProviderConfig:
    return ProviderConfig(api_key="test-api-key", base_url=BASE_URL)


@pytest.fixture
def toolkit() -> FakeIdentityToolkit:
    return FakeIdentityToolkit()


@pytest.fixture
async def provider(provider_config, toolkit):
    client = IdentityProviderClient(
        provider_config,
        client=httpx.AsyncClient(transport=toolkit),
    )
    yield client
    await client.close()


@pytest.fixture
async def session_maker():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def store(session_maker) -> UserRecordStore:
    return UserRecordStore(session_maker)


@pytest.fixture
def orchestrator(provider, store) -> VerificationOrchestrator:
    return VerificationOrchestrator(provider, store)


@pytest.fixture
def reporter(store) -> ReconciliationReporter:
    return ReconciliationReporter(store)


@pytest.fixture
def make_user(store):
    """Create a local user row; password hash is irrelevant below the routes"""
    async def _make_user(email: str, full_name: str = "Test User", username: Optional[str] = None):
        return await store.create_user(
            full_name=full_name,
            username=username or email.split("@")[0],
            email=email,
            password_hash="not-a-real-hash",
        )
    return _make_user
