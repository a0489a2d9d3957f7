import logging
from fastapi import APIRouter, Depends, HTTPException, status, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from pydantic import BaseModel
from typing import Optional

from db.database import get_async_session
from db.models import User
from api.dependencies import get_orchestrator, get_user_store, limiter, raise_for_result
from services.auth_service import create_access_token, hash_password, verify_password
from services.verification import (
    DuplicateRecord,
    NotFound,
    PersistenceError,
    RegistrationResult,
    RegistrationValidationError,
    ResendResult,
    UserRecordStore,
    VerificationOrchestrator,
    VerificationResult,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


class RegisterRequest(BaseModel):
    full_name: Optional[str] = None
    email: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class CredentialsRequest(BaseModel):
    """Email/password pair for status polling and resending the verification email"""
    email: Optional[str] = None
    password: Optional[str] = None


class VerifyEmailRequest(BaseModel):
    oob_code: str


class UserSummary(BaseModel):
    id: int
    full_name: str
    email: str
    username: str

    class Config:
        from_attributes = True


class LoginResponse(BaseModel):
    message: str
    access_token: str
    token_type: str
    user: UserSummary
    email_verified: bool


def validate_registration(body: RegisterRequest) -> None:
    missing = [
        field for field in ("full_name", "email", "username", "password")
        if not (getattr(body, field) or "").strip()
    ]
    if missing:
        raise RegistrationValidationError(f"All fields are required. Missing: {', '.join(missing)}")


@router.post("/register", response_model=RegistrationResult)
@limiter.limit("5/minute")
async def register(
    request: Request,
    body: RegisterRequest,
    store: UserRecordStore = Depends(get_user_store),
    orchestrator: VerificationOrchestrator = Depends(get_orchestrator)
):
    """
    Register a user and start email verification.

    A repeated submission for an email that is already registered reuses the
    existing local user, so double submits resolve to the same account.
    """
    try:
        validate_registration(body)
    except RegistrationValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    email = body.email.strip()

    try:
        try:
            identity = await store.find_by_email(email)
            logger.info(f"{email} is already registered as local user {identity.local_id}")
        except NotFound:
            try:
                identity = await store.create_user(
                    full_name=body.full_name.strip(),
                    username=body.username.strip(),
                    email=email,
                    password_hash=hash_password(body.password),
                )
            except DuplicateRecord:
                # A concurrent submit for the same email inserted the row first
                identity = await store.find_by_email(email)
                logger.info(f"{email} was registered concurrently as local user {identity.local_id}")
    except (PersistenceError, NotFound) as e:
        logger.error(f"Registration error for {email}: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server error during registration"
        )

    result = await orchestrator.register(email, body.password, identity.local_id)
    raise_for_result(result)
    return result


@router.post("/login", response_model=LoginResponse)
@limiter.limit("10/minute")
async def login(
    request: Request,
    body: LoginRequest,
    db: AsyncSession = Depends(get_async_session)
):
    """Email + password login against the local record"""
    if not body.email or not body.password:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email and password are required."
        )

    result = await db.execute(select(User).where(User.email == body.email))
    user = result.scalar_one_or_none()

    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")

    if not verify_password(body.password, user.password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    access_token = create_access_token({"sub": str(user.id), "email": user.email})

    return LoginResponse(
        message="Login successful",
        access_token=access_token,
        token_type="bearer",
        user=UserSummary.model_validate(user),
        email_verified=user.email_verified,
    )


@router.post("/verify-email", response_model=VerificationResult)
@limiter.limit("10/minute")
async def verify_email(
    request: Request,
    body: VerifyEmailRequest,
    orchestrator: VerificationOrchestrator = Depends(get_orchestrator)
):
    """Confirm the out-of-band code from the verification email link"""
    result = await orchestrator.confirm_via_code(body.oob_code)
    raise_for_result(result)
    return result


@router.get("/verify-email", response_model=VerificationResult)
@limiter.limit("10/minute")
async def verify_email_link(
    request: Request,
    oobCode: str,
    orchestrator: VerificationOrchestrator = Depends(get_orchestrator)
):
    """Same as POST /verify-email, for links opened directly (``?mode=verifyEmail&oobCode=...``)"""
    result = await orchestrator.confirm_via_code(oobCode)
    raise_for_result(result)
    return result


@router.post("/verification-status", response_model=VerificationResult)
@limiter.limit("10/minute")
async def verification_status(
    request: Request,
    body: CredentialsRequest,
    orchestrator: VerificationOrchestrator = Depends(get_orchestrator)
):
    """
    Poll the identity provider for the verification flag.

    ``email_verified: false`` with a 200 means "not yet"; errors mean "try later".
    """
    result = await orchestrator.confirm_via_poll(body.email, body.password)
    raise_for_result(result)
    return result


@router.post("/resend-verification", response_model=ResendResult)
@limiter.limit("10/minute")
async def resend_verification(
    request: Request,
    body: CredentialsRequest,
    orchestrator: VerificationOrchestrator = Depends(get_orchestrator)
):
    """Send a new verification email"""
    result = await orchestrator.resend_verification(body.email, body.password)
    raise_for_result(result)
    return result
