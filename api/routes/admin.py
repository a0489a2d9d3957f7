"""Operator console: admin login, manual verification overrides and status views"""

import logging
import secrets
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from typing import Optional

from api.dependencies import get_current_admin, get_orchestrator, get_reporter, raise_for_result
from core.config import settings
from services.auth_service import create_admin_token
from services.verification import (
    BulkVerificationResult,
    ReconciliationReporter,
    StatusReport,
    StatusSummary,
    VerificationOrchestrator,
    VerificationResult,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])


class AdminLoginRequest(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None


class AdminLoginResponse(BaseModel):
    success: bool
    message: str
    token: str
    username: str
    role: str = "admin"


class VerifyEmailRequest(BaseModel):
    email: str


class StatsResponse(BaseModel):
    success: bool
    total_users: int
    verified_users: int
    unverified_users: int
    pending_verification: int
    linked_to_provider: int
    verification_rate: float


@router.post("/admin-login", response_model=AdminLoginResponse)
async def admin_login(body: AdminLoginRequest):
    """Exchange operator credentials for an 8-hour admin token"""
    if not body.username or not body.password:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Username and password are required."
        )

    username_ok = secrets.compare_digest(body.username, settings.ADMIN_USERNAME)
    password_ok = secrets.compare_digest(body.password, settings.ADMIN_PASSWORD)
    if not (username_ok and password_ok):
        logger.warning(f"Failed admin login attempt for {body.username}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid admin credentials"
        )

    return AdminLoginResponse(
        success=True,
        message="Admin login successful",
        token=create_admin_token(body.username),
        username=body.username,
    )


@router.post("/verify-email", response_model=VerificationResult)
async def verify_email_instantly(
    body: VerifyEmailRequest,
    admin: str = Depends(get_current_admin),
    orchestrator: VerificationOrchestrator = Depends(get_orchestrator)
):
    """Mark a user's email verified without provider confirmation"""
    logger.info(f"Admin {admin} verifying {body.email}")
    result = await orchestrator.override_single(body.email)
    raise_for_result(result)
    return result


@router.post("/verify-user/{user_id}", response_model=VerificationResult)
async def verify_user(
    user_id: int,
    admin: str = Depends(get_current_admin),
    orchestrator: VerificationOrchestrator = Depends(get_orchestrator)
):
    """Same override, addressed by local user id"""
    logger.info(f"Admin {admin} verifying user {user_id}")
    result = await orchestrator.override_by_local_id(user_id)
    raise_for_result(result)
    return result


@router.post("/verify-all", response_model=BulkVerificationResult)
async def verify_all_users(
    admin: str = Depends(get_current_admin),
    orchestrator: VerificationOrchestrator = Depends(get_orchestrator)
):
    """Mark every unverified user verified"""
    logger.info(f"Admin {admin} running bulk verification")
    result = await orchestrator.override_bulk()
    raise_for_result(result)
    return result


@router.get("/verification-status/{email}", response_model=StatusReport)
async def verification_status(
    email: str,
    admin: str = Depends(get_current_admin),
    reporter: ReconciliationReporter = Depends(get_reporter)
):
    result = await reporter.status_for(email)
    raise_for_result(result)
    return result


@router.get("/users-with-status", response_model=StatusSummary)
async def users_with_status(
    admin: str = Depends(get_current_admin),
    reporter: ReconciliationReporter = Depends(get_reporter)
):
    """All users with their verification state, newest first"""
    result = await reporter.all_with_status()
    raise_for_result(result)
    return result


@router.get("/stats", response_model=StatsResponse)
async def stats(
    admin: str = Depends(get_current_admin),
    reporter: ReconciliationReporter = Depends(get_reporter)
):
    summary = await reporter.all_with_status()
    raise_for_result(summary)
    return StatsResponse(
        success=True,
        total_users=summary.total,
        verified_users=summary.verified_count,
        unverified_users=summary.unverified_count,
        pending_verification=summary.pending_count,
        linked_to_provider=summary.linked_count,
        verification_rate=summary.verification_rate,
    )
