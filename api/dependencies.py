from fastapi import Depends, HTTPException, status, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import settings
from services.auth_service import decode_token
from services.identity_provider import IdentityProviderClient
from services.verification import (
    ErrorKind,
    OperationResult,
    ReconciliationReporter,
    UserRecordStore,
    VerificationOrchestrator,
)

security = HTTPBearer()

# Rate limiter - uses client IP address for identification
limiter = Limiter(key_func=get_remote_address, enabled=settings.RATE_LIMIT_ENABLED)

# Failed result -> HTTP status
ERROR_STATUS = {
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.CREDENTIALS_MISMATCH: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.PROVIDER_REJECTED: status.HTTP_400_BAD_REQUEST,
    ErrorKind.TRANSPORT: status.HTTP_502_BAD_GATEWAY,
    ErrorKind.PERSISTENCE: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.INTERNAL: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def raise_for_result(result: OperationResult) -> None:
    """Turn an unsuccessful orchestrator/reporter result into an HTTPException"""
    if result.success:
        return
    code = ERROR_STATUS.get(result.error_kind, status.HTTP_500_INTERNAL_SERVER_ERROR)
    raise HTTPException(status_code=code, detail=result.message)


# Components assembled in main.lifespan

def get_identity_provider(request: Request) -> IdentityProviderClient:
    return request.app.state.identity_provider


def get_user_store(request: Request) -> UserRecordStore:
    return request.app.state.user_store


def get_orchestrator(request: Request) -> VerificationOrchestrator:
    return request.app.state.orchestrator


def get_reporter(request: Request) -> ReconciliationReporter:
    return request.app.state.reporter


async def get_current_admin(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> str:
    """Get the operator username from an admin JWT"""
    try:
        payload = decode_token(credentials.credentials)
    except Exception:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials"
        )

    if payload.get("role") != "admin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )

    return payload.get("sub")
