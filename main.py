from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging

from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from db.database import create_db_and_tables, dispose_engine, get_session_maker
from api.dependencies import get_identity_provider, limiter
from api.routes import auth, admin
from core.config import settings
from services.identity_provider import IdentityProviderClient, ProviderConfig
from services.verification import ReconciliationReporter, UserRecordStore, VerificationOrchestrator

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)

# Set specific log levels
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)  # Reduce noise from access logs
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)  # Reduce SQL query logs
logging.getLogger("httpx").setLevel(logging.WARNING)  # Request URLs carry the provider API key

logger = logging.getLogger(__name__)


def build_components(app: FastAPI, provider: IdentityProviderClient, session_maker) -> None:
    """Wire the verification components onto app.state"""
    store = UserRecordStore(session_maker)
    app.state.identity_provider = provider
    app.state.user_store = store
    app.state.orchestrator = VerificationOrchestrator(provider, store)
    app.state.reporter = ReconciliationReporter(store)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Initialize database
    await create_db_and_tables()

    if not settings.IDENTITY_PROVIDER_API_KEY:
        logger.warning("IDENTITY_PROVIDER_API_KEY not set - provider calls will be rejected")

    provider = IdentityProviderClient(ProviderConfig.from_settings(settings))
    build_components(app, provider, get_session_maker())
    try:
        yield
    finally:
        await provider.close()
        await dispose_engine()


app = FastAPI(
    title="HealthScan QR API",
    description="Medical record lookup backend with email verification",
    version="1.0.0",
    lifespan=lifespan
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

allowed_origins = [origin.strip() for origin in settings.ALLOWED_ORIGINS.split(",") if origin.strip()] or ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
)

# Include routers
app.include_router(auth.router)
app.include_router(admin.router)


@app.get("/")
async def root():
    return {"message": "HealthScan QR API", "status": "running"}


@app.get("/api/health")
async def health(provider: IdentityProviderClient = Depends(get_identity_provider)):
    provider_reachable = await provider.probe()
    return {
        "status": "OK" if provider_reachable else "DEGRADED",
        "identity_provider": "reachable" if provider_reachable else "unreachable",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
