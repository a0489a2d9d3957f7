import os
from dotenv import load_dotenv

# Load .env file
load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Settings:
    DATABASE_URL: str = os.getenv(
        "DATABASE_URL",
        "postgresql+asyncpg://postgres@localhost:5432/healthscan_db"
    )

    SECRET_KEY: str = os.getenv("SECRET_KEY", "change-this-secret-key-in-production")
    ALGORITHM: str = os.getenv("ALGORITHM", "HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))
    ADMIN_TOKEN_EXPIRE_HOURS: int = int(os.getenv("ADMIN_TOKEN_EXPIRE_HOURS", "8"))

    # Operator console
    ADMIN_USERNAME: str = os.getenv("ADMIN_USERNAME", "admin")
    ADMIN_PASSWORD: str = os.getenv("ADMIN_PASSWORD", "change-this-admin-password")

    ALLOWED_ORIGINS: str = os.getenv(
        "ALLOWED_ORIGINS",
        "http://localhost:4200,https://healthscanqr2025.vercel.app"
    )

    # Identity provider (Identity Toolkit REST API)
    IDENTITY_PROVIDER_API_KEY: str = os.getenv("IDENTITY_PROVIDER_API_KEY", "")
    IDENTITY_PROVIDER_BASE_URL: str = os.getenv(
        "IDENTITY_PROVIDER_BASE_URL",
        "https://identitytoolkit.googleapis.com/v1"
    )
    IDENTITY_PROVIDER_TIMEOUT: float = float(os.getenv("IDENTITY_PROVIDER_TIMEOUT", "15"))
    IDENTITY_PROVIDER_PROBE_TIMEOUT: float = float(os.getenv("IDENTITY_PROVIDER_PROBE_TIMEOUT", "10"))

    RATE_LIMIT_ENABLED: bool = _env_bool("RATE_LIMIT_ENABLED", "true")

settings = Settings()
