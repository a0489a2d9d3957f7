"""
Startup script for deployment
Handles:
- Configuration checks
- Uvicorn server launch
"""

import os
import sys

from dotenv import load_dotenv


def check_configuration():
    """Warn about settings that leave the verification flow degraded"""
    ok = True

    if not os.getenv("IDENTITY_PROVIDER_API_KEY"):
        print("⚠️  WARNING: IDENTITY_PROVIDER_API_KEY not found in environment")
        print("⚠️  Registration and email verification will fail!")
        ok = False

    if not os.getenv("DATABASE_URL"):
        print("⚠️  WARNING: DATABASE_URL not set, using the local default")
        ok = False

    for name in ("SECRET_KEY", "ADMIN_PASSWORD"):
        if not os.getenv(name):
            print(f"⚠️  WARNING: {name} not set, using an insecure default")
            ok = False

    if ok:
        print("✓ Configuration looks complete")
    return ok


def main():
    """Main startup sequence"""
    load_dotenv()

    print("=" * 60)
    print("🚀 HealthScan QR Backend - Startup")
    print("=" * 60)

    # Step 1: Check configuration
    print("\n[1/2] Checking configuration...")
    check_configuration()

    # Step 2: Launch uvicorn
    print("\n[2/2] Starting uvicorn server...")
    print("=" * 60)

    port = int(os.getenv("PORT", "8000"))

    import uvicorn

    try:
        uvicorn.run(
            "main:app",
            host="0.0.0.0",
            port=port,
            log_level="info",
            access_log=True
        )
    except KeyboardInterrupt:
        print("\n⏹️  Shutting down...")
        sys.exit(0)


if __name__ == "__main__":
    main()
