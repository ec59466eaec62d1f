import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./agenda.db")

# Security - CRITICAL: No default secret key in production
SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    import warnings

    warnings.warn(
        "SECRET_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION", RuntimeWarning, stacklevel=2
    )
    SECRET_KEY = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only

# Fernet key for OAuth tokens at rest (generate with: python -c "from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())")
# When unset a key is derived from SECRET_KEY
TOKEN_ENCRYPTION_KEY = os.getenv("TOKEN_ENCRYPTION_KEY")

# Access tokens issued by the managed auth backend (HS256, "sub" = practitioner id)
JWT_SECRET = os.getenv("JWT_SECRET", SECRET_KEY)
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_AUDIENCE = os.getenv("JWT_AUDIENCE")

# Frontend base URL for redirects
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")

# Google Calendar OAuth Configuration
# Note: GOOGLE_REDIRECT_URI should point to FRONTEND (not backend API)
# OAuth flow: Google → Frontend → Frontend sends code to Backend API
GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID")
GOOGLE_CLIENT_SECRET = os.getenv("GOOGLE_CLIENT_SECRET")
GOOGLE_REDIRECT_URI = os.getenv("GOOGLE_REDIRECT_URI", f"{FRONTEND_URL}/settings/google-calendar")
GOOGLE_HTTP_TIMEOUT = float(os.getenv("GOOGLE_HTTP_TIMEOUT", "10"))
# Refresh the access token this many seconds before it actually expires
TOKEN_REFRESH_SKEW_SECONDS = int(os.getenv("TOKEN_REFRESH_SKEW_SECONDS", "0"))

# Scheduling
BUSINESS_TIMEZONE = os.getenv("BUSINESS_TIMEZONE", "America/Sao_Paulo")
DEFAULT_SERVICE_DURATION = int(os.getenv("DEFAULT_SERVICE_DURATION", "60"))
CURRENCY_SYMBOL = os.getenv("CURRENCY_SYMBOL", "R$")

# Redis cache (unset = caching disabled)
REDIS_URL = os.getenv("REDIS_URL")
APPOINTMENT_CACHE_TTL = int(os.getenv("APPOINTMENT_CACHE_TTL", "300"))
