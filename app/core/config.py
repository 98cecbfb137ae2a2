import os
import logging
from pydantic import BaseModel, Field
from typing import List, Optional
from dotenv import load_dotenv

load_dotenv()

class SSOSettings(BaseModel):
    # Tokens are minted by the SSO gateway; we only verify them.
    jwt_secret: str = Field(default=os.getenv("SSO_JWT_SECRET", "dev-only-insecure-sso-secret-DO-NOT-USE-IN-PROD"))
    jwt_algorithm: str = Field(default=os.getenv("SSO_JWT_ALGORITHM", "HS256"))
    jwt_audience: Optional[str] = Field(default=os.getenv("SSO_JWT_AUDIENCE") or None)
    access_token_expire_minutes: int = 60 * 24  # only used for dev/test tokens

class Config(BaseModel):
    app_name: str = "Employee Portal"
    environment: str = os.getenv("APP_ENV", "development")
    api_prefix: str = "/api"

    # Database
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./database.db")

    # Auth
    sso: SSOSettings = SSOSettings()

    version: str = "1.0.0"
    build_id: str = os.getenv("BUILD_ID", "local")
    request_id_header: str = "X-Request-ID"

    # CORS: comma-separated origins loaded from env
    cors_origins: List[str] = Field(
        default_factory=lambda: [
            o.strip()
            for o in os.getenv(
                "CORS_ORIGINS",
                "http://localhost:5173,http://127.0.0.1:5173,"
                "http://localhost:3000,http://127.0.0.1:3000",
            ).split(",")
            if o.strip()
        ]
    )

    # Rate limiting
    rate_limit_enabled: bool = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"
    complaint_rate_limit: str = os.getenv("COMPLAINT_RATE_LIMIT", "30/minute")

    # Observability
    enable_api_logging: bool = os.getenv("ENABLE_API_LOGGING", "true").lower() == "true"

    # Complaint chat stream
    sse_keepalive_seconds: float = float(os.getenv("SSE_KEEPALIVE_SECONDS", "30"))

settings = Config()

# --- Startup Validation for Production ---
_logger = logging.getLogger(__name__)
if settings.environment not in ("development", "testing"):
    if "dev-only" in settings.sso.jwt_secret:
        raise RuntimeError(
            "FATAL: SSO_JWT_SECRET must be set for non-development environments. "
            "Set it as an environment variable."
        )
else:
    if "dev-only" in settings.sso.jwt_secret:
        _logger.warning("⚠ Using insecure default SSO_JWT_SECRET, only acceptable in development.")
