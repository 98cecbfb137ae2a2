"""
SSO bearer token handling.

Production tokens are minted by the SSO gateway and only verified here.
`create_access_token` exists for local development and the test-suite.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import ExpiredSignatureError, JWTError, jwt

from app.core.config import settings

logger = logging.getLogger(__name__)


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.sso.access_token_expire_minutes))
    to_encode.update({"iat": int(now.timestamp()), "exp": int(expire.timestamp()), "type": "access"})
    if settings.sso.jwt_audience:
        to_encode.setdefault("aud", settings.sso.jwt_audience)
    return jwt.encode(to_encode, settings.sso.jwt_secret, algorithm=settings.sso.jwt_algorithm)


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """
    Verify a bearer token.

    Returns the claims, ``{"error": "TOKEN_EXPIRED"}`` for an expired token,
    or None when the token is malformed or the signature does not verify.
    """
    try:
        return jwt.decode(
            token,
            settings.sso.jwt_secret,
            algorithms=[settings.sso.jwt_algorithm],
            audience=settings.sso.jwt_audience,
            options={"verify_aud": bool(settings.sso.jwt_audience)},
        )
    except ExpiredSignatureError:
        return {"error": "TOKEN_EXPIRED"}
    except JWTError as e:
        logger.debug(f"Token rejected: {e}")
        return None
