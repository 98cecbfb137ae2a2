"""
Authentication and capability dependencies.

Every route resolves the caller from the SSO bearer token. Unknown subjects
are provisioned as EMPLOYEE users the first time a valid token is presented.
"""
import logging
from typing import Callable, Optional
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.employee import Employee
from app.models.user import User, UserRole
from app.services import auth as auth_service
from app.services.employee_service import EmployeeService
from app.services.complaint_broker import ComplaintEventBroker
from app.schemas.auth import TokenData
from app.core.capabilities import Capability, require_capability as check_capability
from app.core.exceptions import AccessDeniedError, AuthenticationError

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def _provision_user(db: Session, claims: TokenData) -> User:
    user = User(
        sso_subject=claims.sub,
        email=claims.email or f"{claims.sub}@sso.local",
        name=claims.name,
        image=claims.picture,
        role=UserRole.EMPLOYEE,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        # Concurrent first request for the same subject
        db.rollback()
        existing = db.query(User).filter(User.sso_subject == claims.sub).first()
        if existing is None:
            raise
        return existing
    db.refresh(user)
    logger.info(f"Provisioned user {user.id} for SSO subject {claims.sub}")
    return user


def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    """
    Extracts and validates the current user from the SSO bearer token.
    """
    if credentials is None:
        raise AuthenticationError("Not authenticated")

    payload = auth_service.decode_access_token(credentials.credentials)
    if payload is None:
        logger.warning("Authentication failed: Invalid token")
        raise AuthenticationError("Could not validate credentials")
    if payload.get("error") == "TOKEN_EXPIRED":
        logger.info("Authentication failed: Token expired")
        raise AuthenticationError("TOKEN_EXPIRED")

    try:
        claims = TokenData(**payload)
    except ValidationError:
        logger.warning("Authentication failed: Missing subject in token")
        raise AuthenticationError("Missing subject in token")

    user = db.query(User).filter(User.sso_subject == claims.sub).first()
    if user is None:
        user = _provision_user(db, claims)
    if not user.is_active:
        logger.warning(f"Authentication failed: User {user.id} is inactive")
        raise AccessDeniedError("User is inactive")

    # Picked up by the API logging middleware
    request.state.user_id = user.id
    return user


def get_current_employee(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Employee:
    """The caller's employee record, created on first access."""
    return EmployeeService(db).resolve_or_create(current_user)


def require_capability(capability: Capability, message: Optional[str] = None) -> Callable:
    """
    Dependency factory that checks the caller holds a capability.

    Usage:
        @router.get("/audit")
        def audit(user: User = Depends(require_capability(Capability.VIEW_AUDIT_LOGS))):
            ...
    """
    def capability_checker(current_user: User = Depends(get_current_user)) -> User:
        check_capability(current_user, capability, message)
        return current_user
    return capability_checker


def get_complaint_broker(request: Request) -> ComplaintEventBroker:
    return request.app.state.complaint_broker
