from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.audit_log import ApiLog, AuditLog
from app.core.capabilities import Capability
from app.routers.auth_deps import require_capability
from app.schemas.audit import ApiLogResponse, AuditLogResponse

router = APIRouter(
    prefix="/audit",
    tags=["audit"],
    dependencies=[Depends(require_capability(Capability.VIEW_AUDIT_LOGS, "Forbidden: Developer role required"))]
)


@router.get("/actions", response_model=List[AuditLogResponse])
def get_action_logs(
    db: Session = Depends(get_db),
    entity_type: Optional[str] = Query(None, description="Filter by entity type (e.g. 'leave_request')"),
    action: Optional[str] = Query(None, description="Filter by action name"),
    user_id: Optional[int] = Query(None, description="Filter by user ID"),
    search: Optional[str] = None,
    limit: int = Query(50, ge=1, le=100),
    skip: int = Query(0, ge=0),
):
    """
    Get action logs, newest first. READ-ONLY.
    """
    query = db.query(AuditLog)
    if entity_type:
        query = query.filter(AuditLog.entity_type == entity_type)
    if action:
        query = query.filter(AuditLog.action == action)
    if user_id:
        query = query.filter(AuditLog.user_id == user_id)
    if search:
        query = query.filter(AuditLog.action.ilike(f"%{search}%"))

    return query.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc()).offset(skip).limit(limit).all()


@router.get("/api-logs", response_model=List[ApiLogResponse])
def get_api_logs(
    db: Session = Depends(get_db),
    method: Optional[str] = None,
    path: Optional[str] = Query(None, description="Substring match on request path"),
    status_code: Optional[int] = None,
    user_id: Optional[int] = None,
    errors_only: bool = False,
    limit: int = Query(50, ge=1, le=100),
    skip: int = Query(0, ge=0),
):
    query = db.query(ApiLog)
    if method:
        query = query.filter(ApiLog.method == method.upper())
    if path:
        query = query.filter(ApiLog.path.contains(path))
    if status_code:
        query = query.filter(ApiLog.status_code == status_code)
    if user_id:
        query = query.filter(ApiLog.user_id == user_id)
    if errors_only:
        query = query.filter(or_(ApiLog.is_error.is_(True), ApiLog.status_code >= 400))

    return query.order_by(ApiLog.timestamp.desc(), ApiLog.id.desc()).offset(skip).limit(limit).all()
