from typing import List, Literal, Optional
from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session
from starlette.background import BackgroundTask
from starlette.concurrency import run_in_threadpool

from app.database import get_db
from app.models.complaint import ComplaintStatus
from app.models.employee import Employee
from app.models.user import User
from app.routers.auth_deps import get_current_user, get_current_employee, get_complaint_broker
from app.core.config import settings
from app.core.limiter import limiter
from app.schemas.complaint import (
    ComplaintCreate, ComplaintDirectResponse, ComplaintMessageCreate, ComplaintMessageView,
    ComplaintStatusUpdate, ComplaintSummary, ComplaintView,
)
from app.services.complaint_broker import ComplaintEventBroker, StreamViewer, complaint_event_stream
from app.services.complaint_service import ComplaintService, present_complaint

router = APIRouter(prefix="/complaints", tags=["complaints"])


@router.post("", response_model=ComplaintView, status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.complaint_rate_limit)
def create_complaint(
    request: Request,
    data: ComplaintCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    employee: Employee = Depends(get_current_employee),
):
    return ComplaintService(db).create(current_user, employee, data)


@router.get("", response_model=List[ComplaintSummary])
def list_complaints(
    view: Literal["mine", "all"] = "mine",
    status_filter: Optional[ComplaintStatus] = Query(None, alias="status"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    employee: Employee = Depends(get_current_employee),
):
    return ComplaintService(db).list_complaints(current_user, employee, view, status_filter)


@router.get("/{complaint_id}", response_model=ComplaintView)
def get_complaint(
    complaint_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    employee: Employee = Depends(get_current_employee),
):
    return ComplaintService(db).get_view(current_user, employee, complaint_id)


@router.get("/{complaint_id}/stream")
async def stream_complaint(
    complaint_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    employee: Employee = Depends(get_current_employee),
    broker: ComplaintEventBroker = Depends(get_complaint_broker),
):
    """
    Server-sent events: `connected`, then `message` and `status` as they happen.

    The subscription is registered before the response is returned, so
    nothing published after authorization is missed.
    """
    _, viewer = await run_in_threadpool(ComplaintService(db).authorize, current_user, employee, complaint_id)
    subscriber = broker.subscribe(complaint_id, viewer)
    return StreamingResponse(
        complaint_event_stream(broker, subscriber, settings.sse_keepalive_seconds),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        # Covers clients that disconnect before the body starts
        background=BackgroundTask(broker.unsubscribe, complaint_id, subscriber),
    )


@router.post("/{complaint_id}/messages", response_model=ComplaintMessageView, status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.complaint_rate_limit)
def post_message(
    request: Request,
    complaint_id: int,
    data: ComplaintMessageCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    employee: Employee = Depends(get_current_employee),
    broker: ComplaintEventBroker = Depends(get_complaint_broker),
):
    return ComplaintService(db, broker).post_message(current_user, employee, complaint_id, data)


@router.put("/{complaint_id}/status", response_model=ComplaintView)
def update_status(
    complaint_id: int,
    data: ComplaintStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    broker: ComplaintEventBroker = Depends(get_complaint_broker),
):
    complaint = ComplaintService(db, broker).set_status(current_user, complaint_id, data.status)
    return present_complaint(complaint, StreamViewer(user_id=current_user.id, is_hr=True))


@router.put("/{complaint_id}/response", response_model=ComplaintView)
def respond_directly(
    complaint_id: int,
    data: ComplaintDirectResponse,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    complaint = ComplaintService(db).set_direct_response(current_user, complaint_id, data.hr_response)
    return present_complaint(complaint, StreamViewer(user_id=current_user.id, is_hr=True))
