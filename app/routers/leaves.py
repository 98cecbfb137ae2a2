from typing import List, Literal, Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.employee import Employee
from app.models.leave_request import LeaveStatus
from app.models.user import User
from app.routers.auth_deps import get_current_user, get_current_employee
from app.schemas.leave import LeaveDecision, LeaveRequestCreate, LeaveRequestResponse
from app.services.leave_service import LeaveService

router = APIRouter(prefix="/leaves", tags=["leaves"])


@router.post("", response_model=LeaveRequestResponse, status_code=status.HTTP_201_CREATED)
def create_leave_request(
    data: LeaveRequestCreate,
    db: Session = Depends(get_db),
    employee: Employee = Depends(get_current_employee),
):
    leave = LeaveService(db).create_request(employee, data)
    return LeaveRequestResponse.from_request(leave)


@router.get("", response_model=List[LeaveRequestResponse])
def list_leave_requests(
    view: Literal["mine", "pending-approval", "all"] = "mine",
    status_filter: Optional[LeaveStatus] = Query(None, alias="status"),
    employee_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    employee: Employee = Depends(get_current_employee),
):
    service = LeaveService(db)
    status_value = status_filter.value if status_filter else None
    if view == "pending-approval":
        leaves = service.list_pending_approval(current_user, employee)
    elif view == "all":
        leaves = service.list_all(current_user, status_value, employee_id)
    else:
        leaves = service.list_mine(employee, status_value)
    return [LeaveRequestResponse.from_request(leave) for leave in leaves]


@router.get("/{request_id}", response_model=LeaveRequestResponse)
def get_leave_request(
    request_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    employee: Employee = Depends(get_current_employee),
):
    leave = LeaveService(db).get_request(current_user, employee, request_id)
    return LeaveRequestResponse.from_request(leave)


@router.post("/{request_id}/decision", response_model=LeaveRequestResponse)
def decide_leave_request(
    request_id: int,
    decision: LeaveDecision,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    employee: Employee = Depends(get_current_employee),
):
    """
    Approve or reject a request.

    Assigned approvers record their vote and the request resolves by quorum;
    HR and admins decide the request outright.
    """
    leave = LeaveService(db).decide(current_user, employee, request_id, decision)
    return LeaveRequestResponse.from_request(leave)


@router.post("/{request_id}/cancel", response_model=LeaveRequestResponse)
def cancel_leave_request(
    request_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    employee: Employee = Depends(get_current_employee),
):
    leave = LeaveService(db).cancel(current_user, employee, request_id)
    return LeaveRequestResponse.from_request(leave)
