from datetime import date
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.employee import Employee
from app.models.user import User
from app.routers.auth_deps import get_current_user, get_current_employee
from app.core.capabilities import Capability, require_capability
from app.schemas.leave import (
    BalanceOverrideResponse, BalanceOverrideSet, BulkBalanceResult, BulkBalanceSet, LeaveBalanceResponse,
)
from app.schemas.leave_type import LeaveTypeResponse
from app.services import leave_balance_service
from app.services.employee_service import EmployeeService

router = APIRouter(prefix="/leave-balances", tags=["leave-balances"])


@router.get("/me", response_model=List[LeaveBalanceResponse])
def get_my_balances(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    db: Session = Depends(get_db),
    employee: Employee = Depends(get_current_employee),
):
    return leave_balance_service.compute_balances(db, employee, year or date.today().year)


@router.get("/me/eligible-types", response_model=List[LeaveTypeResponse])
def get_my_eligible_types(
    db: Session = Depends(get_db),
    employee: Employee = Depends(get_current_employee),
):
    """Leave types the caller passes the gender and tenure gates for."""
    return leave_balance_service.list_eligible_leave_types(db, employee)


@router.get("/overrides", response_model=List[BalanceOverrideResponse])
def list_overrides(
    year: Optional[int] = None,
    employee_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return leave_balance_service.list_overrides(db, current_user, year, employee_id)


@router.put("", response_model=BalanceOverrideResponse)
def set_balance(
    data: BalanceOverrideSet,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return leave_balance_service.set_balance(db, current_user, data)


@router.post("/bulk", response_model=BulkBalanceResult)
def bulk_set_balance(
    data: BulkBalanceSet,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return leave_balance_service.bulk_set_balance(db, current_user, data)


@router.delete("/{employee_id}/{leave_type_id}/{year}")
def reset_balance(
    employee_id: int,
    leave_type_id: int,
    year: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    leave_balance_service.reset_balance(db, current_user, employee_id, leave_type_id, year)
    return {"success": True, "message": "Balance reset to default"}


@router.get("/{employee_id}", response_model=List[LeaveBalanceResponse])
def get_employee_balances(
    employee_id: int,
    year: Optional[int] = Query(None, ge=2000, le=2100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    require_capability(current_user, Capability.MANAGE_EMPLOYEES)
    employee = EmployeeService(db).get_employee(employee_id)
    return leave_balance_service.compute_balances(db, employee, year or date.today().year)
