from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.employee import Employee
from app.models.user import User
from app.routers.auth_deps import get_current_user, get_current_employee
from app.schemas.employee import (
    EmployeeProfileUpdate, EmployeeRef, EmployeeResponse, EmployeeUpdate, ManagerAssignment, RoleChange,
)
from app.services.employee_service import EmployeeService

router = APIRouter(prefix="/employees", tags=["employees"])


@router.get("/me", response_model=EmployeeResponse)
def get_my_profile(employee: Employee = Depends(get_current_employee)):
    return EmployeeResponse.from_employee(employee)


@router.patch("/me", response_model=EmployeeResponse)
def update_my_profile(
    data: EmployeeProfileUpdate,
    db: Session = Depends(get_db),
    employee: Employee = Depends(get_current_employee),
):
    return EmployeeResponse.from_employee(EmployeeService(db).update_profile(employee, data))


@router.get("/my-team", response_model=List[EmployeeResponse])
def get_my_team(
    db: Session = Depends(get_db),
    employee: Employee = Depends(get_current_employee),
):
    """Employees the caller manages."""
    return [EmployeeResponse.from_employee(e) for e in EmployeeService(db).my_team(employee)]


@router.get("", response_model=List[EmployeeResponse])
def list_employees(
    search: Optional[str] = Query(None, max_length=100),
    department: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return [EmployeeResponse.from_employee(e) for e in EmployeeService(db).list_employees(search, department)]


@router.get("/{employee_id}", response_model=EmployeeResponse)
def get_employee(
    employee_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return EmployeeResponse.from_employee(EmployeeService(db).get_employee(employee_id))


@router.put("/{employee_id}", response_model=EmployeeResponse)
def update_employee(
    employee_id: int,
    data: EmployeeUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    employee = EmployeeService(db).update_employee(current_user, employee_id, data)
    return EmployeeResponse.from_employee(employee)


@router.get("/{employee_id}/managers", response_model=List[EmployeeRef])
def get_managers(
    employee_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return [EmployeeRef.from_employee(m) for m in EmployeeService(db).list_managers(employee_id)]


@router.put("/{employee_id}/managers", response_model=EmployeeResponse)
def assign_managers(
    employee_id: int,
    data: ManagerAssignment,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    employee = EmployeeService(db).assign_managers(current_user, employee_id, data.manager_ids)
    return EmployeeResponse.from_employee(employee)


@router.put("/{employee_id}/role", response_model=EmployeeResponse)
def change_role(
    employee_id: int,
    data: RoleChange,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    employee = EmployeeService(db).change_role(current_user, employee_id, data.role)
    return EmployeeResponse.from_employee(employee)
