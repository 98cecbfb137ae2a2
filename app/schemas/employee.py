from pydantic import BaseModel, ConfigDict, Field
from datetime import date, datetime
from typing import List, Optional
from app.models.employee import Employee, Gender
from app.models.user import UserRole

class EmployeeRef(BaseModel):
    """Compact reference used inside other payloads."""
    id: int
    employee_code: Optional[str] = None
    full_name: Optional[str] = None
    position: Optional[str] = None

    @classmethod
    def from_employee(cls, employee: Optional[Employee]) -> Optional["EmployeeRef"]:
        if employee is None:
            return None
        return cls(
            id=employee.id,
            employee_code=employee.employee_code,
            full_name=employee.display_name,
            position=employee.position,
        )

class EmployeeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    employee_code: Optional[str] = None
    user_id: int
    email: Optional[str] = None
    role: Optional[UserRole] = None
    full_name: Optional[str] = None
    gender: Optional[Gender] = None
    start_work_date: Optional[date] = None
    department: Optional[str] = None
    position: Optional[str] = None
    phone: Optional[str] = None
    avatar: Optional[str] = None
    managers: List[EmployeeRef] = []
    created_at: Optional[datetime] = None

    @classmethod
    def from_employee(cls, employee: Employee) -> "EmployeeResponse":
        user = employee.user
        return cls(
            id=employee.id,
            employee_code=employee.employee_code,
            user_id=employee.user_id,
            email=user.email if user else None,
            role=user.role if user else None,
            full_name=employee.display_name,
            gender=employee.gender,
            start_work_date=employee.start_work_date,
            department=employee.department,
            position=employee.position,
            phone=employee.phone,
            avatar=employee.avatar or (user.image if user else None),
            managers=[EmployeeRef.from_employee(m) for m in employee.managers],
            created_at=employee.created_at,
        )

class EmployeeProfileUpdate(BaseModel):
    """Fields an employee may edit on their own profile."""
    full_name: Optional[str] = Field(None, max_length=200)
    phone: Optional[str] = Field(None, max_length=50)
    avatar: Optional[str] = None

class EmployeeUpdate(EmployeeProfileUpdate):
    """HR edit: personal fields plus employment data."""
    gender: Optional[Gender] = None
    start_work_date: Optional[date] = None
    department: Optional[str] = None
    position: Optional[str] = None

class ManagerAssignment(BaseModel):
    manager_ids: List[int]

class RoleChange(BaseModel):
    role: UserRole
