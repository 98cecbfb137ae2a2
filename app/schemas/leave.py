from pydantic import BaseModel, ConfigDict, Field
from datetime import date, datetime
from typing import List, Optional
from app.models.leave_request import HalfDayType, LeaveRequest
from app.schemas.employee import EmployeeRef

class LeaveRequestCreate(BaseModel):
    leave_type_code: str = Field(..., min_length=1)
    reason: str = Field(..., min_length=1, max_length=2000)
    start_date: date
    end_date: date
    is_half_day: bool = False
    half_day_type: Optional[HalfDayType] = None

class LeaveDecision(BaseModel):
    approved: bool
    comment: Optional[str] = Field(None, max_length=1000)

class LeaveApprovalResponse(BaseModel):
    id: int
    approver: Optional[EmployeeRef] = None
    approved: Optional[bool] = None
    comment: Optional[str] = None
    responded_at: Optional[datetime] = None

class LeaveRequestResponse(BaseModel):
    id: int
    employee: Optional[EmployeeRef] = None
    leave_type_id: int
    leave_type_code: Optional[str] = None
    leave_type_name: Optional[str] = None
    reason: str
    start_date: date
    end_date: date
    is_half_day: bool
    half_day_type: Optional[str] = None
    days_count: float
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    approvals: List[LeaveApprovalResponse] = []

    @classmethod
    def from_request(cls, leave: LeaveRequest) -> "LeaveRequestResponse":
        return cls(
            id=leave.id,
            employee=EmployeeRef.from_employee(leave.employee),
            leave_type_id=leave.leave_type_id,
            leave_type_code=leave.leave_type.code if leave.leave_type else None,
            leave_type_name=leave.leave_type.name if leave.leave_type else None,
            reason=leave.reason,
            start_date=leave.start_date,
            end_date=leave.end_date,
            is_half_day=leave.is_half_day,
            half_day_type=leave.half_day_type,
            days_count=leave.days_count,
            status=leave.status,
            created_at=leave.created_at,
            updated_at=leave.updated_at,
            approvals=[
                LeaveApprovalResponse(
                    id=a.id,
                    approver=EmployeeRef.from_employee(a.approver),
                    approved=a.approved,
                    comment=a.comment,
                    responded_at=a.responded_at,
                )
                for a in leave.approvals
            ],
        )

class LeaveBalanceResponse(BaseModel):
    """Derived balance for one leave type and year. Never stored."""
    leave_type_id: int
    leave_type_code: str
    leave_type_name: str
    color: Optional[str] = None
    is_paid: bool
    is_unlimited: bool
    year: int
    base_balance: float
    carried_over: float
    adjustment: float
    total_days: float
    used_days: float
    remaining_days: Optional[float] = None
    has_override: bool = False

class BalanceOverrideSet(BaseModel):
    employee_id: int
    leave_type_id: int
    year: int = Field(..., ge=2000, le=2100)
    balance: float = Field(..., ge=0)
    carried_over: float = Field(0, ge=0)
    adjustment: float = 0
    notes: Optional[str] = Field(None, max_length=500)

class BulkBalanceSet(BaseModel):
    leave_type_id: int
    year: int = Field(..., ge=2000, le=2100)
    balance: float = Field(..., ge=0)
    overwrite: bool = False

class BulkBalanceResult(BaseModel):
    created: int
    updated: int
    skipped: int

class BalanceOverrideResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    employee_id: int
    leave_type_id: int
    year: int
    balance: float
    carried_over: float
    adjustment: float
    notes: Optional[str] = None
    updated_at: Optional[datetime] = None
