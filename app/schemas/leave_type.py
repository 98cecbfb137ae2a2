from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import List, Optional
from app.models.employee import Gender

class LeaveTypeBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    code: str = Field(..., min_length=1, max_length=20)
    description: Optional[str] = None
    default_balance: float = Field(0, ge=0)
    is_unlimited: bool = False
    is_paid: bool = True
    allow_half_day: bool = True
    allow_carryover: bool = False
    carryover_max: float = Field(0, ge=0)
    requires_approval: bool = True
    allowed_gender: Optional[Gender] = None
    required_work_days: Optional[int] = Field(None, ge=0)
    color: Optional[str] = None
    icon: Optional[str] = None

class LeaveTypeCreate(LeaveTypeBase):
    pass

class LeaveTypeUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    code: Optional[str] = Field(None, min_length=1, max_length=20)
    description: Optional[str] = None
    default_balance: Optional[float] = Field(None, ge=0)
    is_unlimited: Optional[bool] = None
    is_paid: Optional[bool] = None
    allow_half_day: Optional[bool] = None
    allow_carryover: Optional[bool] = None
    carryover_max: Optional[float] = Field(None, ge=0)
    requires_approval: Optional[bool] = None
    allowed_gender: Optional[Gender] = None
    required_work_days: Optional[int] = Field(None, ge=0)
    color: Optional[str] = None
    icon: Optional[str] = None
    is_active: Optional[bool] = None
    order: Optional[int] = Field(None, ge=0)

class LeaveTypeResponse(LeaveTypeBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    order: int
    is_active: bool
    created_at: Optional[datetime] = None

class LeaveTypeReorder(BaseModel):
    ids: List[int] = Field(..., min_length=1)
