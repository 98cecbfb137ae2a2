from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import Optional

class GlobalSettingsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    max_consecutive_leave_days: int
    max_annual_leave_days: float
    max_sick_leave_days: float
    max_personal_leave_days: float
    max_birthday_leave_days: float
    annual_leave_carryover_max: float
    fiscal_year_start_month: int
    work_hours_per_day: float
    complaint_chat_enabled: bool
    reservation_requires_approval: bool
    updated_at: Optional[datetime] = None

class GlobalSettingsUpdate(BaseModel):
    max_consecutive_leave_days: Optional[int] = Field(None, ge=1, le=365)
    max_annual_leave_days: Optional[float] = Field(None, ge=0, le=365)
    max_sick_leave_days: Optional[float] = Field(None, ge=0, le=365)
    max_personal_leave_days: Optional[float] = Field(None, ge=0, le=365)
    max_birthday_leave_days: Optional[float] = Field(None, ge=0, le=365)
    annual_leave_carryover_max: Optional[float] = Field(None, ge=0, le=365)
    fiscal_year_start_month: Optional[int] = Field(None, ge=1, le=12)
    work_hours_per_day: Optional[float] = Field(None, gt=0, le=24)
    complaint_chat_enabled: Optional[bool] = None
    reservation_requires_approval: Optional[bool] = None
