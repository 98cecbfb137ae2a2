from pydantic import BaseModel, Field
from datetime import date, datetime
from typing import List, Optional
from app.models.reservation import ResourceReservation
from app.schemas.employee import EmployeeRef

class ReservationCreate(BaseModel):
    resource_employee_id: int
    date: date
    hours: float = Field(..., ge=0.5, le=24)
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)

class ReservationUpdate(BaseModel):
    hours: Optional[float] = Field(None, ge=0.5, le=24)
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)

class ReservationDecision(BaseModel):
    approved: bool
    comment: Optional[str] = Field(None, max_length=1000)

class ReservationResponse(BaseModel):
    id: int
    resource_employee: Optional[EmployeeRef] = None
    resource_owner: Optional[EmployeeRef] = None
    requester: Optional[EmployeeRef] = None
    date: date
    hours: float
    title: str
    description: Optional[str] = None
    status: str
    comment: Optional[str] = None
    responded_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_reservation(cls, r: ResourceReservation) -> "ReservationResponse":
        return cls(
            id=r.id,
            resource_employee=EmployeeRef.from_employee(r.resource_employee),
            resource_owner=EmployeeRef.from_employee(r.resource_owner),
            requester=EmployeeRef.from_employee(r.requester),
            date=r.date,
            hours=r.hours,
            title=r.title,
            description=r.description,
            status=r.status,
            comment=r.comment,
            responded_at=r.responded_at,
            created_at=r.created_at,
            updated_at=r.updated_at,
        )

class ReservableResource(BaseModel):
    employee: EmployeeRef
    managers: List[EmployeeRef]

class ResourceSchedule(BaseModel):
    resource: EmployeeRef
    work_hours_per_day: float
    start_date: date
    end_date: date
    reservations: List[ReservationResponse]
