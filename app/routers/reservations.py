from datetime import date
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.employee import Employee
from app.models.reservation import ReservationStatus
from app.models.user import User
from app.routers.auth_deps import get_current_user, get_current_employee
from app.schemas.employee import EmployeeRef
from app.schemas.reservation import (
    ReservableResource, ReservationCreate, ReservationDecision, ReservationResponse,
    ReservationUpdate, ResourceSchedule,
)
from app.services.reservation_service import ReservationService

router = APIRouter(prefix="/reservations", tags=["reservations"])


def _present(reservations) -> List[ReservationResponse]:
    return [ReservationResponse.from_reservation(r) for r in reservations]


@router.get("/resources", response_model=List[ReservableResource])
def list_resources(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Employees with at least one manager, together with their managers."""
    resources = ReservationService(db).list_resources(current_user)
    return [
        ReservableResource(
            employee=EmployeeRef.from_employee(e),
            managers=[EmployeeRef.from_employee(m) for m in e.managers],
        )
        for e in resources
    ]


@router.get("/resource/{resource_id}", response_model=ResourceSchedule)
def get_resource_schedule(
    resource_id: int,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    resource, capacity, start, end, reservations = ReservationService(db).resource_schedule(
        current_user, resource_id, start_date, end_date
    )
    return ResourceSchedule(
        resource=EmployeeRef.from_employee(resource),
        work_hours_per_day=capacity,
        start_date=start,
        end_date=end,
        reservations=_present(reservations),
    )


@router.get("/my-team", response_model=List[ReservationResponse])
def list_my_team_reservations(
    status_filter: Optional[ReservationStatus] = Query(None, alias="status"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    employee: Employee = Depends(get_current_employee),
):
    """Reservations against people the caller owns as resource owner."""
    status_value = status_filter.value if status_filter else None
    return _present(ReservationService(db).my_team_requests(current_user, employee, status_value))


@router.get("/my-time", response_model=List[ReservationResponse])
def list_my_time(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: Session = Depends(get_db),
    employee: Employee = Depends(get_current_employee),
):
    return _present(ReservationService(db).my_time(employee, start_date, end_date))


@router.get("/my-requests", response_model=List[ReservationResponse])
def list_my_requests(
    status_filter: Optional[ReservationStatus] = Query(None, alias="status"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    employee: Employee = Depends(get_current_employee),
):
    status_value = status_filter.value if status_filter else None
    return _present(ReservationService(db).my_requests(current_user, employee, status_value))


@router.post("", response_model=ReservationResponse, status_code=status.HTTP_201_CREATED)
def create_reservation(
    data: ReservationCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    employee: Employee = Depends(get_current_employee),
):
    reservation = ReservationService(db).create(current_user, employee, data)
    return ReservationResponse.from_reservation(reservation)


@router.put("/{reservation_id}", response_model=ReservationResponse)
def update_reservation(
    reservation_id: int,
    data: ReservationUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    employee: Employee = Depends(get_current_employee),
):
    reservation = ReservationService(db).update(current_user, employee, reservation_id, data)
    return ReservationResponse.from_reservation(reservation)


@router.post("/{reservation_id}/respond", response_model=ReservationResponse)
def respond_to_reservation(
    reservation_id: int,
    decision: ReservationDecision,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    employee: Employee = Depends(get_current_employee),
):
    reservation = ReservationService(db).respond(current_user, employee, reservation_id, decision)
    return ReservationResponse.from_reservation(reservation)


@router.post("/{reservation_id}/cancel", response_model=ReservationResponse)
def cancel_reservation(
    reservation_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    employee: Employee = Depends(get_current_employee),
):
    reservation = ReservationService(db).cancel(current_user, employee, reservation_id)
    return ReservationResponse.from_reservation(reservation)
