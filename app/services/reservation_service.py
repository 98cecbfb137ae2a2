"""
Reservation scheduler: booking part of a managed colleague's working day.

The sum of PENDING + APPROVED hours for one (resource, date) never exceeds
the configured work hours per day. The capacity check and the insert run in
one serialized section per (resource, date).
"""
from datetime import date, datetime, timedelta, timezone
from typing import List, Optional
from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from app.services.base import BaseService
from app.services.audit import AuditService
from app.services.settings_service import get_settings
from app.models.employee import Employee
from app.models.reservation import ResourceReservation, ReservationStatus, BOOKED_RESERVATION_STATUSES
from app.models.user import User
from app.core.capabilities import Capability, has_capability, require_capability
from app.core.exceptions import AccessDeniedError, BusinessRuleError, NotFoundError
from app.core.locks import reservation_locks
from app.schemas.reservation import ReservationCreate, ReservationDecision, ReservationUpdate

DEFAULT_SCHEDULE_WINDOW_DAYS = 30


def booked_hours(db: Session, resource_employee_id: int, on: date) -> float:
    total = (
        db.query(func.coalesce(func.sum(ResourceReservation.hours), 0.0))
        .filter(
            ResourceReservation.resource_employee_id == resource_employee_id,
            ResourceReservation.date == on,
            ResourceReservation.status.in_(BOOKED_RESERVATION_STATUSES),
        )
        .scalar()
    )
    return float(total or 0.0)


class ReservationService(BaseService):

    def _load(self, reservation_id: int) -> ResourceReservation:
        reservation = self.db.get(ResourceReservation, reservation_id)
        if not reservation:
            raise NotFoundError("Reservation not found")
        return reservation

    def _require_team_role(self, actor: User):
        require_capability(actor, Capability.MANAGE_TEAM, "Forbidden: Management role required")

    def create(self, actor: User, requester: Employee, data: ReservationCreate) -> ResourceReservation:
        self._require_team_role(actor)

        resource = self.db.get(Employee, data.resource_employee_id)
        if resource is None:
            raise NotFoundError("Resource employee not found")
        if not resource.management_leads:
            raise BusinessRuleError("Resource employee has no manager", "NO_MANAGER")

        owner_id = resource.management_leads[0].manager_id
        if owner_id == requester.id:
            raise BusinessRuleError("Cannot reserve your own team member", "SELF_RESERVATION")

        config = get_settings(self.db)
        capacity = config.work_hours_per_day
        status = ReservationStatus.PENDING if config.reservation_requires_approval else ReservationStatus.APPROVED

        with reservation_locks.hold((resource.id, data.date)):
            self.db.query(Employee).filter(Employee.id == resource.id).with_for_update().first()

            already = booked_hours(self.db, resource.id, data.date)
            remaining = max(capacity - already, 0.0)
            if data.hours > remaining:
                raise BusinessRuleError(
                    f"Cannot reserve {data.hours:g} hours: only {remaining:g} hours remaining on "
                    f"{data.date.isoformat()} (daily capacity {capacity:g} hours)",
                    "CAPACITY_EXCEEDED",
                    details={"remaining_hours": remaining, "capacity": capacity},
                )

            reservation = ResourceReservation(
                resource_employee_id=resource.id,
                resource_owner_id=owner_id,
                requester_id=requester.id,
                date=data.date,
                hours=data.hours,
                title=data.title,
                description=data.description,
                status=status.value,
                responded_at=datetime.now(timezone.utc) if status == ReservationStatus.APPROVED else None,
            )
            self.db.add(reservation)
            self.db.flush()
            AuditService.log(
                self.db,
                action="create_reservation",
                entity_type="reservation",
                entity_id=reservation.id,
                user_id=actor.id,
                user_role=actor.role,
                details={"resource_employee_id": resource.id, "date": data.date, "hours": data.hours, "status": status},
            )
            self.commit()

        self.db.refresh(reservation)
        self.log_info(
            f"Reservation {reservation.id}: {data.hours:g}h of employee {resource.id} on {data.date} ({reservation.status})"
        )
        return reservation

    def respond(self, actor: User, actor_employee: Employee, reservation_id: int, decision: ReservationDecision) -> ResourceReservation:
        self._require_team_role(actor)
        reservation = self._load(reservation_id)
        if reservation.resource_owner_id != actor_employee.id and not has_capability(actor, Capability.OVERRIDE_RESERVATIONS):
            raise AccessDeniedError("Only the resource owner can respond to this reservation")
        if reservation.status != ReservationStatus.PENDING.value:
            raise BusinessRuleError("Reservation is not pending", "INVALID_STATE")

        reservation.status = (ReservationStatus.APPROVED if decision.approved else ReservationStatus.REJECTED).value
        reservation.comment = decision.comment
        reservation.responded_at = datetime.now(timezone.utc)
        AuditService.log(
            self.db,
            action="approve_reservation" if decision.approved else "reject_reservation",
            entity_type="reservation",
            entity_id=reservation.id,
            user_id=actor.id,
            user_role=actor.role,
            details={"comment": decision.comment},
        )
        self.commit()
        self.db.refresh(reservation)
        return reservation

    def update(self, actor: User, actor_employee: Employee, reservation_id: int, data: ReservationUpdate) -> ResourceReservation:
        """Plain data patch. Any status, no capacity re-check."""
        reservation = self._load(reservation_id)
        allowed = (
            actor_employee.id in (reservation.requester_id, reservation.resource_owner_id)
            or has_capability(actor, Capability.OVERRIDE_RESERVATIONS)
        )
        if not allowed:
            raise AccessDeniedError("Only the requester or resource owner can edit this reservation")

        # Only the description may be cleared
        changes = {
            field: value for field, value in data.model_dump(exclude_unset=True).items()
            if value is not None or field == "description"
        }
        before = {field: getattr(reservation, field) for field in changes}
        for field, value in changes.items():
            setattr(reservation, field, value)
        AuditService.log(
            self.db,
            action="update_reservation",
            entity_type="reservation",
            entity_id=reservation.id,
            user_id=actor.id,
            user_role=actor.role,
            before_state=before,
            after_state=changes,
        )
        self.commit()
        self.db.refresh(reservation)
        return reservation

    def cancel(self, actor: User, actor_employee: Employee, reservation_id: int) -> ResourceReservation:
        reservation = self._load(reservation_id)
        if reservation.requester_id != actor_employee.id and not has_capability(actor, Capability.OVERRIDE_RESERVATIONS):
            raise AccessDeniedError("Only the requester can cancel this reservation")
        if reservation.status == ReservationStatus.CANCELLED.value:
            raise BusinessRuleError("Reservation is already cancelled", "INVALID_STATE")

        previous = reservation.status
        reservation.status = ReservationStatus.CANCELLED.value
        AuditService.log(
            self.db,
            action="cancel_reservation",
            entity_type="reservation",
            entity_id=reservation.id,
            user_id=actor.id,
            user_role=actor.role,
            before_state={"status": previous},
            after_state={"status": reservation.status},
        )
        self.commit()
        self.db.refresh(reservation)
        return reservation

    def list_resources(self, actor: User) -> List[Employee]:
        """Employees with at least one manager, i.e. reservable."""
        self._require_team_role(actor)
        return (
            self.db.query(Employee)
            .options(selectinload(Employee.management_leads), selectinload(Employee.user))
            .filter(Employee.management_leads.any())
            .order_by(Employee.full_name, Employee.id)
            .all()
        )

    def resource_schedule(
        self, actor: User, resource_employee_id: int,
        start: Optional[date] = None, end: Optional[date] = None,
    ):
        self._require_team_role(actor)
        resource = self.db.get(Employee, resource_employee_id)
        if resource is None:
            raise NotFoundError("Resource employee not found")
        start = start or date.today()
        end = end or start + timedelta(days=DEFAULT_SCHEDULE_WINDOW_DAYS)
        if start > end:
            raise BusinessRuleError("Start date must be before end date", "INVALID_DATE_RANGE")

        reservations = (
            self.db.query(ResourceReservation)
            .filter(
                ResourceReservation.resource_employee_id == resource.id,
                ResourceReservation.date >= start,
                ResourceReservation.date <= end,
                ResourceReservation.status.in_(BOOKED_RESERVATION_STATUSES),
            )
            .order_by(ResourceReservation.date, ResourceReservation.id)
            .all()
        )
        return resource, get_settings(self.db).work_hours_per_day, start, end, reservations

    def my_team_requests(self, actor: User, owner: Employee, status: Optional[str] = None) -> List[ResourceReservation]:
        """Reservations waiting on (or decided by) the caller as resource owner."""
        self._require_team_role(actor)
        query = self.db.query(ResourceReservation).filter(ResourceReservation.resource_owner_id == owner.id)
        if status:
            query = query.filter(ResourceReservation.status == status)
        return query.order_by(ResourceReservation.date.desc(), ResourceReservation.id.desc()).all()

    def my_time(self, employee: Employee, start: Optional[date] = None, end: Optional[date] = None) -> List[ResourceReservation]:
        """Approved bookings of the caller's own time."""
        query = self.db.query(ResourceReservation).filter(
            ResourceReservation.resource_employee_id == employee.id,
            ResourceReservation.status == ReservationStatus.APPROVED.value,
        )
        if start:
            query = query.filter(ResourceReservation.date >= start)
        if end:
            query = query.filter(ResourceReservation.date <= end)
        return query.order_by(ResourceReservation.date, ResourceReservation.id).all()

    def my_requests(self, actor: User, requester: Employee, status: Optional[str] = None) -> List[ResourceReservation]:
        self._require_team_role(actor)
        query = self.db.query(ResourceReservation).filter(ResourceReservation.requester_id == requester.id)
        if status:
            query = query.filter(ResourceReservation.status == status)
        return query.order_by(ResourceReservation.date.desc(), ResourceReservation.id.desc()).all()
