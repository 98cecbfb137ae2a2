"""
Leave balance calculator.

Balances are derived on every read from the catalog, the per-year HR
overrides and the employee's approved requests. Nothing here writes a
computed balance back to the database.
"""
import logging
from datetime import date
from typing import Dict, List, Optional, Tuple
from sqlalchemy import extract
from sqlalchemy.orm import Session

from app.models.employee import Employee
from app.models.leave_balance import EmployeeLeaveBalance
from app.models.leave_request import LeaveRequest, LeaveStatus
from app.models.leave_type import LeaveTypeConfig
from app.models.user import User
from app.core.capabilities import Capability, require_capability
from app.core.exceptions import BusinessRuleError, NotFoundError
from app.schemas.leave import BalanceOverrideSet, BulkBalanceSet, BulkBalanceResult, LeaveBalanceResponse
from app.services.audit import AuditService

logger = logging.getLogger(__name__)


def tenure_days(employee: Employee, today: Optional[date] = None) -> int:
    """Whole days since the employee started. Zero when the start date is unknown."""
    if employee.start_work_date is None:
        return 0
    today = today or date.today()
    return max((today - employee.start_work_date).days, 0)


def ineligibility(leave_type: LeaveTypeConfig, employee: Employee, today: Optional[date] = None) -> Optional[Tuple[str, str]]:
    """
    Return (error_code, message) when `employee` may not use `leave_type`,
    or None when both the gender and the tenure gate pass.
    """
    if leave_type.allowed_gender is not None and employee.gender != leave_type.allowed_gender:
        return (
            "GENDER_RESTRICTION",
            f"Cannot request {leave_type.name}: this leave type is only available to "
            f"{leave_type.allowed_gender.value.lower()} employees.",
        )

    required = leave_type.required_work_days or 0
    if required > 0:
        if employee.start_work_date is None:
            return (
                "TENURE_REQUIREMENT",
                f"Cannot request {leave_type.name}: Your start work date is not set. "
                f"Please contact HR to update your profile.",
            )
        worked = tenure_days(employee, today)
        if worked < required:
            return (
                "TENURE_REQUIREMENT",
                f"Cannot request {leave_type.name}: You need to work at least {required} days "
                f"before using this leave type. You have worked {worked} days.",
            )
    return None


def list_eligible_leave_types(db: Session, employee: Employee, today: Optional[date] = None) -> List[LeaveTypeConfig]:
    catalog = (
        db.query(LeaveTypeConfig)
        .filter(LeaveTypeConfig.is_active.is_(True), LeaveTypeConfig.is_deleted.is_(False))
        .order_by(LeaveTypeConfig.order, LeaveTypeConfig.id)
        .all()
    )
    return [t for t in catalog if ineligibility(t, employee, today) is None]


def used_days_by_type(db: Session, employee_id: int, year: int) -> Dict[int, float]:
    """Days consumed per leave type by APPROVED requests starting in `year`."""
    approved = (
        db.query(LeaveRequest)
        .filter(
            LeaveRequest.employee_id == employee_id,
            LeaveRequest.status == LeaveStatus.APPROVED.value,
            extract("year", LeaveRequest.start_date) == year,
        )
        .all()
    )
    used: Dict[int, float] = {}
    for leave in approved:
        used[leave.leave_type_id] = used.get(leave.leave_type_id, 0.0) + leave.days_count
    return used


def compute_balances(db: Session, employee: Employee, year: int, today: Optional[date] = None) -> List[LeaveBalanceResponse]:
    eligible = list_eligible_leave_types(db, employee, today)
    overrides = {
        o.leave_type_id: o
        for o in db.query(EmployeeLeaveBalance).filter(
            EmployeeLeaveBalance.employee_id == employee.id,
            EmployeeLeaveBalance.year == year,
        )
    }
    used = used_days_by_type(db, employee.id, year)

    balances = []
    for leave_type in eligible:
        override = overrides.get(leave_type.id)
        base = override.balance if override is not None else leave_type.default_balance
        carried = override.carried_over if override is not None else 0.0
        adjustment = override.adjustment if override is not None else 0.0
        total = base + carried + adjustment
        used_days = used.get(leave_type.id, 0.0)
        balances.append(LeaveBalanceResponse(
            leave_type_id=leave_type.id,
            leave_type_code=leave_type.code,
            leave_type_name=leave_type.name,
            color=leave_type.color,
            is_paid=leave_type.is_paid,
            is_unlimited=leave_type.is_unlimited,
            year=year,
            base_balance=base,
            carried_over=carried,
            adjustment=adjustment,
            total_days=total,
            used_days=used_days,
            remaining_days=None if leave_type.is_unlimited else total - used_days,
            has_override=override is not None,
        ))
    return balances


def list_overrides(db: Session, actor: User, year: Optional[int] = None, employee_id: Optional[int] = None) -> List[EmployeeLeaveBalance]:
    require_capability(actor, Capability.MANAGE_EMPLOYEES)
    query = db.query(EmployeeLeaveBalance)
    if year is not None:
        query = query.filter(EmployeeLeaveBalance.year == year)
    if employee_id is not None:
        query = query.filter(EmployeeLeaveBalance.employee_id == employee_id)
    return query.order_by(EmployeeLeaveBalance.employee_id, EmployeeLeaveBalance.leave_type_id).all()


def _load_type(db: Session, leave_type_id: int) -> LeaveTypeConfig:
    leave_type = db.get(LeaveTypeConfig, leave_type_id)
    if leave_type is None or leave_type.is_deleted:
        raise NotFoundError("Leave type not found")
    return leave_type


def set_balance(db: Session, actor: User, data: BalanceOverrideSet) -> EmployeeLeaveBalance:
    """Upsert the override for (employee, leave type, year)."""
    require_capability(actor, Capability.MANAGE_EMPLOYEES)
    if db.get(Employee, data.employee_id) is None:
        raise NotFoundError("Employee not found")
    leave_type = _load_type(db, data.leave_type_id)

    if data.carried_over > 0:
        if not leave_type.allow_carryover:
            raise BusinessRuleError(f"{leave_type.name} does not allow carryover", "INVALID_CARRYOVER")
        if data.carried_over > leave_type.carryover_max:
            raise BusinessRuleError(
                f"Carryover of {data.carried_over:g} days exceeds the maximum of {leave_type.carryover_max:g} days for {leave_type.name}",
                "INVALID_CARRYOVER",
            )

    override = (
        db.query(EmployeeLeaveBalance)
        .filter(
            EmployeeLeaveBalance.employee_id == data.employee_id,
            EmployeeLeaveBalance.leave_type_id == data.leave_type_id,
            EmployeeLeaveBalance.year == data.year,
        )
        .first()
    )
    before = None
    if override is None:
        override = EmployeeLeaveBalance(
            employee_id=data.employee_id, leave_type_id=data.leave_type_id, year=data.year,
        )
        db.add(override)
    else:
        before = {"balance": override.balance, "carried_over": override.carried_over, "adjustment": override.adjustment}
    override.balance = data.balance
    override.carried_over = data.carried_over
    override.adjustment = data.adjustment
    override.notes = data.notes
    db.flush()

    AuditService.log(
        db,
        action="set_leave_balance",
        entity_type="leave_balance",
        entity_id=override.id,
        user_id=actor.id,
        user_role=actor.role,
        before_state=before,
        after_state=data,
    )
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(override)
    return override


def bulk_set_balance(db: Session, actor: User, data: BulkBalanceSet) -> BulkBalanceResult:
    """Set the base balance of one leave type for every employee."""
    require_capability(actor, Capability.MANAGE_EMPLOYEES)
    leave_type = _load_type(db, data.leave_type_id)
    existing = {
        o.employee_id: o
        for o in db.query(EmployeeLeaveBalance).filter(
            EmployeeLeaveBalance.leave_type_id == leave_type.id,
            EmployeeLeaveBalance.year == data.year,
        )
    }
    created = updated = skipped = 0
    for (employee_id,) in db.query(Employee.id).order_by(Employee.id):
        override = existing.get(employee_id)
        if override is None:
            db.add(EmployeeLeaveBalance(
                employee_id=employee_id, leave_type_id=leave_type.id, year=data.year, balance=data.balance,
            ))
            created += 1
        elif data.overwrite:
            override.balance = data.balance
            updated += 1
        else:
            skipped += 1

    result = BulkBalanceResult(created=created, updated=updated, skipped=skipped)
    AuditService.log(
        db,
        action="bulk_set_leave_balance",
        entity_type="leave_balance",
        entity_id=None,
        user_id=actor.id,
        user_role=actor.role,
        details={**data.model_dump(), **result.model_dump()},
    )
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info(f"Bulk balance for {leave_type.code}/{data.year}: {result.model_dump()}")
    return result


def reset_balance(db: Session, actor: User, employee_id: int, leave_type_id: int, year: int) -> None:
    """Drop the override so the catalog default applies again."""
    require_capability(actor, Capability.MANAGE_EMPLOYEES)
    override = (
        db.query(EmployeeLeaveBalance)
        .filter(
            EmployeeLeaveBalance.employee_id == employee_id,
            EmployeeLeaveBalance.leave_type_id == leave_type_id,
            EmployeeLeaveBalance.year == year,
        )
        .first()
    )
    if override is None:
        raise NotFoundError("Balance override not found")
    db.delete(override)
    AuditService.log(
        db,
        action="reset_leave_balance",
        entity_type="leave_balance",
        entity_id=override.id,
        user_id=actor.id,
        user_role=actor.role,
        details={"employee_id": employee_id, "leave_type_id": leave_type_id, "year": year},
    )
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
