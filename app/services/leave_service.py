"""
Leave request workflow.

PENDING -> APPROVED | REJECTED | CANCELLED, APPROVED -> CANCELLED.
Each request fans out one approval row per manager linked to the employee
at creation time. Regular approvers decide by quorum (any rejection rejects,
unanimous approval approves); direct approvers resolve the request outright.
"""
from datetime import date, datetime, timezone
from typing import List, Optional
from sqlalchemy.orm import selectinload

from app.services.base import BaseService
from app.services.audit import AuditService
from app.services.leave_balance_service import ineligibility
from app.services.leave_type_service import find_active_type_by_code
from app.services.settings_service import get_settings
from app.models.employee import Employee
from app.models.leave_request import LeaveRequest, LeaveApproval, LeaveStatus, ACTIVE_LEAVE_STATUSES
from app.models.user import User
from app.core.capabilities import Capability, has_capability, require_capability
from app.core.exceptions import AccessDeniedError, BusinessRuleError, NotFoundError
from app.core.locks import leave_locks
from app.schemas.leave import LeaveDecision, LeaveRequestCreate


def resolve_quorum(approvals: List[LeaveApproval]) -> LeaveStatus:
    """Overall status implied by the individual decisions."""
    if any(a.approved is False for a in approvals):
        return LeaveStatus.REJECTED
    if approvals and all(a.approved is True for a in approvals):
        return LeaveStatus.APPROVED
    return LeaveStatus.PENDING


class LeaveService(BaseService):

    def _load(self, request_id: int) -> LeaveRequest:
        leave = (
            self.db.query(LeaveRequest)
            .options(selectinload(LeaveRequest.approvals), selectinload(LeaveRequest.leave_type))
            .filter(LeaveRequest.id == request_id)
            .first()
        )
        if not leave:
            raise NotFoundError("Leave request not found")
        return leave

    def create_request(self, employee: Employee, data: LeaveRequestCreate, today: Optional[date] = None) -> LeaveRequest:
        # All rule checks happen before anything is written
        if data.start_date > data.end_date:
            raise BusinessRuleError("Start date must be before end date", "INVALID_DATE_RANGE")

        max_days = get_settings(self.db).max_consecutive_leave_days
        span = (data.end_date - data.start_date).days + 1
        if span > max_days:
            raise BusinessRuleError(f"Cannot request more than {max_days} consecutive days", "MAX_CONSECUTIVE_DAYS")

        leave_type = find_active_type_by_code(self.db, data.leave_type_code)
        if leave_type is None:
            raise BusinessRuleError(f"Invalid leave type: {data.leave_type_code}", "UNKNOWN_LEAVE_TYPE")

        blocked = ineligibility(leave_type, employee, today)
        if blocked:
            code, message = blocked
            raise BusinessRuleError(message, code)

        if data.is_half_day:
            if not leave_type.allow_half_day:
                raise BusinessRuleError(f"{leave_type.name} cannot be taken as a half day", "HALF_DAY_NOT_ALLOWED")
            if data.half_day_type is None:
                raise BusinessRuleError("Half-day requests must specify morning or afternoon", "HALF_DAY_INVALID")
            if data.start_date != data.end_date:
                raise BusinessRuleError("A half-day request must start and end on the same day", "HALF_DAY_INVALID")

        with leave_locks.hold(employee.id):
            # Row lock serializes concurrent creators across processes on PostgreSQL
            self.db.query(Employee).filter(Employee.id == employee.id).with_for_update().first()

            existing = (
                self.db.query(LeaveRequest)
                .filter(
                    LeaveRequest.employee_id == employee.id,
                    LeaveRequest.status.in_(ACTIVE_LEAVE_STATUSES),
                    LeaveRequest.start_date <= data.end_date,
                    LeaveRequest.end_date >= data.start_date,
                )
                .first()
            )
            if existing:
                raise BusinessRuleError(
                    f"You already have a {existing.status.lower()} {existing.leave_type.name} request for "
                    f"{existing.start_date.isoformat()} - {existing.end_date.isoformat()}. Please cancel or wait "
                    f"for rejection before requesting leave for overlapping dates.",
                    "LEAVE_OVERLAP",
                    details={"conflicting_request_id": existing.id},
                )

            leave = LeaveRequest(
                employee_id=employee.id,
                leave_type_id=leave_type.id,
                reason=data.reason,
                start_date=data.start_date,
                end_date=data.end_date,
                is_half_day=data.is_half_day,
                half_day_type=data.half_day_type.value if data.is_half_day else None,
                status=LeaveStatus.PENDING.value,
            )
            self.db.add(leave)
            self.db.flush()

            approver_ids = [link.manager_id for link in employee.management_leads]
            for approver_id in approver_ids:
                self.db.add(LeaveApproval(leave_request_id=leave.id, approver_id=approver_id))

            AuditService.log(
                self.db,
                action="create_leave_request",
                entity_type="leave_request",
                entity_id=leave.id,
                user_id=employee.user_id,
                user_role=employee.user.role if employee.user else None,
                details={
                    "leave_type": leave_type.code,
                    "start_date": data.start_date,
                    "end_date": data.end_date,
                    "is_half_day": data.is_half_day,
                    "approver_ids": approver_ids,
                },
            )
            self.commit()

        self.db.refresh(leave)
        self.log_info(f"Leave request {leave.id} created for employee {employee.id} with {len(approver_ids)} approver(s)")
        return leave

    def decide(self, actor: User, actor_employee: Employee, request_id: int, decision: LeaveDecision) -> LeaveRequest:
        require_capability(actor, Capability.APPROVE_LEAVES, "Forbidden: Management role required")
        leave = self._load(request_id)
        if leave.status != LeaveStatus.PENDING.value:
            raise BusinessRuleError("Leave request is not pending", "INVALID_STATE")

        now = datetime.now(timezone.utc)
        before = {"status": leave.status, "approvals": [(a.approver_id, a.approved) for a in leave.approvals]}

        if has_capability(actor, Capability.DIRECT_APPROVE_LEAVES):
            leave.status = (LeaveStatus.APPROVED if decision.approved else LeaveStatus.REJECTED).value
            for approval in leave.approvals:
                if approval.approved is None:
                    approval.approved = decision.approved
                    approval.responded_at = now
                    if approval.approver_id == actor_employee.id:
                        approval.comment = decision.comment
            action = "direct_approve_leave" if decision.approved else "direct_reject_leave"
        else:
            approval = next((a for a in leave.approvals if a.approver_id == actor_employee.id), None)
            if approval is None:
                raise AccessDeniedError("You are not an approver for this leave request")
            # While the request is pending an approver may revise their vote
            approval.approved = decision.approved
            approval.comment = decision.comment
            approval.responded_at = now

            outcome = resolve_quorum(leave.approvals)
            if outcome != LeaveStatus.PENDING:
                leave.status = outcome.value
            action = "approve_leave" if decision.approved else "reject_leave"

        AuditService.log(
            self.db,
            action=action,
            entity_type="leave_request",
            entity_id=leave.id,
            user_id=actor.id,
            user_role=actor.role,
            details={"comment": decision.comment, "employee_id": leave.employee_id},
            before_state=before,
            after_state={"status": leave.status, "approvals": [(a.approver_id, a.approved) for a in leave.approvals]},
        )
        self.commit()
        self.db.refresh(leave)
        self.log_info(f"Leave request {leave.id}: {action} by user {actor.id}, status now {leave.status}")
        return leave

    def cancel(self, actor: User, actor_employee: Employee, request_id: int) -> LeaveRequest:
        leave = self._load(request_id)
        if leave.employee_id != actor_employee.id and not has_capability(actor, Capability.CANCEL_ANY_LEAVE):
            raise AccessDeniedError("Can only cancel your own leave requests")
        if leave.status not in ACTIVE_LEAVE_STATUSES:
            raise BusinessRuleError("Can only cancel pending or approved leave requests", "INVALID_STATE")

        previous = leave.status
        leave.status = LeaveStatus.CANCELLED.value
        AuditService.log(
            self.db,
            action="cancel_leave",
            entity_type="leave_request",
            entity_id=leave.id,
            user_id=actor.id,
            user_role=actor.role,
            before_state={"status": previous},
            after_state={"status": leave.status},
        )
        self.commit()
        self.db.refresh(leave)
        return leave

    def get_request(self, actor: User, actor_employee: Employee, request_id: int) -> LeaveRequest:
        leave = self._load(request_id)
        is_owner = leave.employee_id == actor_employee.id
        is_approver = any(a.approver_id == actor_employee.id for a in leave.approvals)
        if not (is_owner or is_approver or has_capability(actor, Capability.VIEW_ALL_LEAVES)):
            raise AccessDeniedError("You cannot view this leave request")
        return leave

    def list_mine(self, employee: Employee, status: Optional[str] = None) -> List[LeaveRequest]:
        query = self.db.query(LeaveRequest).filter(LeaveRequest.employee_id == employee.id)
        if status:
            query = query.filter(LeaveRequest.status == status)
        return query.order_by(LeaveRequest.start_date.desc(), LeaveRequest.id.desc()).all()

    def list_pending_approval(self, actor: User, actor_employee: Employee) -> List[LeaveRequest]:
        """Requests waiting on the caller's own decision."""
        require_capability(actor, Capability.APPROVE_LEAVES, "Forbidden: Management role required")
        return (
            self.db.query(LeaveRequest)
            .join(LeaveApproval, LeaveApproval.leave_request_id == LeaveRequest.id)
            .filter(
                LeaveApproval.approver_id == actor_employee.id,
                LeaveApproval.approved.is_(None),
                LeaveRequest.status == LeaveStatus.PENDING.value,
            )
            .order_by(LeaveRequest.created_at, LeaveRequest.id)
            .all()
        )

    def list_all(self, actor: User, status: Optional[str] = None, employee_id: Optional[int] = None) -> List[LeaveRequest]:
        require_capability(actor, Capability.VIEW_ALL_LEAVES)
        query = self.db.query(LeaveRequest)
        if status:
            query = query.filter(LeaveRequest.status == status)
        if employee_id is not None:
            query = query.filter(LeaveRequest.employee_id == employee_id)
        return query.order_by(LeaveRequest.start_date.desc(), LeaveRequest.id.desc()).all()
