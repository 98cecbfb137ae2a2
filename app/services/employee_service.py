"""
Employee directory: identity -> employee resolution, profile maintenance,
manager links and role assignment.
"""
from typing import List, Optional
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from app.services.base import BaseService
from app.services.audit import AuditService
from app.models.employee import Employee, EmployeeManagement
from app.models.user import User, UserRole
from app.core.capabilities import Capability, has_capability, require_capability
from app.core.exceptions import AccessDeniedError, BusinessRuleError, NotFoundError
from app.schemas.employee import EmployeeProfileUpdate, EmployeeUpdate


def format_employee_code(employee_id: int) -> str:
    return f"EMP-{employee_id:05d}"


class EmployeeService(BaseService):

    def resolve_or_create(self, user: User) -> Employee:
        """
        Return the employee linked to `user`, creating it on first access.

        The code is derived from the primary key the database hands out, so
        two first logins can never mint the same code. If a concurrent
        request created the row for the same user first, that row wins.
        """
        employee = self.db.query(Employee).filter(Employee.user_id == user.id).first()
        if employee is not None:
            return employee

        employee = Employee(user_id=user.id, full_name=user.name, avatar=user.image)
        self.db.add(employee)
        try:
            self.db.flush()
            employee.employee_code = format_employee_code(employee.id)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            existing = self.db.query(Employee).filter(Employee.user_id == user.id).first()
            if existing is None:
                raise
            return existing

        self.log_info(f"Created employee {employee.employee_code} for user {user.id}")
        return employee

    def get_employee(self, employee_id: int) -> Employee:
        employee = (
            self.db.query(Employee)
            .options(selectinload(Employee.user), selectinload(Employee.management_leads))
            .filter(Employee.id == employee_id)
            .first()
        )
        if not employee:
            raise NotFoundError("Employee not found")
        return employee

    def list_employees(self, search: Optional[str] = None, department: Optional[str] = None) -> List[Employee]:
        query = self.db.query(Employee).options(selectinload(Employee.user)).join(User, Employee.user_id == User.id)
        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(
                Employee.full_name.ilike(pattern),
                Employee.employee_code.ilike(pattern),
                User.email.ilike(pattern),
            ))
        if department:
            query = query.filter(Employee.department == department)
        return query.order_by(Employee.id).all()

    def update_profile(self, employee: Employee, data: EmployeeProfileUpdate) -> Employee:
        """Self-service edit, personal fields only."""
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(employee, field, value)
        self.commit()
        self.db.refresh(employee)
        return employee

    def update_employee(self, actor: User, employee_id: int, data: EmployeeUpdate) -> Employee:
        require_capability(actor, Capability.MANAGE_EMPLOYEES)
        employee = self.get_employee(employee_id)
        changes = data.model_dump(exclude_unset=True)
        before = {field: getattr(employee, field) for field in changes}
        for field, value in changes.items():
            setattr(employee, field, value)

        AuditService.log(
            self.db,
            action="update_employee",
            entity_type="employee",
            entity_id=employee.id,
            user_id=actor.id,
            user_role=actor.role,
            before_state=before,
            after_state=changes,
        )
        self.commit()
        self.db.refresh(employee)
        return employee

    def list_managers(self, employee_id: int) -> List[Employee]:
        return self.get_employee(employee_id).managers

    def assign_managers(self, actor: User, employee_id: int, manager_ids: List[int]) -> Employee:
        """Replace the employee's manager set. Order of `manager_ids` becomes link order."""
        require_capability(actor, Capability.MANAGE_EMPLOYEES)
        employee = self.get_employee(employee_id)

        ordered_ids = list(dict.fromkeys(manager_ids))
        if employee.id in ordered_ids:
            raise BusinessRuleError("An employee cannot be their own manager", "SELF_MANAGEMENT")

        managers = {}
        if ordered_ids:
            rows = (
                self.db.query(Employee)
                .options(selectinload(Employee.user))
                .filter(Employee.id.in_(ordered_ids))
                .all()
            )
            managers = {m.id: m for m in rows}
        missing = [mid for mid in ordered_ids if mid not in managers]
        if missing:
            raise NotFoundError(f"Manager employee(s) not found: {missing}")
        not_managers = [mid for mid in ordered_ids if not has_capability(managers[mid].user, Capability.MANAGE_TEAM)]
        if not_managers:
            raise BusinessRuleError(
                "Some manager IDs belong to users without a management role",
                "INVALID_MANAGER",
                details={"employee_ids": not_managers},
            )

        before = [link.manager_id for link in employee.management_leads]
        employee.management_leads.clear()
        self.db.flush()
        for mid in ordered_ids:
            employee.management_leads.append(EmployeeManagement(manager_id=mid))

        AuditService.log(
            self.db,
            action="assign_managers",
            entity_type="employee",
            entity_id=employee.id,
            user_id=actor.id,
            user_role=actor.role,
            before_state={"manager_ids": before},
            after_state={"manager_ids": ordered_ids},
        )
        self.commit()
        self.db.refresh(employee)
        self.log_info(f"Employee {employee.id} managers set to {ordered_ids}")
        return employee

    def my_team(self, manager: Employee) -> List[Employee]:
        return (
            self.db.query(Employee)
            .join(EmployeeManagement, EmployeeManagement.employee_id == Employee.id)
            .filter(EmployeeManagement.manager_id == manager.id)
            .order_by(Employee.id)
            .all()
        )

    def change_role(self, actor: User, employee_id: int, role: UserRole) -> Employee:
        require_capability(actor, Capability.ASSIGN_ROLES, "Forbidden: Admin or Developer role required")
        if role == UserRole.DEVELOPER and actor.role != UserRole.DEVELOPER:
            raise AccessDeniedError("Forbidden: Only Developer can assign Developer role")

        employee = self.get_employee(employee_id)
        if employee.user_id == actor.id:
            raise BusinessRuleError("Cannot change your own role", "SELF_ROLE_CHANGE")
        target = employee.user
        if target.role == UserRole.DEVELOPER and actor.role != UserRole.DEVELOPER:
            raise AccessDeniedError("Forbidden: Only Developer can change a Developer's role")

        previous = target.role
        target.role = role
        AuditService.log(
            self.db,
            action="change_role",
            entity_type="user",
            entity_id=target.id,
            user_id=actor.id,
            user_role=actor.role,
            before_state={"role": previous},
            after_state={"role": role},
        )
        self.commit()
        self.db.refresh(employee)
        self.log_info(f"User {target.id} role changed {previous.value} -> {role.value} by {actor.id}")
        return employee
