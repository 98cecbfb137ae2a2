from typing import List, Optional
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.services.base import BaseService
from app.services.audit import AuditService
from app.services.settings_service import get_settings
from app.models.leave_type import LeaveTypeConfig
from app.models.user import User
from app.core.capabilities import Capability, require_capability
from app.core.exceptions import BusinessRuleError, NotFoundError
from app.schemas.leave_type import LeaveTypeCreate, LeaveTypeUpdate


def find_active_type_by_code(db: Session, code: str) -> Optional[LeaveTypeConfig]:
    """Requestable type for a code. Inactive or soft-deleted types do not resolve."""
    return (
        db.query(LeaveTypeConfig)
        .filter(
            LeaveTypeConfig.code == code.strip().upper(),
            LeaveTypeConfig.is_active.is_(True),
            LeaveTypeConfig.is_deleted.is_(False),
        )
        .first()
    )


class LeaveTypeService(BaseService):

    def list_types(self, include_inactive: bool = False) -> List[LeaveTypeConfig]:
        query = self.db.query(LeaveTypeConfig).filter(LeaveTypeConfig.is_deleted.is_(False))
        if not include_inactive:
            query = query.filter(LeaveTypeConfig.is_active.is_(True))
        return query.order_by(LeaveTypeConfig.order, LeaveTypeConfig.id).all()

    def get_type(self, type_id: int) -> LeaveTypeConfig:
        leave_type = (
            self.db.query(LeaveTypeConfig)
            .filter(LeaveTypeConfig.id == type_id, LeaveTypeConfig.is_deleted.is_(False))
            .first()
        )
        if not leave_type:
            raise NotFoundError("Leave type not found")
        return leave_type

    def _ensure_code_free(self, code: str, exclude_id: Optional[int] = None):
        # Soft-deleted rows keep their code, the column is unique
        query = self.db.query(LeaveTypeConfig).filter(LeaveTypeConfig.code == code)
        if exclude_id is not None:
            query = query.filter(LeaveTypeConfig.id != exclude_id)
        if query.first():
            raise BusinessRuleError(f"Leave type with code {code} already exists", "DUPLICATE_CODE")

    def create_type(self, actor: User, data: LeaveTypeCreate) -> LeaveTypeConfig:
        require_capability(actor, Capability.MANAGE_LEAVE_TYPES)
        code = data.code.strip().upper()
        self._ensure_code_free(code)

        max_order = self.db.query(func.max(LeaveTypeConfig.order)).scalar()
        leave_type = LeaveTypeConfig(**{**data.model_dump(), "code": code})
        leave_type.order = (max_order or 0) + 1
        self.db.add(leave_type)
        self.db.flush()

        AuditService.log(
            self.db,
            action="create_leave_type",
            entity_type="leave_type",
            entity_id=leave_type.id,
            user_id=actor.id,
            user_role=actor.role,
            after_state=data,
        )
        self.commit()
        self.db.refresh(leave_type)
        self.log_info(f"Leave type {code} created")
        return leave_type

    def update_type(self, actor: User, type_id: int, data: LeaveTypeUpdate) -> LeaveTypeConfig:
        require_capability(actor, Capability.MANAGE_LEAVE_TYPES)
        leave_type = self.get_type(type_id)
        changes = data.model_dump(exclude_unset=True)
        if changes.get("code"):
            changes["code"] = changes["code"].strip().upper()
            if changes["code"] != leave_type.code:
                self._ensure_code_free(changes["code"], exclude_id=leave_type.id)

        before = {field: getattr(leave_type, field) for field in changes}
        for field, value in changes.items():
            setattr(leave_type, field, value)

        AuditService.log(
            self.db,
            action="update_leave_type",
            entity_type="leave_type",
            entity_id=leave_type.id,
            user_id=actor.id,
            user_role=actor.role,
            before_state=before,
            after_state=changes,
        )
        self.commit()
        self.db.refresh(leave_type)
        return leave_type

    def delete_type(self, actor: User, type_id: int) -> None:
        """Soft delete; requests keep pointing at the row."""
        require_capability(actor, Capability.MANAGE_LEAVE_TYPES)
        leave_type = self.get_type(type_id)
        leave_type.is_deleted = True
        leave_type.is_active = False
        AuditService.log(
            self.db,
            action="delete_leave_type",
            entity_type="leave_type",
            entity_id=leave_type.id,
            user_id=actor.id,
            user_role=actor.role,
            details={"code": leave_type.code},
        )
        self.commit()
        self.log_info(f"Leave type {leave_type.code} soft-deleted")

    def reorder(self, actor: User, ids: List[int]) -> List[LeaveTypeConfig]:
        require_capability(actor, Capability.MANAGE_LEAVE_TYPES)
        rows = {t.id: t for t in self.db.query(LeaveTypeConfig).filter(LeaveTypeConfig.id.in_(ids)).all()}
        missing = [i for i in ids if i not in rows]
        if missing:
            raise NotFoundError(f"Leave type(s) not found: {missing}")
        for index, type_id in enumerate(ids):
            rows[type_id].order = index
        self.commit()
        return self.list_types(include_inactive=True)

    def seed_defaults(self, actor: User) -> List[LeaveTypeConfig]:
        """Create the standard catalog. Only allowed on an empty catalog."""
        require_capability(actor, Capability.MANAGE_LEAVE_TYPES)
        if self.db.query(LeaveTypeConfig).count() > 0:
            raise BusinessRuleError("Leave types already exist. Delete them first to re-seed.", "ALREADY_SEEDED")

        settings_row = get_settings(self.db)
        defaults = [
            dict(name="Annual Leave", code="ANNUAL", description="Paid annual vacation days",
                 default_balance=settings_row.max_annual_leave_days, allow_carryover=True,
                 carryover_max=settings_row.annual_leave_carryover_max, color="#0078d4"),
            dict(name="Sick Leave", code="SICK", description="Paid sick leave for illness or medical appointments",
                 default_balance=settings_row.max_sick_leave_days, color="#d13438"),
            dict(name="Personal Leave", code="PERSONAL", description="Paid personal days for personal matters",
                 default_balance=settings_row.max_personal_leave_days, color="#8764b8"),
            dict(name="Birthday Leave", code="BIRTHDAY", description="Paid day off on your birthday",
                 default_balance=settings_row.max_birthday_leave_days, allow_half_day=False, color="#ff8c00"),
            dict(name="Unpaid Leave", code="UNPAID", description="Unpaid leave of absence",
                 default_balance=0, is_unlimited=True, is_paid=False, color="#69797e"),
            dict(name="Other", code="OTHER", description="Other leave types",
                 default_balance=0, is_unlimited=True, is_paid=False, color="#107c10"),
        ]
        created = []
        for order, values in enumerate(defaults):
            leave_type = LeaveTypeConfig(order=order, **values)
            self.db.add(leave_type)
            created.append(leave_type)

        AuditService.log(
            self.db,
            action="seed_leave_types",
            entity_type="leave_type",
            entity_id=None,
            user_id=actor.id,
            user_role=actor.role,
            details={"codes": [d["code"] for d in defaults]},
        )
        self.commit()
        self.log_info(f"Seeded {len(created)} default leave types")
        return self.list_types(include_inactive=True)
