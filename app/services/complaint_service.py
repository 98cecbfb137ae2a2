"""
Complaint threads.

The owning employee is always stored; anonymity is applied when a thread is
read. HR readers see the owner as "Anonymous Employee" and every other
participant as "HR Staff N", numbered by first appearance in that read.
"""
from datetime import datetime, timezone
from typing import Dict, List, Optional
from sqlalchemy.orm import selectinload

from app.services.base import BaseService
from app.services.audit import AuditService
from app.services.complaint_broker import ComplaintEventBroker, StreamViewer
from app.services.settings_service import get_settings
from app.models.complaint import Complaint, ComplaintMessage, ComplaintStatus
from app.models.employee import Employee
from app.models.user import User
from app.core.capabilities import Capability, has_capability, require_capability
from app.core.exceptions import AccessDeniedError, BusinessRuleError, NotFoundError
from app.schemas.complaint import (
    Attachment, ComplaintCreate, ComplaintMessageCreate, ComplaintMessageView,
    ComplaintSummary, ComplaintView, PersonView,
)

ANONYMOUS_EMPLOYEE = PersonView(name="Anonymous Employee", email="anonymous@company.com", image=None)


def build_aliases(complaint: Complaint) -> Dict[int, str]:
    """user id -> pseudonym, numbered in order of first message."""
    owner_user_id = complaint.employee.user_id
    aliases: Dict[int, str] = {owner_user_id: ANONYMOUS_EMPLOYEE.name}
    counter = 0
    for message in complaint.messages:
        if message.user_id not in aliases:
            counter += 1
            aliases[message.user_id] = f"HR Staff {counter}"
    return aliases


def _attachment(message: ComplaintMessage) -> Optional[Attachment]:
    if not message.attachment_url:
        return None
    return Attachment(
        url=message.attachment_url,
        name=message.attachment_name or "attachment",
        type=message.attachment_type,
        size=message.attachment_size,
    )


def sender_label(message: ComplaintMessage, viewer: StreamViewer, aliases: Dict[int, str]) -> str:
    if message.user_id == viewer.user_id:
        return "You"
    if viewer.is_hr:
        return aliases.get(message.user_id, "HR Staff")
    return "HR Staff" if message.is_from_hr else ANONYMOUS_EMPLOYEE.name


def present_message(message: ComplaintMessage, viewer: StreamViewer, aliases: Dict[int, str]) -> ComplaintMessageView:
    return ComplaintMessageView(
        id=message.id,
        content=message.content,
        is_from_hr=message.is_from_hr,
        is_self=message.user_id == viewer.user_id,
        sender_name=sender_label(message, viewer, aliases),
        attachment=_attachment(message),
        created_at=message.created_at,
    )


def _owner_view(complaint: Complaint, viewer: StreamViewer) -> PersonView:
    if viewer.is_hr and complaint.employee.user_id != viewer.user_id:
        return ANONYMOUS_EMPLOYEE
    employee = complaint.employee
    user = employee.user
    return PersonView(
        name=employee.display_name,
        email=user.email if user else None,
        image=employee.avatar or (user.image if user else None),
    )


def present_summary(complaint: Complaint, viewer: StreamViewer) -> ComplaintSummary:
    return ComplaintSummary(
        id=complaint.id,
        subject=complaint.subject,
        status=complaint.status,
        is_anonymous=complaint.is_anonymous,
        is_owner=complaint.employee.user_id == viewer.user_id,
        employee=_owner_view(complaint, viewer),
        message_count=len(complaint.messages),
        created_at=complaint.created_at,
        updated_at=complaint.updated_at,
    )


def present_complaint(complaint: Complaint, viewer: StreamViewer) -> ComplaintView:
    """Render a thread for one reader. Pseudonyms are recomputed on every call."""
    aliases = build_aliases(complaint)
    responder_name = None
    if complaint.hr_responded_by is not None:
        if complaint.hr_responded_by == viewer.user_id:
            responder_name = "You"
        elif viewer.is_hr:
            responder_name = aliases.get(complaint.hr_responded_by, "HR Staff")
        else:
            responder_name = "HR Staff"
    summary = present_summary(complaint, viewer)
    return ComplaintView(
        **summary.model_dump(),
        description=complaint.description,
        hr_response=complaint.hr_response,
        hr_responded_at=complaint.hr_responded_at,
        hr_responder_name=responder_name,
        messages=[present_message(m, viewer, aliases) for m in complaint.messages],
    )


class ComplaintService(BaseService):

    def __init__(self, db, broker: Optional[ComplaintEventBroker] = None):
        super().__init__(db)
        self.broker = broker

    def _load(self, complaint_id: int) -> Complaint:
        complaint = (
            self.db.query(Complaint)
            .options(
                selectinload(Complaint.messages),
                selectinload(Complaint.employee).selectinload(Employee.user),
            )
            .filter(Complaint.id == complaint_id)
            .first()
        )
        if not complaint:
            raise NotFoundError("Complaint not found")
        return complaint

    def authorize(self, actor: User, actor_employee: Employee, complaint_id: int):
        """Load a complaint the actor may read. Owner or complaint handlers only."""
        complaint = self._load(complaint_id)
        viewer = StreamViewer(user_id=actor.id, is_hr=has_capability(actor, Capability.MANAGE_COMPLAINTS))
        if complaint.employee_id != actor_employee.id and not viewer.is_hr:
            raise AccessDeniedError("Forbidden")
        return complaint, viewer

    def create(self, actor: User, employee: Employee, data: ComplaintCreate) -> ComplaintView:
        complaint = Complaint(
            employee_id=employee.id,
            subject=data.subject,
            description=data.description,
            is_anonymous=data.is_anonymous,
            status=ComplaintStatus.BACKLOG.value,
        )
        self.db.add(complaint)
        self.db.flush()
        AuditService.log(
            self.db,
            action="create_complaint",
            entity_type="complaint",
            entity_id=complaint.id,
            user_id=actor.id,
            user_role=actor.role,
            details={"is_anonymous": data.is_anonymous},
        )
        self.commit()
        self.log_info(f"Complaint {complaint.id} filed")
        return present_complaint(self._load(complaint.id), StreamViewer(actor.id, False))

    def list_complaints(
        self, actor: User, employee: Employee, view: str = "mine", status: Optional[ComplaintStatus] = None,
    ) -> List[ComplaintSummary]:
        query = self.db.query(Complaint).options(
            selectinload(Complaint.messages),
            selectinload(Complaint.employee).selectinload(Employee.user),
        )
        if view == "all":
            require_capability(actor, Capability.MANAGE_COMPLAINTS)
        else:
            query = query.filter(Complaint.employee_id == employee.id)
        if status is not None:
            query = query.filter(Complaint.status == status.value)
        viewer = StreamViewer(user_id=actor.id, is_hr=has_capability(actor, Capability.MANAGE_COMPLAINTS))
        return [present_summary(c, viewer) for c in query.order_by(Complaint.created_at.desc(), Complaint.id.desc())]

    def get_view(self, actor: User, actor_employee: Employee, complaint_id: int) -> ComplaintView:
        complaint, viewer = self.authorize(actor, actor_employee, complaint_id)
        return present_complaint(complaint, viewer)

    def post_message(
        self, actor: User, actor_employee: Employee, complaint_id: int, data: ComplaintMessageCreate,
    ) -> ComplaintMessageView:
        complaint, viewer = self.authorize(actor, actor_employee, complaint_id)
        if not get_settings(self.db).complaint_chat_enabled:
            raise BusinessRuleError("Complaint chat is currently disabled", "CHAT_DISABLED")

        attachment = data.attachment
        message = ComplaintMessage(
            complaint_id=complaint.id,
            user_id=actor.id,
            content=data.content,
            is_from_hr=viewer.is_hr,
            attachment_url=attachment.url if attachment else None,
            attachment_name=attachment.name if attachment else None,
            attachment_type=attachment.type if attachment else None,
            attachment_size=attachment.size if attachment else None,
        )
        self.db.add(message)
        self.db.flush()
        AuditService.log(
            self.db,
            action="post_complaint_message",
            entity_type="complaint",
            entity_id=complaint.id,
            user_id=actor.id,
            user_role=actor.role,
            details={"message_id": message.id, "has_attachment": attachment is not None},
        )
        self.commit()
        self.db.refresh(complaint)

        aliases = build_aliases(complaint)
        view = present_message(message, viewer, aliases)
        if self.broker is not None:
            self.broker.publish(complaint.id, "message", {
                "id": message.id,
                "content": message.content,
                "is_from_hr": message.is_from_hr,
                "attachment": view.attachment.model_dump() if view.attachment else None,
                "created_at": message.created_at.isoformat() if message.created_at else None,
                "user_id": message.user_id,
                "hr_alias": aliases.get(message.user_id, "HR Staff"),
            })
        return view

    def set_status(self, actor: User, complaint_id: int, status: ComplaintStatus) -> Complaint:
        require_capability(actor, Capability.MANAGE_COMPLAINTS)
        complaint = self._load(complaint_id)
        previous = complaint.status
        complaint.status = status.value
        AuditService.log(
            self.db,
            action="update_complaint_status",
            entity_type="complaint",
            entity_id=complaint.id,
            user_id=actor.id,
            user_role=actor.role,
            before_state={"status": previous},
            after_state={"status": status},
        )
        self.commit()
        if self.broker is not None:
            self.broker.publish(complaint.id, "status", {"complaint_id": complaint.id, "status": status.value})
        return complaint

    def set_direct_response(self, actor: User, complaint_id: int, response: str) -> Complaint:
        require_capability(actor, Capability.MANAGE_COMPLAINTS)
        complaint = self._load(complaint_id)
        complaint.hr_response = response
        complaint.hr_responded_by = actor.id
        complaint.hr_responded_at = datetime.now(timezone.utc)
        AuditService.log(
            self.db,
            action="respond_complaint",
            entity_type="complaint",
            entity_id=complaint.id,
            user_id=actor.id,
            user_role=actor.role,
        )
        self.commit()
        return complaint
