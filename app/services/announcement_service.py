from typing import Dict, List

from app.services.base import BaseService
from app.services.audit import AuditService
from app.models.announcement import Announcement, AnnouncementRead
from app.models.user import User
from app.core.capabilities import Capability, has_capability, require_capability
from app.core.exceptions import NotFoundError
from app.schemas.announcement import AnnouncementCreate, AnnouncementResponse, AnnouncementUpdate, UnreadAnnouncements

HR_REQUIRED = "Forbidden: HR role required"

# Edits to these fields make an announcement unread again
CONTENT_FIELDS = ("title", "content", "images")


class AnnouncementService(BaseService):

    def _get(self, announcement_id: int) -> Announcement:
        announcement = self.db.query(Announcement).filter(Announcement.id == announcement_id).first()
        if not announcement:
            raise NotFoundError("Announcement not found")
        return announcement

    def _read_marks(self, user: User, ids: List[int]) -> Dict[int, AnnouncementRead]:
        if not ids:
            return {}
        marks = (
            self.db.query(AnnouncementRead)
            .filter(AnnouncementRead.user_id == user.id, AnnouncementRead.announcement_id.in_(ids))
            .all()
        )
        return {m.announcement_id: m for m in marks}

    @staticmethod
    def _is_read(announcement: Announcement, mark) -> bool:
        return mark is not None and mark.revision >= announcement.revision

    def _mark(self, user: User, announcement: Announcement, existing=None) -> None:
        mark = existing
        if mark is None:
            mark = (
                self.db.query(AnnouncementRead)
                .filter(AnnouncementRead.announcement_id == announcement.id, AnnouncementRead.user_id == user.id)
                .first()
            )
        if mark is None:
            self.db.add(AnnouncementRead(announcement_id=announcement.id, user_id=user.id, revision=announcement.revision))
        else:
            mark.revision = announcement.revision

    def _present(self, announcement: Announcement, is_read: bool) -> AnnouncementResponse:
        return AnnouncementResponse.model_validate(announcement).model_copy(update={"is_read": is_read})

    def list_for(self, user: User) -> List[AnnouncementResponse]:
        """Active announcements for everyone; announcement managers also see inactive ones."""
        query = self.db.query(Announcement)
        if not has_capability(user, Capability.MANAGE_ANNOUNCEMENTS):
            query = query.filter(Announcement.is_active.is_(True))
        announcements = query.order_by(
            Announcement.order.asc(), Announcement.created_at.desc(), Announcement.id.desc()
        ).all()
        marks = self._read_marks(user, [a.id for a in announcements])
        return [self._present(a, self._is_read(a, marks.get(a.id))) for a in announcements]

    def unread_summary(self, user: User) -> UnreadAnnouncements:
        announcements = self.db.query(Announcement).filter(Announcement.is_active.is_(True)).all()
        marks = self._read_marks(user, [a.id for a in announcements])
        unread = sum(1 for a in announcements if not self._is_read(a, marks.get(a.id)))
        return UnreadAnnouncements(has_unread=unread > 0, unread_count=unread)

    def mark_read(self, user: User, announcement_id: int) -> None:
        announcement = self._get(announcement_id)
        self._mark(user, announcement)
        self.commit()

    def mark_all_read(self, user: User) -> int:
        announcements = self.db.query(Announcement).filter(Announcement.is_active.is_(True)).all()
        marks = self._read_marks(user, [a.id for a in announcements])
        for announcement in announcements:
            self._mark(user, announcement, marks.get(announcement.id))
        self.commit()
        return len(announcements)

    def create(self, actor: User, data: AnnouncementCreate) -> AnnouncementResponse:
        require_capability(actor, Capability.MANAGE_ANNOUNCEMENTS, HR_REQUIRED)
        # New announcements go on top
        self.db.query(Announcement).update(
            {Announcement.order: Announcement.order + 1}, synchronize_session=False
        )
        announcement = Announcement(
            title=data.title,
            content=data.content,
            images=list(data.images),
            order=0,
            revision=1,
            created_by=actor.id,
        )
        self.db.add(announcement)
        self.db.flush()
        self._mark(actor, announcement)

        AuditService.log(
            self.db,
            action="create_announcement",
            entity_type="announcement",
            entity_id=announcement.id,
            user_id=actor.id,
            user_role=actor.role,
            after_state={"title": data.title},
        )
        self.commit()
        self.db.refresh(announcement)
        self.log_info(f"Announcement {announcement.id} created")
        return self._present(announcement, True)

    def update(self, actor: User, announcement_id: int, data: AnnouncementUpdate) -> AnnouncementResponse:
        require_capability(actor, Capability.MANAGE_ANNOUNCEMENTS, HR_REQUIRED)
        announcement = self._get(announcement_id)
        changes = data.model_dump(exclude_unset=True)
        # Null means "leave as is" for the required columns
        changes = {k: v for k, v in changes.items() if v is not None}

        before = {field: getattr(announcement, field) for field in changes}
        content_changed = any(
            field in changes and changes[field] != before[field] for field in CONTENT_FIELDS
        )
        for field, value in changes.items():
            setattr(announcement, field, value)
        if content_changed:
            announcement.revision = (announcement.revision or 1) + 1
            self._mark(actor, announcement)

        AuditService.log(
            self.db,
            action="update_announcement",
            entity_type="announcement",
            entity_id=announcement.id,
            user_id=actor.id,
            user_role=actor.role,
            before_state=before,
            after_state=changes,
        )
        self.commit()
        self.db.refresh(announcement)
        mark = self._read_marks(actor, [announcement.id]).get(announcement.id)
        return self._present(announcement, self._is_read(announcement, mark))

    def delete(self, actor: User, announcement_id: int) -> None:
        require_capability(actor, Capability.MANAGE_ANNOUNCEMENTS, HR_REQUIRED)
        announcement = self._get(announcement_id)
        title = announcement.title
        # Read marks go with it through the relationship cascade
        self.db.delete(announcement)
        AuditService.log(
            self.db,
            action="delete_announcement",
            entity_type="announcement",
            entity_id=announcement_id,
            user_id=actor.id,
            user_role=actor.role,
            details={"title": title},
        )
        self.commit()
        self.log_info(f"Announcement {announcement_id} deleted")

    def reorder(self, actor: User, ids: List[int]) -> List[AnnouncementResponse]:
        require_capability(actor, Capability.MANAGE_ANNOUNCEMENTS, HR_REQUIRED)
        rows = {a.id: a for a in self.db.query(Announcement).filter(Announcement.id.in_(ids)).all()}
        missing = [i for i in ids if i not in rows]
        if missing:
            raise NotFoundError(f"Announcement(s) not found: {missing}")
        for index, announcement_id in enumerate(ids):
            rows[announcement_id].order = index
        AuditService.log(
            self.db,
            action="reorder_announcements",
            entity_type="announcement",
            entity_id=None,
            user_id=actor.id,
            user_role=actor.role,
            details={"ids": ids},
        )
        self.commit()
        return self.list_for(actor)
