from typing import List
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.user import User
from app.routers.auth_deps import get_current_user
from app.schemas.announcement import (
    AnnouncementCreate, AnnouncementReorder, AnnouncementResponse, AnnouncementUpdate, UnreadAnnouncements,
)
from app.services.announcement_service import AnnouncementService

router = APIRouter(prefix="/announcements", tags=["announcements"])


@router.get("", response_model=List[AnnouncementResponse])
def list_announcements(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Announcements with the caller's read state. HR also sees inactive ones."""
    return AnnouncementService(db).list_for(current_user)


@router.get("/unread", response_model=UnreadAnnouncements)
def unread_announcements(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return AnnouncementService(db).unread_summary(current_user)


@router.post("/read-all")
def mark_all_read(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    AnnouncementService(db).mark_all_read(current_user)
    return {"success": True}


@router.post("", response_model=AnnouncementResponse, status_code=status.HTTP_201_CREATED)
def create_announcement(
    data: AnnouncementCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return AnnouncementService(db).create(current_user, data)


@router.put("/reorder", response_model=List[AnnouncementResponse])
def reorder_announcements(
    data: AnnouncementReorder,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return AnnouncementService(db).reorder(current_user, data.ids)


@router.post("/{announcement_id}/read")
def mark_read(
    announcement_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    AnnouncementService(db).mark_read(current_user, announcement_id)
    return {"success": True}


@router.put("/{announcement_id}", response_model=AnnouncementResponse)
def update_announcement(
    announcement_id: int,
    data: AnnouncementUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return AnnouncementService(db).update(current_user, announcement_id, data)


@router.delete("/{announcement_id}")
def delete_announcement(
    announcement_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    AnnouncementService(db).delete(current_user, announcement_id)
    return {"success": True, "message": "Announcement deleted"}
