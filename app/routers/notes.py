from typing import List, Optional
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.user import User
from app.routers.auth_deps import get_current_user
from app.schemas.note import (
    NoteCreate, NoteFolderCreate, NoteFolderResponse, NoteFolderUpdate, NoteResponse, NoteUpdate,
)
from app.services.note_service import NoteService

router = APIRouter(prefix="/notes", tags=["notes"])


# Folder routes are declared first so "/folders" is not read as a note id
@router.get("/folders", response_model=List[NoteFolderResponse])
def list_folders(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return NoteService(db).list_folders(current_user)


@router.post("/folders", response_model=NoteFolderResponse, status_code=status.HTTP_201_CREATED)
def create_folder(
    data: NoteFolderCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return NoteService(db).create_folder(current_user, data)


@router.put("/folders/{folder_id}", response_model=NoteFolderResponse)
def update_folder(
    folder_id: int,
    data: NoteFolderUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return NoteService(db).update_folder(current_user, folder_id, data)


@router.delete("/folders/{folder_id}")
def delete_folder(
    folder_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    NoteService(db).delete_folder(current_user, folder_id)
    return {"success": True, "message": "Folder deleted"}


@router.get("", response_model=List[NoteResponse])
def list_notes(
    folder_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return NoteService(db).list_notes(current_user, folder_id)


@router.post("", response_model=NoteResponse, status_code=status.HTTP_201_CREATED)
def create_note(
    data: NoteCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return NoteService(db).create_note(current_user, data)


@router.get("/{note_id}", response_model=NoteResponse)
def get_note(
    note_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return NoteService(db).get_note(current_user, note_id)


@router.put("/{note_id}", response_model=NoteResponse)
def update_note(
    note_id: int,
    data: NoteUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return NoteService(db).update_note(current_user, note_id, data)


@router.delete("/{note_id}")
def delete_note(
    note_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    NoteService(db).delete_note(current_user, note_id)
    return {"success": True, "message": "Note deleted"}
