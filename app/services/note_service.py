"""
Personal notes. Every query is scoped to the calling user; another user's note
or folder is reported as missing rather than forbidden.
"""
from typing import List, Optional
from sqlalchemy import func

from app.services.base import BaseService
from app.models.note import Note, NoteFolder
from app.models.user import User
from app.core.exceptions import NotFoundError
from app.schemas.note import NoteCreate, NoteFolderCreate, NoteFolderResponse, NoteFolderUpdate, NoteUpdate

# Columns that cannot be cleared
REQUIRED_NOTE_FIELDS = ("title", "content", "preview", "is_pinned")


class NoteService(BaseService):

    def _get_folder(self, user: User, folder_id: int) -> NoteFolder:
        folder = (
            self.db.query(NoteFolder)
            .filter(NoteFolder.id == folder_id, NoteFolder.user_id == user.id)
            .first()
        )
        if not folder:
            raise NotFoundError("Folder not found")
        return folder

    def get_note(self, user: User, note_id: int) -> Note:
        note = self.db.query(Note).filter(Note.id == note_id, Note.user_id == user.id).first()
        if not note:
            raise NotFoundError("Note not found")
        return note

    def list_notes(self, user: User, folder_id: Optional[int] = None) -> List[Note]:
        """Pinned first, then most recently edited."""
        query = self.db.query(Note).filter(Note.user_id == user.id)
        if folder_id is not None:
            query = query.filter(Note.folder_id == folder_id)
        return query.order_by(Note.is_pinned.desc(), Note.updated_at.desc(), Note.id.desc()).all()

    def create_note(self, user: User, data: NoteCreate) -> Note:
        if data.folder_id is not None:
            self._get_folder(user, data.folder_id)
        note = Note(user_id=user.id, **data.model_dump())
        self.db.add(note)
        self.commit()
        self.db.refresh(note)
        return note

    def update_note(self, user: User, note_id: int, data: NoteUpdate) -> Note:
        note = self.get_note(user, note_id)
        changes = data.model_dump(exclude_unset=True)
        for field in REQUIRED_NOTE_FIELDS:
            if field in changes and changes[field] is None:
                del changes[field]
        if changes.get("folder_id") is not None:
            self._get_folder(user, changes["folder_id"])
        for field, value in changes.items():
            setattr(note, field, value)
        self.commit()
        self.db.refresh(note)
        return note

    def delete_note(self, user: User, note_id: int) -> None:
        note = self.get_note(user, note_id)
        self.db.delete(note)
        self.commit()

    def list_folders(self, user: User) -> List[NoteFolderResponse]:
        counts = dict(
            self.db.query(Note.folder_id, func.count(Note.id))
            .filter(Note.user_id == user.id, Note.folder_id.isnot(None))
            .group_by(Note.folder_id)
            .all()
        )
        folders = self.db.query(NoteFolder).filter(NoteFolder.user_id == user.id).order_by(NoteFolder.name, NoteFolder.id).all()
        return [
            NoteFolderResponse.model_validate(f).model_copy(update={"note_count": counts.get(f.id, 0)})
            for f in folders
        ]

    def create_folder(self, user: User, data: NoteFolderCreate) -> NoteFolder:
        folder = NoteFolder(user_id=user.id, **data.model_dump())
        self.db.add(folder)
        self.commit()
        self.db.refresh(folder)
        return folder

    def update_folder(self, user: User, folder_id: int, data: NoteFolderUpdate) -> NoteFolder:
        folder = self._get_folder(user, folder_id)
        changes = data.model_dump(exclude_unset=True)
        if changes.get("name", "") is None:
            del changes["name"]
        for field, value in changes.items():
            setattr(folder, field, value)
        self.commit()
        self.db.refresh(folder)
        return folder

    def delete_folder(self, user: User, folder_id: int) -> int:
        """Delete a folder. Its notes are kept and become unfiled. Returns how many were moved."""
        folder = self._get_folder(user, folder_id)
        moved = (
            self.db.query(Note)
            .filter(Note.folder_id == folder.id)
            .update({Note.folder_id: None}, synchronize_session=False)
        )
        self.db.delete(folder)
        self.commit()
        self.log_info(f"Folder {folder_id} deleted, {moved} note(s) unfiled")
        return moved
