from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import Optional

class NoteFolderCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    color: Optional[str] = None
    icon: Optional[str] = None

class NoteFolderUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    color: Optional[str] = None
    icon: Optional[str] = None

class NoteFolderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    color: Optional[str] = None
    icon: Optional[str] = None
    note_count: int = 0
    created_at: Optional[datetime] = None

class NoteCreate(BaseModel):
    title: str = Field("", max_length=200)
    content: str = ""
    preview: str = Field("", max_length=500)
    is_pinned: bool = False
    color: Optional[str] = None
    folder_id: Optional[int] = None

class NoteUpdate(BaseModel):
    # folder_id may be sent as null to take a note out of its folder
    title: Optional[str] = Field(None, max_length=200)
    content: Optional[str] = None
    preview: Optional[str] = Field(None, max_length=500)
    is_pinned: Optional[bool] = None
    color: Optional[str] = None
    folder_id: Optional[int] = None

class NoteFolderSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    color: Optional[str] = None

class NoteResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    content: str
    preview: str
    is_pinned: bool
    color: Optional[str] = None
    folder_id: Optional[int] = None
    folder: Optional[NoteFolderSummary] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
