from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import List, Optional

class AnnouncementBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1)
    images: List[str] = Field(default_factory=list)

class AnnouncementCreate(AnnouncementBase):
    pass

class AnnouncementUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    content: Optional[str] = Field(None, min_length=1)
    images: Optional[List[str]] = None
    is_active: Optional[bool] = None

class AnnouncementResponse(AnnouncementBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    order: int
    is_active: bool
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    is_read: bool = False

class AnnouncementReorder(BaseModel):
    ids: List[int] = Field(..., min_length=1)

class UnreadAnnouncements(BaseModel):
    has_unread: bool
    unread_count: int
