from pydantic import BaseModel, Field
from datetime import datetime
from typing import List, Optional
from app.models.complaint import ComplaintStatus

class ComplaintCreate(BaseModel):
    subject: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1, max_length=5000)
    is_anonymous: bool = True

class Attachment(BaseModel):
    url: str
    name: str
    type: Optional[str] = None
    size: Optional[int] = Field(None, ge=0)

class ComplaintMessageCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=5000)
    attachment: Optional[Attachment] = None

class ComplaintStatusUpdate(BaseModel):
    status: ComplaintStatus

class ComplaintDirectResponse(BaseModel):
    hr_response: str = Field(..., min_length=1, max_length=5000)

class PersonView(BaseModel):
    """How a participant is shown to the current reader."""
    name: str
    email: Optional[str] = None
    image: Optional[str] = None

class ComplaintMessageView(BaseModel):
    id: int
    content: str
    is_from_hr: bool
    is_self: bool
    sender_name: str
    attachment: Optional[Attachment] = None
    created_at: Optional[datetime] = None

class ComplaintSummary(BaseModel):
    id: int
    subject: str
    status: ComplaintStatus
    is_anonymous: bool
    is_owner: bool
    employee: PersonView
    message_count: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class ComplaintView(ComplaintSummary):
    description: str
    hr_response: Optional[str] = None
    hr_responded_at: Optional[datetime] = None
    hr_responder_name: Optional[str] = None
    messages: List[ComplaintMessageView] = []
