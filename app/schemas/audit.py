from pydantic import BaseModel, ConfigDict
from datetime import datetime
from typing import Any, Optional

class AuditLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    action: str
    entity_type: str
    entity_id: Optional[int] = None
    user_id: Optional[int] = None
    user_role: Optional[str] = None
    details: Optional[Any] = None
    before_state: Optional[Any] = None
    after_state: Optional[Any] = None
    timestamp: Optional[datetime] = None

class ApiLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: Optional[int] = None
    method: str
    path: str
    query: Optional[Any] = None
    headers: Optional[Any] = None
    status_code: int
    response_time_ms: int
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    is_error: bool
    timestamp: Optional[datetime] = None
