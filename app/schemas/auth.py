from pydantic import BaseModel, ConfigDict
from typing import List, Optional
from app.models.user import UserRole
from app.schemas.employee import EmployeeResponse

class TokenData(BaseModel):
    """Claims we rely on from an SSO access token."""
    sub: str
    email: Optional[str] = None
    name: Optional[str] = None
    picture: Optional[str] = None

class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    name: Optional[str] = None
    image: Optional[str] = None
    role: UserRole
    is_active: bool

class CurrentUserResponse(UserResponse):
    capabilities: List[str] = []
    employee: Optional[EmployeeResponse] = None
