"""
User Model.
Local mirror of an SSO account; the identity provider owns credentials.
"""
from sqlalchemy import Column, Integer, String, Enum, DateTime, Boolean
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum
from app.database import Base


class UserRole(str, enum.Enum):
    """
    Portal roles.

    - DEVELOPER: Everything, including audit and API logs
    - ADMIN: Everything except audit logs
    - HR: Employee records, leave catalog, complaints, settings
    - MANAGEMENT: Team lead (approvals for direct reports, reservations)
    - EMPLOYEE: Self-service access
    """
    EMPLOYEE = "EMPLOYEE"
    HR = "HR"
    MANAGEMENT = "MANAGEMENT"
    ADMIN = "ADMIN"
    DEVELOPER = "DEVELOPER"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    sso_subject = Column(String, unique=True, index=True, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=True)
    image = Column(String, nullable=True)

    role = Column(Enum(UserRole), default=UserRole.EMPLOYEE, nullable=False)

    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    employee_profile = relationship("Employee", back_populates="user", uselist=False)

    def __repr__(self):
        return f"<User {self.email} ({self.role.value})>"

    @property
    def display_name(self) -> str:
        return self.name or self.email
