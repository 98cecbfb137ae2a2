from sqlalchemy import Column, Integer, String, Date, Boolean, ForeignKey, DateTime, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base
import enum

class LeaveStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"

class HalfDayType(str, enum.Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"

# Statuses that hold a slot on the calendar
ACTIVE_LEAVE_STATUSES = (LeaveStatus.PENDING.value, LeaveStatus.APPROVED.value)

class LeaveRequest(Base):
    __tablename__ = "leave_requests"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)
    leave_type_id = Column(Integer, ForeignKey("leave_type_configs.id"), nullable=False, index=True)
    reason = Column(Text, nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    is_half_day = Column(Boolean, default=False, nullable=False)
    half_day_type = Column(String, nullable=True)
    status = Column(String, default=LeaveStatus.PENDING.value, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    employee = relationship("Employee")
    leave_type = relationship("LeaveTypeConfig")
    approvals = relationship(
        "LeaveApproval",
        back_populates="leave_request",
        order_by="LeaveApproval.id",
        cascade="all, delete-orphan",
    )

    @property
    def days_count(self) -> float:
        """Days charged against the balance: 0.5 for half days, inclusive span otherwise."""
        if self.is_half_day:
            return 0.5
        return float((self.end_date - self.start_date).days + 1)

class LeaveApproval(Base):
    __tablename__ = "leave_approvals"

    id = Column(Integer, primary_key=True, index=True)
    leave_request_id = Column(Integer, ForeignKey("leave_requests.id", ondelete="CASCADE"), nullable=False, index=True)
    approver_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    approved = Column(Boolean, nullable=True)  # None = not decided yet
    comment = Column(String, nullable=True)
    responded_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    leave_request = relationship("LeaveRequest", back_populates="approvals")
    approver = relationship("Employee")
