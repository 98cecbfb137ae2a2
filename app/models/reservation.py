from sqlalchemy import Column, Integer, String, Float, Date, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base
import enum

class ReservationStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"

# Statuses that consume daily capacity
BOOKED_RESERVATION_STATUSES = (ReservationStatus.PENDING.value, ReservationStatus.APPROVED.value)

class ResourceReservation(Base):
    __tablename__ = "resource_reservations"

    id = Column(Integer, primary_key=True, index=True)
    resource_employee_id = Column(Integer, ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)
    # Manager of the resource at creation time; approves the booking
    resource_owner_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    requester_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)

    date = Column(Date, nullable=False, index=True)
    hours = Column(Float, nullable=False)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)

    status = Column(String, default=ReservationStatus.PENDING.value, nullable=False, index=True)
    comment = Column(String, nullable=True)
    responded_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    resource_employee = relationship("Employee", foreign_keys=[resource_employee_id])
    resource_owner = relationship("Employee", foreign_keys=[resource_owner_id])
    requester = relationship("Employee", foreign_keys=[requester_id])
