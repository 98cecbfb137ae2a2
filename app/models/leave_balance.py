from sqlalchemy import Column, Integer, Float, String, ForeignKey, DateTime, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base

class EmployeeLeaveBalance(Base):
    """HR override of an employee's entitlement for one leave type and year."""
    __tablename__ = "employee_leave_balances"
    __table_args__ = (
        UniqueConstraint("employee_id", "leave_type_id", "year", name="uq_balance_employee_type_year"),
    )

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)
    leave_type_id = Column(Integer, ForeignKey("leave_type_configs.id"), nullable=False, index=True)
    year = Column(Integer, nullable=False)

    balance = Column(Float, nullable=False)
    carried_over = Column(Float, default=0.0, nullable=False)
    adjustment = Column(Float, default=0.0, nullable=False)  # may be negative
    notes = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    employee = relationship("Employee")
    leave_type = relationship("LeaveTypeConfig")
