"""
Employee profile and manager links.
"""
from sqlalchemy import Column, Integer, String, Date, DateTime, Enum as SQLEnum, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum
from app.database import Base


class Gender(str, enum.Enum):
    MALE = "MALE"
    FEMALE = "FEMALE"
    OTHER = "OTHER"


class Employee(Base):
    __tablename__ = "employees"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    # Derived from the primary key right after insert, see EmployeeService
    employee_code = Column(String, unique=True, index=True, nullable=True)

    full_name = Column(String, nullable=True)
    gender = Column(SQLEnum(Gender), nullable=True)
    start_work_date = Column(Date, nullable=True)
    department = Column(String, nullable=True)
    position = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    avatar = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    user = relationship("User", back_populates="employee_profile")

    # Links where this employee is the managed party, oldest first
    management_leads = relationship(
        "EmployeeManagement",
        foreign_keys="EmployeeManagement.employee_id",
        back_populates="employee",
        order_by="EmployeeManagement.id",
        cascade="all, delete-orphan",
    )
    # Links where this employee is the manager
    managed_links = relationship(
        "EmployeeManagement",
        foreign_keys="EmployeeManagement.manager_id",
        back_populates="manager",
    )

    def __repr__(self):
        return f"<Employee {self.employee_code}>"

    @property
    def managers(self):
        return [link.manager for link in self.management_leads]

    @property
    def display_name(self) -> str:
        if self.full_name:
            return self.full_name
        if self.user is not None:
            return self.user.display_name
        return self.employee_code or f"Employee {self.id}"


class EmployeeManagement(Base):
    __tablename__ = "employee_management"
    __table_args__ = (UniqueConstraint("employee_id", "manager_id", name="uq_employee_manager"),)

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)
    manager_id = Column(Integer, ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    employee = relationship("Employee", foreign_keys=[employee_id], back_populates="management_leads")
    manager = relationship("Employee", foreign_keys=[manager_id], back_populates="managed_links")
