from sqlalchemy import Column, Integer, String, Float, Boolean, Text, DateTime, Enum as SQLEnum
from sqlalchemy.sql import func
from app.database import Base
from app.models.employee import Gender

class LeaveTypeConfig(Base):
    __tablename__ = "leave_type_configs"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    code = Column(String, unique=True, index=True, nullable=False)  # e.g. "ANNUAL", "SICK"
    description = Column(Text, nullable=True)

    default_balance = Column(Float, default=0.0, nullable=False)
    is_unlimited = Column(Boolean, default=False, nullable=False)
    is_paid = Column(Boolean, default=True, nullable=False)
    allow_half_day = Column(Boolean, default=True, nullable=False)
    allow_carryover = Column(Boolean, default=False, nullable=False)
    carryover_max = Column(Float, default=0.0, nullable=False)
    requires_approval = Column(Boolean, default=True, nullable=False)

    # Eligibility gates (null = no restriction)
    allowed_gender = Column(SQLEnum(Gender), nullable=True)
    required_work_days = Column(Integer, nullable=True)

    color = Column(String, nullable=True)
    icon = Column(String, nullable=True)
    order = Column(Integer, default=0, nullable=False)

    is_active = Column(Boolean, default=True, nullable=False)
    is_deleted = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
