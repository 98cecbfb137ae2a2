from sqlalchemy import Column, Integer, String, Float, Boolean, DateTime
from sqlalchemy.sql import func
from app.database import Base

GLOBAL_SETTINGS_ID = "global"

class GlobalSettings(Base):
    """Singleton configuration row (id is always 'global')."""
    __tablename__ = "global_settings"

    id = Column(String, primary_key=True, default=GLOBAL_SETTINGS_ID)
    max_consecutive_leave_days = Column(Integer, default=14, nullable=False)
    max_annual_leave_days = Column(Float, default=21, nullable=False)
    max_sick_leave_days = Column(Float, default=10, nullable=False)
    max_personal_leave_days = Column(Float, default=5, nullable=False)
    max_birthday_leave_days = Column(Float, default=1, nullable=False)
    annual_leave_carryover_max = Column(Float, default=3, nullable=False)
    fiscal_year_start_month = Column(Integer, default=1, nullable=False)
    work_hours_per_day = Column(Float, default=8, nullable=False)
    complaint_chat_enabled = Column(Boolean, default=True, nullable=False)
    reservation_requires_approval = Column(Boolean, default=True, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
