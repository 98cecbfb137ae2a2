# Models package
# Importing modules here ensures they are registered with SQLAlchemy Base
from . import (
    user, employee,
    leave_type, leave_balance, leave_request,
    reservation, complaint, global_settings, audit_log,
    announcement, note
)

# Explicit class exports for cleaner imports
from .user import User, UserRole
from .employee import Employee, EmployeeManagement, Gender
from .leave_type import LeaveTypeConfig
from .leave_balance import EmployeeLeaveBalance
from .leave_request import LeaveRequest, LeaveApproval, LeaveStatus
from .reservation import ResourceReservation, ReservationStatus
from .complaint import Complaint, ComplaintMessage, ComplaintStatus
from .global_settings import GlobalSettings
from .audit_log import AuditLog, ApiLog
from .announcement import Announcement, AnnouncementRead
from .note import Note, NoteFolder

__all__ = [
    "User",
    "UserRole",
    "Employee",
    "EmployeeManagement",
    "Gender",
    "LeaveTypeConfig",
    "EmployeeLeaveBalance",
    "LeaveRequest",
    "LeaveApproval",
    "LeaveStatus",
    "ResourceReservation",
    "ReservationStatus",
    "Complaint",
    "ComplaintMessage",
    "ComplaintStatus",
    "GlobalSettings",
    "AuditLog",
    "ApiLog",
    "Announcement",
    "AnnouncementRead",
    "Note",
    "NoteFolder",
]
