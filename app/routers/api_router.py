from fastapi import APIRouter
from app.routers import (
    auth, employees, leave_types, leave_balances, leaves,
    reservations, complaints, settings, audit,
    announcements, notes
)

# Centralized API router hub
# Routers are aggregated here, and main.py only imports this single hub.
api_router = APIRouter()

api_router.include_router(auth.router, tags=["Authentication"])
api_router.include_router(employees.router, tags=["Employees"])
api_router.include_router(leave_types.router, tags=["Leave Types"])
api_router.include_router(leave_balances.router, tags=["Leave Balances"])
api_router.include_router(leaves.router, tags=["Leave"])
api_router.include_router(reservations.router, tags=["Reservations"])
api_router.include_router(complaints.router, tags=["Complaints"])
api_router.include_router(settings.router, tags=["Settings"])
api_router.include_router(audit.router, tags=["Audit"])
api_router.include_router(announcements.router, tags=["Announcements"])
api_router.include_router(notes.router, tags=["Notes"])
