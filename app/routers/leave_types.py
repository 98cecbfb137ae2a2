from typing import List
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.user import User
from app.routers.auth_deps import get_current_user
from app.core.capabilities import Capability, has_capability
from app.schemas.leave_type import LeaveTypeCreate, LeaveTypeReorder, LeaveTypeResponse, LeaveTypeUpdate
from app.services.leave_type_service import LeaveTypeService

router = APIRouter(prefix="/leave-types", tags=["leave-types"])


@router.get("", response_model=List[LeaveTypeResponse])
def list_leave_types(
    include_inactive: bool = False,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Active catalog. Catalog managers may include deactivated types."""
    include_inactive = include_inactive and has_capability(current_user, Capability.MANAGE_LEAVE_TYPES)
    return LeaveTypeService(db).list_types(include_inactive=include_inactive)


@router.post("", response_model=LeaveTypeResponse, status_code=status.HTTP_201_CREATED)
def create_leave_type(
    data: LeaveTypeCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return LeaveTypeService(db).create_type(current_user, data)


@router.post("/seed", response_model=List[LeaveTypeResponse], status_code=status.HTTP_201_CREATED)
def seed_leave_types(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return LeaveTypeService(db).seed_defaults(current_user)


@router.put("/reorder", response_model=List[LeaveTypeResponse])
def reorder_leave_types(
    data: LeaveTypeReorder,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return LeaveTypeService(db).reorder(current_user, data.ids)


@router.get("/{type_id}", response_model=LeaveTypeResponse)
def get_leave_type(
    type_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return LeaveTypeService(db).get_type(type_id)


@router.put("/{type_id}", response_model=LeaveTypeResponse)
def update_leave_type(
    type_id: int,
    data: LeaveTypeUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return LeaveTypeService(db).update_type(current_user, type_id, data)


@router.delete("/{type_id}")
def delete_leave_type(
    type_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    LeaveTypeService(db).delete_type(current_user, type_id)
    return {"success": True, "message": "Leave type deleted"}
