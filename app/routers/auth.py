from fastapi import APIRouter, Depends
from app.models.employee import Employee
from app.models.user import User
from app.routers.auth_deps import get_current_user, get_current_employee
from app.core.capabilities import capabilities_for
from app.schemas.auth import CurrentUserResponse
from app.schemas.employee import EmployeeResponse

router = APIRouter(
    prefix="/auth",
    tags=["auth"]
)

@router.get("/me", response_model=CurrentUserResponse)
def get_me(
    current_user: User = Depends(get_current_user),
    employee: Employee = Depends(get_current_employee),
):
    """The signed-in user, their capabilities and employee profile."""
    return CurrentUserResponse(
        id=current_user.id,
        email=current_user.email,
        name=current_user.name,
        image=current_user.image,
        role=current_user.role,
        is_active=current_user.is_active,
        capabilities=sorted(c.value for c in capabilities_for(current_user.role)),
        employee=EmployeeResponse.from_employee(employee),
    )
