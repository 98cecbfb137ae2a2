import sys
import os
import logging
from sqlalchemy.orm import Session

# Ensure we can import app modules
sys.path.append(os.getcwd())

from app.database import SessionLocal, init_db
from app.models.user import User, UserRole
from app.services.audit import AuditService
from app.services.employee_service import EmployeeService

# Configure logging
logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
logger = logging.getLogger(__name__)

USAGE = "Usage: python scripts/set_role.py <email> <EMPLOYEE|HR|MANAGEMENT|ADMIN|DEVELOPER>"


def set_role(email: str, role: UserRole) -> bool:
    """
    Bootstrap helper for granting the first Admin or Developer.

    The user must have signed in through SSO at least once so their
    account exists locally.
    """
    db: Session = SessionLocal()
    try:
        user = db.query(User).filter(User.email == email).first()
        if not user:
            logger.warning(f"No user with email '{email}'. Sign in once through SSO first.")
            return False

        previous = user.role
        user.role = role
        EmployeeService(db).resolve_or_create(user)
        AuditService.log(
            db,
            action="change_role",
            entity_type="user",
            entity_id=user.id,
            user_id=None,
            user_role=None,
            details={"source": "cli"},
            before_state={"role": previous},
            after_state={"role": role},
        )
        db.commit()
        logger.info(f"Role for '{email}' changed from {previous.value} to {role.value}.")
        return True

    except Exception as e:
        logger.error(f"Error changing role: {e}")
        db.rollback()
        return False
    finally:
        db.close()


if __name__ == "__main__":
    if len(sys.argv) != 3:
        print(USAGE)
        sys.exit(1)
    try:
        target_role = UserRole(sys.argv[2].upper())
    except ValueError:
        print(USAGE)
        sys.exit(1)
    init_db()
    sys.exit(0 if set_role(sys.argv[1], target_role) else 1)
