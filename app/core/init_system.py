import logging
from app.database import SessionLocal
from app.services import settings_service

logger = logging.getLogger(__name__)

def init_system_data():
    """
    Checks if the system needs initialization.
    Makes sure the global settings row exists so every reader sees the defaults.
    """
    db = SessionLocal()
    try:
        row = settings_service.get_settings(db)
        db.commit()
        logger.info(
            f"System initialization check: settings ready "
            f"(max {row.max_consecutive_leave_days} consecutive leave days, "
            f"{row.work_hours_per_day}h work day)"
        )
    except Exception as e:
        db.rollback()
        logger.error(f"Error during system initialization check: {str(e)}", exc_info=True)
    finally:
        db.close()
