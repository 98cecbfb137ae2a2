import logging
from typing import Optional
from sqlalchemy.orm import Session


class BaseService:
    """
    Common plumbing for service classes: the request-scoped DB session and a
    module-named logger.
    """

    def __init__(self, db: Session, actor_id: Optional[int] = None):
        self.db = db
        self.actor_id = actor_id
        self._logger = logging.getLogger(self.__class__.__module__)

    def log_info(self, message: str, **extra):
        self._logger.info(message, extra=extra or None)

    def log_warning(self, message: str, **extra):
        self._logger.warning(message, extra=extra or None)

    def log_error(self, message: str, exc_info: bool = False, **extra):
        self._logger.error(message, exc_info=exc_info, extra=extra or None)

    def commit(self):
        """Commit the unit of work, rolling back on failure."""
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
