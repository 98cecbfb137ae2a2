from app.services.base import BaseService
from app.models.audit_log import AuditLog
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional


def _sanitize(obj: Any) -> Any:
    # JSON columns only take plain data
    if hasattr(obj, "model_dump"):
        return _sanitize(obj.model_dump())
    if isinstance(obj, dict):
        return {k: _sanitize(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_sanitize(i) for i in obj]
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (date, datetime)):
        return obj.isoformat()
    return obj


class AuditService(BaseService):
    def log_action(
        self,
        action: str,
        entity_type: str,
        entity_id: Optional[int],
        user_id: Optional[int],
        user_role: Optional[str],
        details: Optional[dict] = None,
        before_state: Optional[dict] = None,
        after_state: Optional[dict] = None
    ):
        """
        Append an audit entry to the current unit of work.

        The entry is flushed, not committed, so it lands together with the
        action it describes. It is written inside a savepoint: a failed
        entry is rolled back on its own and the caller's unit of work stays
        usable. Failures are logged and never propagate.
        """
        # Pending work of the caller is flushed first so its errors surface as its own
        self.db.flush()
        try:
            db_log = AuditLog(
                action=action,
                entity_type=entity_type,
                entity_id=entity_id,
                user_id=user_id,
                user_role=user_role.value if isinstance(user_role, Enum) else user_role,
                details=_sanitize(details),
                before_state=_sanitize(before_state),
                after_state=_sanitize(after_state)
            )
            with self.db.begin_nested():
                self.db.add(db_log)
            return db_log
        except Exception as e:
            self._logger.error(f"FAILED TO AUDIT LOG: {e}", exc_info=True)
            return None

    # Static wrapper used by routers and services
    @staticmethod
    def log(db, *args, **kwargs):
        service = AuditService(db)
        return service.log_action(*args, **kwargs)
