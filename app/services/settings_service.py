import logging
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.global_settings import GlobalSettings, GLOBAL_SETTINGS_ID
from app.models.user import User
from app.core.capabilities import Capability, require_capability
from app.schemas.settings import GlobalSettingsUpdate
from app.services.audit import AuditService

logger = logging.getLogger(__name__)


def get_settings(db: Session) -> GlobalSettings:
    """Return the singleton settings row, creating it with defaults if missing."""
    row = db.get(GlobalSettings, GLOBAL_SETTINGS_ID)
    if row is not None:
        return row
    row = GlobalSettings(id=GLOBAL_SETTINGS_ID)
    db.add(row)
    try:
        db.flush()
    except IntegrityError:
        # Another request created it first
        db.rollback()
        row = db.get(GlobalSettings, GLOBAL_SETTINGS_ID)
    return row


def update_settings(db: Session, actor: User, data: GlobalSettingsUpdate) -> GlobalSettings:
    require_capability(actor, Capability.MANAGE_SETTINGS)
    row = get_settings(db)
    changes = data.model_dump(exclude_unset=True, exclude_none=True)
    before = {field: getattr(row, field) for field in changes}
    for field, value in changes.items():
        setattr(row, field, value)

    AuditService.log(
        db,
        action="update_settings",
        entity_type="global_settings",
        entity_id=None,
        user_id=actor.id,
        user_role=actor.role,
        details={"fields": sorted(changes)},
        before_state=before,
        after_state=changes,
    )
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(row)
    logger.info(f"Global settings updated by user {actor.id}: {sorted(changes)}")
    return row
