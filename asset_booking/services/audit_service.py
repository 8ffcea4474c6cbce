from __future__ import annotations

from sqlalchemy.orm import Session

from asset_booking.models.booking_models import AuditLog
from asset_booking.services.booking_filters import utc_now


def log_audit(
    db: Session,
    entity_type: str,
    entity_id: str,
    action: str,
    details: str | None = None,
    user_id: str | None = None,
) -> None:
    db.add(
        AuditLog(
            EntityType=entity_type,
            EntityID=entity_id,
            Action=action,
            Details=details,
            UserID=user_id,
            CreatedAt=utc_now(),
        )
    )
