"""
Activity Log Service
Writes audit entries for staffing changes

Audit writes are best-effort: they run after the primary change has been
committed, and a failure is logged and rolled back without reaching the
caller.
"""
import json
import logging
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


def _to_json(values: Any) -> Optional[str]:
    if values is None:
        return None
    return json.dumps(values, default=str, ensure_ascii=False)


class ActivityLogService:
    """Persists ActivityLog rows"""

    def __init__(self, db_session: Session, models: dict):
        self.db = db_session
        self.ActivityLog = models['ActivityLog']

    def log(self, user_id: Optional[str], action: str, entity_type: str,
            entity_id: Optional[str] = None, description: Optional[str] = None,
            old_values: Any = None, new_values: Any = None,
            status: str = 'success', ip_address: Optional[str] = None) -> bool:
        """
        Record one audited action.

        Returns:
            True if the entry was stored, False if storing it failed
        """
        try:
            entry = self.ActivityLog(
                user_id=user_id,
                action=action,
                entity_type=entity_type,
                entity_id=entity_id,
                description=description,
                old_values=_to_json(old_values),
                new_values=_to_json(new_values),
                status=status,
                ip_address=ip_address,
            )
            self.db.add(entry)
            self.db.commit()
            return True
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to write activity log {action} {entity_type}:{entity_id}: {e}")
            return False

    def for_entity(self, entity_type: str, entity_id: str):
        """Audit entries for one entity, newest first"""
        return (
            self.db.query(self.ActivityLog)
            .filter_by(entity_type=entity_type, entity_id=entity_id)
            .order_by(self.ActivityLog.created_at.desc())
            .all()
        )
