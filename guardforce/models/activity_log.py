"""
Activity log model
Audit trail of staffing changes (who changed which assignment, and how)
"""
import json
import uuid
from datetime import datetime


def create_activity_log_model(db):
    """Factory function to create ActivityLog model with db instance"""

    class ActivityLog(db.Model):
        """
        One audited action

        old_values/new_values hold JSON snapshots of the fields that changed.
        """
        __tablename__ = 'activity_logs'

        STATUS_SUCCESS = 'success'
        STATUS_FAILURE = 'failure'
        STATUS_WARNING = 'warning'

        id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
        user_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=True, index=True)
        action = db.Column(db.String(100), nullable=False, index=True)
        entity_type = db.Column(db.String(50), nullable=False)
        entity_id = db.Column(db.String(36), nullable=True)
        description = db.Column(db.Text, nullable=True)
        old_values = db.Column(db.Text, nullable=True)
        new_values = db.Column(db.Text, nullable=True)
        ip_address = db.Column(db.String(45), nullable=True)
        status = db.Column(db.String(20), nullable=False, default=STATUS_SUCCESS)
        created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, index=True)

        __table_args__ = (
            db.Index('idx_activity_entity', 'entity_type', 'entity_id'),
        )

        def get_old_values(self):
            return json.loads(self.old_values) if self.old_values else None

        def get_new_values(self):
            return json.loads(self.new_values) if self.new_values else None

        def to_dict(self):
            return {
                'id': self.id,
                'user_id': self.user_id,
                'action': self.action,
                'entity_type': self.entity_type,
                'entity_id': self.entity_id,
                'description': self.description,
                'old_values': self.get_old_values(),
                'new_values': self.get_new_values(),
                'status': self.status,
                'created_at': self.created_at.isoformat() if self.created_at else None,
            }

        def __repr__(self):
            return f'<ActivityLog {self.action} {self.entity_type}:{self.entity_id}>'

    return ActivityLog
