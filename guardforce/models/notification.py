"""
Notification model
In-app inbox entries sent to agents and supervisors
"""
import uuid
from datetime import datetime


def create_notification_model(db):
    """Factory function to create Notification model with db instance"""

    class Notification(db.Model):
        """In-app notification addressed to one user"""
        __tablename__ = 'notifications'

        TYPE_ASSIGNMENT = 'assignment'
        TYPE_ASSIGNMENT_CONFIRMED = 'assignment_confirmed'
        TYPE_SCHEDULE_CHANGE = 'schedule_change'
        TYPE_GENERAL = 'general'

        id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
        user_id = db.Column(
            db.String(36),
            db.ForeignKey('users.id', ondelete='CASCADE'),
            nullable=False,
            index=True
        )
        type = db.Column(db.String(30), nullable=False, default=TYPE_GENERAL)
        title = db.Column(db.String(255), nullable=False)
        message = db.Column(db.Text, nullable=False)
        channel = db.Column(db.String(20), nullable=False, default='in_app')
        event_id = db.Column(db.String(36), db.ForeignKey('events.id', ondelete='SET NULL'), nullable=True)
        assignment_id = db.Column(db.String(36), db.ForeignKey('assignments.id', ondelete='SET NULL'), nullable=True)
        is_read = db.Column(db.Boolean, nullable=False, default=False)
        read_at = db.Column(db.DateTime, nullable=True)
        created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

        __table_args__ = (
            db.Index('idx_notifications_user_unread', 'user_id', 'is_read'),
        )

        def mark_read(self):
            self.is_read = True
            self.read_at = datetime.utcnow()

        def to_dict(self):
            return {
                'id': self.id,
                'user_id': self.user_id,
                'type': self.type,
                'title': self.title,
                'message': self.message,
                'channel': self.channel,
                'event_id': self.event_id,
                'assignment_id': self.assignment_id,
                'is_read': self.is_read,
                'created_at': self.created_at.isoformat() if self.created_at else None,
            }

        def __repr__(self):
            return f'<Notification {self.type} -> {self.user_id}>'

    return Notification
