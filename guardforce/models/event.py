"""
Event model and related database schema
Represents a staffed security event split into zones
"""
import uuid
from datetime import datetime


def create_event_model(db):
    """Factory function to create Event model with db instance"""

    class Event(db.Model):
        """
        Event model representing a guarded event

        start_date/end_date carry the calendar days of the event. The actual
        working window is given by check_in_time on the first day and
        check_out_time on the last day, both wall-clock times in the
        configured EVENT_TIMEZONE. agent_creation_buffer (minutes) opens
        staffing and check-in that long before check-in.

        The stored status is authoritative only for 'cancelled' and
        'terminated'; every other value is recomputed on read by
        guardforce.services.event_status.
        """
        __tablename__ = 'events'

        STATUS_DRAFT = 'draft'
        STATUS_SCHEDULED = 'scheduled'
        STATUS_ACTIVE = 'active'
        STATUS_COMPLETED = 'completed'
        STATUS_CANCELLED = 'cancelled'
        STATUS_TERMINATED = 'terminated'

        VALID_STATUSES = [
            STATUS_DRAFT, STATUS_SCHEDULED, STATUS_ACTIVE,
            STATUS_COMPLETED, STATUS_CANCELLED, STATUS_TERMINATED
        ]

        # Stored statuses that are never recomputed
        FINAL_STATUSES = (STATUS_CANCELLED, STATUS_TERMINATED)

        id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
        name = db.Column(db.String(200), nullable=False)
        location = db.Column(db.String(255))
        start_date = db.Column(db.DateTime, nullable=False)
        end_date = db.Column(db.DateTime, nullable=False)
        check_in_time = db.Column(db.Time, nullable=True)
        check_out_time = db.Column(db.Time, nullable=True)
        agent_creation_buffer = db.Column(db.Integer, nullable=True)  # minutes
        status = db.Column(db.String(20), nullable=False, default=STATUS_SCHEDULED)
        created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
        updated_at = db.Column(db.DateTime, nullable=True, onupdate=datetime.utcnow)

        __table_args__ = (
            # Index for date range queries (listing, upcoming assignments)
            db.Index('idx_events_date_range', 'start_date', 'end_date'),
            db.Index('idx_events_status', 'status'),
        )

        zones = db.relationship('Zone', backref='event', lazy=True, cascade='all, delete-orphan')

        def to_dict(self):
            return {
                'id': self.id,
                'name': self.name,
                'location': self.location,
                'start_date': self.start_date.isoformat() if self.start_date else None,
                'end_date': self.end_date.isoformat() if self.end_date else None,
                'check_in_time': self.check_in_time.strftime('%H:%M:%S') if self.check_in_time else None,
                'check_out_time': self.check_out_time.strftime('%H:%M:%S') if self.check_out_time else None,
                'agent_creation_buffer': self.agent_creation_buffer,
                'status': self.status,
            }

        def __repr__(self):
            return f'<Event {self.id}: {self.name}>'

    return Event
