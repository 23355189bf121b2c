"""
Assignment model
Binds one user to one event, optionally scoped to one zone of that event
"""
import uuid
from datetime import datetime

from sqlalchemy import func


def create_assignment_model(db):
    """
    Factory function to create Assignment model with database instance

    Args:
        db: SQLAlchemy database instance

    Returns:
        Assignment: Model class for agent/supervisor assignments
    """

    class Assignment(db.Model):
        """
        Assignment of an agent or supervisor to an event (and zone)

        Rows are soft-deleted through deleted_at. At most one row with
        deleted_at IS NULL may exist per (agent_id, event_id, zone_id); the
        partial unique index below enforces this at the database level, with
        a NULL zone_id counting as its own slot. Soft-deleted rows for the same
        triple are kept and restored instead of inserting a duplicate.

        Queries must opt in to seeing soft-deleted rows: filter with
        Assignment.not_deleted() for live data, leave it out to include
        deleted rows.
        """
        __tablename__ = 'assignments'

        ROLE_PRIMARY = 'primary'
        ROLE_BACKUP = 'backup'
        ROLE_SUPERVISOR = 'supervisor'
        VALID_ROLES = [ROLE_PRIMARY, ROLE_BACKUP, ROLE_SUPERVISOR]
        AGENT_ROLES = [ROLE_PRIMARY, ROLE_BACKUP]

        STATUS_PENDING = 'pending'
        STATUS_CONFIRMED = 'confirmed'
        STATUS_DECLINED = 'declined'
        STATUS_CANCELLED = 'cancelled'
        VALID_STATUSES = [STATUS_PENDING, STATUS_CONFIRMED, STATUS_DECLINED, STATUS_CANCELLED]

        # Statuses that occupy the (agent, event, zone) slot
        BLOCKING_STATUSES = [STATUS_PENDING, STATUS_CONFIRMED]

        STATUS_LABELS = {
            STATUS_PENDING: 'en attente',
            STATUS_CONFIRMED: 'confirmée',
            STATUS_DECLINED: 'refusée',
            STATUS_CANCELLED: 'annulée',
        }

        id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
        agent_id = db.Column(
            db.String(36),
            db.ForeignKey('users.id', ondelete='CASCADE'),
            nullable=False,
            index=True
        )
        event_id = db.Column(
            db.String(36),
            db.ForeignKey('events.id', ondelete='CASCADE'),
            nullable=False,
            index=True
        )
        zone_id = db.Column(
            db.String(36),
            db.ForeignKey('zones.id', ondelete='SET NULL'),
            nullable=True,
            index=True
        )
        role = db.Column(db.String(20), nullable=False, default=ROLE_PRIMARY)
        status = db.Column(db.String(20), nullable=False, default=STATUS_PENDING)
        notes = db.Column(db.Text, nullable=True)
        assigned_by = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=True)
        confirmed_at = db.Column(db.DateTime, nullable=True)
        notification_sent = db.Column(db.Boolean, nullable=False, default=False)
        notification_sent_at = db.Column(db.DateTime, nullable=True)

        created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
        updated_at = db.Column(db.DateTime, nullable=True, onupdate=datetime.utcnow)
        deleted_at = db.Column(db.DateTime, nullable=True, index=True)

        agent = db.relationship('User', foreign_keys=[agent_id], lazy=True)
        assigner = db.relationship('User', foreign_keys=[assigned_by], lazy=True)
        event = db.relationship('Event', lazy=True)
        zone = db.relationship('Zone', lazy=True)

        @classmethod
        def not_deleted(cls):
            """Filter clause selecting rows that are not soft-deleted"""
            return cls.deleted_at.is_(None)

        @classmethod
        def slot_filter(cls, agent_id, event_id, zone_id=None):
            """Filter clauses matching one (agent, event, zone) slot, NULL zone included"""
            zone_clause = cls.zone_id.is_(None) if zone_id is None else cls.zone_id == zone_id
            return [cls.agent_id == agent_id, cls.event_id == event_id, zone_clause]

        @property
        def is_deleted(self):
            return self.deleted_at is not None

        @property
        def status_label(self):
            return self.STATUS_LABELS.get(self.status, self.status)

        def soft_delete(self):
            """Mark as deleted; the caller commits"""
            self.deleted_at = datetime.utcnow()

        def restore(self):
            """Clear the deletion marker; the caller commits"""
            self.deleted_at = None

        def to_dict(self):
            return {
                'id': self.id,
                'agent_id': self.agent_id,
                'agent_name': self.agent.full_name if self.agent else None,
                'event_id': self.event_id,
                'zone_id': self.zone_id,
                'role': self.role,
                'status': self.status,
                'status_label': self.status_label,
                'notes': self.notes,
                'assigned_by': self.assigned_by,
                'confirmed_at': self.confirmed_at.isoformat() if self.confirmed_at else None,
                'notification_sent': self.notification_sent,
                'notification_sent_at': self.notification_sent_at.isoformat() if self.notification_sent_at else None,
                'created_at': self.created_at.isoformat() if self.created_at else None,
                'updated_at': self.updated_at.isoformat() if self.updated_at else None,
            }

        def __repr__(self):
            return f'<Assignment {self.id}: {self.agent_id} -> {self.event_id}/{self.zone_id} [{self.status}]>'

    # One live row per (agent, event, zone); NULL zone is folded to '' so the
    # zone-less slot is unique too
    db.Index(
        'uix_assignment_active_slot',
        Assignment.agent_id,
        Assignment.event_id,
        func.coalesce(Assignment.zone_id, ''),
        unique=True,
        sqlite_where=Assignment.deleted_at.is_(None),
        postgresql_where=Assignment.deleted_at.is_(None),
    )

    return Assignment
