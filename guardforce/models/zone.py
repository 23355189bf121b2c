"""
Zone model
Sub-area of an event with its own agent and supervisor headcount
"""
import uuid
from datetime import datetime


def create_zone_model(db):
    """
    Factory function to create Zone model with database instance

    Args:
        db: SQLAlchemy database instance

    Returns:
        Zone: Model class for event zones
    """

    class Zone(db.Model):
        """
        Zone of an event

        Attributes:
            id: Primary key (UUID string)
            event_id: Owning event
            name: Zone name, unique within the event
            required_agents: Agent headcount (>= 0)
            required_supervisors: Supervisor headcount (>= 0)
            supervisors: JSON array of supervisor user ids. This is a cache
                maintained by SupervisorZoneManager, never a join table. Always
                read it through decode_supervisors(); older rows may hold
                other shapes.
            version_id: Optimistic concurrency counter. SQLAlchemy adds it to
                every UPDATE, so a concurrent writer gets StaleDataError.
        """
        __tablename__ = 'zones'

        PRIORITIES = ['low', 'medium', 'high', 'critical']

        id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
        event_id = db.Column(
            db.String(36),
            db.ForeignKey('events.id', ondelete='CASCADE'),
            nullable=False,
            index=True
        )
        name = db.Column(db.String(100), nullable=False)
        description = db.Column(db.Text, nullable=True)
        required_agents = db.Column(db.Integer, nullable=False, default=1)
        required_supervisors = db.Column(db.Integer, nullable=False, default=0)
        supervisors = db.Column(db.Text, nullable=True)
        color = db.Column(db.String(7), nullable=False, default='#3B82F6')
        priority = db.Column(db.String(10), nullable=False, default='medium')
        version_id = db.Column(db.Integer, nullable=False)
        created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
        updated_at = db.Column(db.DateTime, nullable=True, onupdate=datetime.utcnow)

        __table_args__ = (
            db.UniqueConstraint('event_id', 'name', name='uix_zone_event_name'),
            db.CheckConstraint('required_agents >= 0', name='ck_zone_required_agents'),
            db.CheckConstraint('required_supervisors >= 0', name='ck_zone_required_supervisors'),
        )

        __mapper_args__ = {'version_id_col': version_id}

        @property
        def supervisor_ids(self):
            """Decoded supervisor list (read-only view)"""
            from guardforce.services.supervisor_zones import decode_supervisors
            return decode_supervisors(self.supervisors)

        def to_dict(self):
            return {
                'id': self.id,
                'event_id': self.event_id,
                'name': self.name,
                'description': self.description,
                'required_agents': self.required_agents,
                'required_supervisors': self.required_supervisors,
                'supervisors': self.supervisor_ids,
                'color': self.color,
                'priority': self.priority,
            }

        def __repr__(self):
            return f'<Zone {self.id}: {self.name} (event {self.event_id})>'

    return Zone
