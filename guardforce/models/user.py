"""
User model
Agents, supervisors and administrators share one account table
"""
import uuid
from datetime import datetime


def create_user_model(db):
    """Factory function to create User model with db instance"""

    class User(db.Model):
        """
        Account of a person who can be staffed on events

        The account role limits which assignment roles a user may hold:
        agents work primary/backup slots, supervisors and admins work
        supervisor slots. Only accounts with status 'active' can be assigned.
        """
        __tablename__ = 'users'

        ROLE_ADMIN = 'admin'
        ROLE_SUPERVISOR = 'supervisor'
        ROLE_AGENT = 'agent'
        VALID_ROLES = [ROLE_ADMIN, ROLE_SUPERVISOR, ROLE_AGENT]

        STATUS_ACTIVE = 'active'
        VALID_STATUSES = ['active', 'inactive', 'suspended', 'pending']

        id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
        first_name = db.Column(db.String(100), nullable=False)
        last_name = db.Column(db.String(100), nullable=False)
        email = db.Column(db.String(255), unique=True, nullable=True)
        role = db.Column(db.String(20), nullable=False, default=ROLE_AGENT)
        status = db.Column(db.String(20), nullable=False, default=STATUS_ACTIVE)
        created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

        __table_args__ = (
            db.Index('idx_users_role_status', 'role', 'status'),
        )

        @property
        def full_name(self):
            return f"{self.first_name} {self.last_name}".strip()

        @property
        def is_active_account(self):
            return self.status == self.STATUS_ACTIVE

        def to_dict(self):
            return {
                'id': self.id,
                'first_name': self.first_name,
                'last_name': self.last_name,
                'email': self.email,
                'role': self.role,
                'status': self.status,
            }

        def __repr__(self):
            return f'<User {self.id}: {self.full_name} ({self.role})>'

    return User
