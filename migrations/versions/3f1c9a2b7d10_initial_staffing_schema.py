"""initial_staffing_schema

Revision ID: 3f1c9a2b7d10
Revises:
Create Date: 2024-05-20 09:12:44.318204

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3f1c9a2b7d10'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # Skip tables that create_all() already built on a fresh database
    from sqlalchemy import inspect
    conn = op.get_bind()
    existing_tables = inspect(conn).get_table_names()

    if 'users' not in existing_tables:
        op.create_table(
            'users',
            sa.Column('id', sa.String(length=36), nullable=False),
            sa.Column('first_name', sa.String(length=100), nullable=False),
            sa.Column('last_name', sa.String(length=100), nullable=False),
            sa.Column('email', sa.String(length=255), nullable=True),
            sa.Column('role', sa.String(length=20), nullable=False),
            sa.Column('status', sa.String(length=20), nullable=False),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('email')
        )
        op.create_index('idx_users_role_status', 'users', ['role', 'status'])

    if 'events' not in existing_tables:
        op.create_table(
            'events',
            sa.Column('id', sa.String(length=36), nullable=False),
            sa.Column('name', sa.String(length=200), nullable=False),
            sa.Column('location', sa.String(length=255), nullable=True),
            sa.Column('start_date', sa.DateTime(), nullable=False),
            sa.Column('end_date', sa.DateTime(), nullable=False),
            sa.Column('check_in_time', sa.Time(), nullable=True),
            sa.Column('check_out_time', sa.Time(), nullable=True),
            sa.Column('agent_creation_buffer', sa.Integer(), nullable=True),
            sa.Column('status', sa.String(length=20), nullable=False),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('updated_at', sa.DateTime(), nullable=True),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('idx_events_date_range', 'events', ['start_date', 'end_date'])
        op.create_index('idx_events_status', 'events', ['status'])

    if 'zones' not in existing_tables:
        op.create_table(
            'zones',
            sa.Column('id', sa.String(length=36), nullable=False),
            sa.Column('event_id', sa.String(length=36), nullable=False),
            sa.Column('name', sa.String(length=100), nullable=False),
            sa.Column('description', sa.Text(), nullable=True),
            sa.Column('required_agents', sa.Integer(), nullable=False),
            sa.Column('required_supervisors', sa.Integer(), nullable=False),
            sa.Column('supervisors', sa.Text(), nullable=True),
            sa.Column('color', sa.String(length=7), nullable=False),
            sa.Column('priority', sa.String(length=10), nullable=False),
            sa.Column('version_id', sa.Integer(), nullable=False),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('updated_at', sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(['event_id'], ['events.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('event_id', 'name', name='uix_zone_event_name'),
            sa.CheckConstraint('required_agents >= 0', name='ck_zone_required_agents'),
            sa.CheckConstraint('required_supervisors >= 0', name='ck_zone_required_supervisors')
        )
        op.create_index('ix_zones_event_id', 'zones', ['event_id'])

    if 'assignments' not in existing_tables:
        op.create_table(
            'assignments',
            sa.Column('id', sa.String(length=36), nullable=False),
            sa.Column('agent_id', sa.String(length=36), nullable=False),
            sa.Column('event_id', sa.String(length=36), nullable=False),
            sa.Column('zone_id', sa.String(length=36), nullable=True),
            sa.Column('role', sa.String(length=20), nullable=False),
            sa.Column('status', sa.String(length=20), nullable=False),
            sa.Column('notes', sa.Text(), nullable=True),
            sa.Column('assigned_by', sa.String(length=36), nullable=True),
            sa.Column('confirmed_at', sa.DateTime(), nullable=True),
            sa.Column('notification_sent', sa.Boolean(), nullable=False),
            sa.Column('notification_sent_at', sa.DateTime(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('updated_at', sa.DateTime(), nullable=True),
            sa.Column('deleted_at', sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(['agent_id'], ['users.id'], ondelete='CASCADE'),
            sa.ForeignKeyConstraint(['event_id'], ['events.id'], ondelete='CASCADE'),
            sa.ForeignKeyConstraint(['zone_id'], ['zones.id'], ondelete='SET NULL'),
            sa.ForeignKeyConstraint(['assigned_by'], ['users.id']),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_assignments_agent_id', 'assignments', ['agent_id'])
        op.create_index('ix_assignments_event_id', 'assignments', ['event_id'])
        op.create_index('ix_assignments_zone_id', 'assignments', ['zone_id'])
        op.create_index('ix_assignments_deleted_at', 'assignments', ['deleted_at'])
        # One live row per (agent, event, zone), NULL zone included
        op.create_index(
            'uix_assignment_active_slot',
            'assignments',
            ['agent_id', 'event_id', sa.text("coalesce(zone_id, '')")],
            unique=True,
            sqlite_where=sa.text('deleted_at IS NULL'),
            postgresql_where=sa.text('deleted_at IS NULL')
        )

    if 'activity_logs' not in existing_tables:
        op.create_table(
            'activity_logs',
            sa.Column('id', sa.String(length=36), nullable=False),
            sa.Column('user_id', sa.String(length=36), nullable=True),
            sa.Column('action', sa.String(length=100), nullable=False),
            sa.Column('entity_type', sa.String(length=50), nullable=False),
            sa.Column('entity_id', sa.String(length=36), nullable=True),
            sa.Column('description', sa.Text(), nullable=True),
            sa.Column('old_values', sa.Text(), nullable=True),
            sa.Column('new_values', sa.Text(), nullable=True),
            sa.Column('ip_address', sa.String(length=45), nullable=True),
            sa.Column('status', sa.String(length=20), nullable=False),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(['user_id'], ['users.id']),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_activity_logs_user_id', 'activity_logs', ['user_id'])
        op.create_index('ix_activity_logs_action', 'activity_logs', ['action'])
        op.create_index('ix_activity_logs_created_at', 'activity_logs', ['created_at'])
        op.create_index('idx_activity_entity', 'activity_logs', ['entity_type', 'entity_id'])

    if 'notifications' not in existing_tables:
        op.create_table(
            'notifications',
            sa.Column('id', sa.String(length=36), nullable=False),
            sa.Column('user_id', sa.String(length=36), nullable=False),
            sa.Column('type', sa.String(length=30), nullable=False),
            sa.Column('title', sa.String(length=255), nullable=False),
            sa.Column('message', sa.Text(), nullable=False),
            sa.Column('channel', sa.String(length=20), nullable=False),
            sa.Column('event_id', sa.String(length=36), nullable=True),
            sa.Column('assignment_id', sa.String(length=36), nullable=True),
            sa.Column('is_read', sa.Boolean(), nullable=False),
            sa.Column('read_at', sa.DateTime(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
            sa.ForeignKeyConstraint(['event_id'], ['events.id'], ondelete='SET NULL'),
            sa.ForeignKeyConstraint(['assignment_id'], ['assignments.id'], ondelete='SET NULL'),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])
        op.create_index('idx_notifications_user_unread', 'notifications', ['user_id', 'is_read'])


def downgrade():
    op.drop_table('notifications')
    op.drop_table('activity_logs')
    op.drop_table('assignments')
    op.drop_table('zones')
    op.drop_table('events')
    op.drop_table('users')
