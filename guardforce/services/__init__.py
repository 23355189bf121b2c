"""
Staffing services

Services take a SQLAlchemy session and the model dictionary from
init_models(); the builders below wire them from the Flask config.
"""
from .activity_log import ActivityLogService
from .assignment_lifecycle import (
    AssignmentAction,
    AssignmentLifecycleManager,
    AssignmentOutcome,
    BulkAssignmentResult,
    BulkConfirmResult,
)
from .notifications import NotificationService
from .supervisor_zones import SupervisorZoneManager, ZoneMembershipResult, decode_supervisors, encode_supervisors
from .zone_staffing import EventStaffingStats, ZoneStaffing, ZoneStaffingService


def build_zone_manager(db_session, models, config) -> SupervisorZoneManager:
    return SupervisorZoneManager(
        db_session,
        models,
        max_retries=config.get('ZONE_UPDATE_MAX_RETRIES', 3)
    )


def build_assignment_manager(db_session, models, config) -> AssignmentLifecycleManager:
    """
    Build an AssignmentLifecycleManager with notifications, auditing and the
    supervisor release policy taken from config (a Flask config mapping).
    """
    return AssignmentLifecycleManager(
        db_session,
        models,
        notifier=NotificationService(db_session, models, enabled=config.get('NOTIFICATIONS_ENABLED', True)),
        activity=ActivityLogService(db_session, models),
        zone_manager=build_zone_manager(db_session, models, config),
        release_policy=config.get('SUPERVISOR_ZONE_RELEASE_POLICY', 'retain'),
        max_retries=config.get('ASSIGNMENT_MAX_RETRIES', 3),
    )


__all__ = [
    'ActivityLogService',
    'AssignmentAction',
    'AssignmentLifecycleManager',
    'AssignmentOutcome',
    'BulkAssignmentResult',
    'BulkConfirmResult',
    'NotificationService',
    'SupervisorZoneManager',
    'ZoneMembershipResult',
    'decode_supervisors',
    'encode_supervisors',
    'EventStaffingStats',
    'ZoneStaffing',
    'ZoneStaffingService',
    'build_zone_manager',
    'build_assignment_manager',
]
