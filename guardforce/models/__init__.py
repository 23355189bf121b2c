"""
Database models for the Guardforce staffing backend
Centralizes all SQLAlchemy model imports using factory pattern
"""
from .user import create_user_model
from .event import create_event_model
from .zone import create_zone_model
from .assignment import create_assignment_model
from .activity_log import create_activity_log_model
from .notification import create_notification_model


def init_models(db):
    """
    Initialize all models with the database instance

    Must run once per db instance; the declarative registry rejects a second
    definition of the same table.

    Args:
        db: SQLAlchemy database instance

    Returns:
        dict: Dictionary containing all model classes
    """
    User = create_user_model(db)
    Event = create_event_model(db)
    Zone = create_zone_model(db)
    Assignment = create_assignment_model(db)
    ActivityLog = create_activity_log_model(db)
    Notification = create_notification_model(db)

    return {
        'User': User,
        'Event': Event,
        'Zone': Zone,
        'Assignment': Assignment,
        'ActivityLog': ActivityLog,
        'Notification': Notification,
    }


__all__ = [
    'init_models',
    'create_user_model',
    'create_event_model',
    'create_zone_model',
    'create_assignment_model',
    'create_activity_log_model',
    'create_notification_model',
    # Model registry exports
    'model_registry',
    'get_models',
    'get_db'
]

# Import registry for convenience
from .registry import model_registry, get_models, get_db
