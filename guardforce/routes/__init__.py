"""
Route blueprints

Data blueprints are built by init_*_routes(db, models) so each app gets
its own blueprint bound to its models.
"""
from .health import health_bp
from .api_assignments import init_assignment_routes
from .api_zones import init_zone_routes
from .api_events import init_event_routes
from .api_notifications import init_notification_routes

__all__ = [
    'health_bp',
    'init_assignment_routes',
    'init_zone_routes',
    'init_event_routes',
    'init_notification_routes',
]
