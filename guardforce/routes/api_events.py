"""
Events API Blueprint
Read-only event listing with computed time-window status
"""
from flask import Blueprint, current_app, jsonify, request
import logging

from guardforce.error_handlers import handle_errors
from guardforce.error_handlers.exceptions import ResourceNotFoundException
from guardforce.routes.auth import require_authentication
from guardforce.services.event_status import describe_time_window, refresh_event_statuses, should_display_event
from guardforce.utils.timezone import local_now
from guardforce.utils.validators import validate_bool, validate_datetime_param

logger = logging.getLogger(__name__)


def init_event_routes(db, models):
    """
    Initialize event routes with database and models

    Returns:
        Blueprint mounted at /api/events
    """
    events_api_bp = Blueprint('events_api', __name__, url_prefix='/api/events')
    Event = models['Event']

    def time_settings():
        return {
            'grace_minutes': current_app.config.get('EVENT_COMPLETION_GRACE_MINUTES'),
            'default_buffer': current_app.config.get('DEFAULT_AGENT_CREATION_BUFFER'),
        }

    @events_api_bp.route('', methods=['GET'])
    @handle_errors
    @require_authentication()
    def list_events():
        """
        List events with their computed status

        Stored statuses that have become 'completed' are written back.

        Query Parameters:
            visible_only: "true" to drop events past their display window
            at: ISO datetime to evaluate at instead of now
        """
        now = validate_datetime_param(request.args.get('at'), 'at') or local_now()
        visible_only = validate_bool(request.args.get('visible_only'), 'visible_only', False)
        settings = time_settings()

        events = db.session.query(Event).order_by(Event.start_date.asc()).all()
        statuses = refresh_event_statuses(events, db.session, now, **settings)

        payload = []
        for event in events:
            if visible_only and not should_display_event(event, now, settings['grace_minutes']):
                continue
            item = event.to_dict()
            item['computed_status'] = statuses[event.id]
            payload.append(item)

        return jsonify({'success': True, 'count': len(payload), 'events': payload})

    @events_api_bp.route('/<event_id>/status', methods=['GET'])
    @handle_errors
    @require_authentication()
    def event_status(event_id):
        """
        Computed time window of one event (no write-back)

        Query Parameters:
            at: ISO datetime to evaluate at instead of now
        """
        event = db.session.get(Event, event_id)
        if event is None:
            raise ResourceNotFoundException('Événement non trouvé')

        now = validate_datetime_param(request.args.get('at'), 'at') or local_now()
        return jsonify({'success': True, **describe_time_window(event, now, **time_settings())})

    return events_api_bp
