"""
Zones API Blueprint
Explicit add/remove of supervisors on a zone's supervisor set, and
staffing figures for the zones of an event
"""
from flask import Blueprint, current_app, jsonify

from guardforce.error_handlers import handle_errors
from guardforce.extensions import limiter
from guardforce.routes.auth import MANAGER_ROLES, require_authentication, require_role
from guardforce.services import ZoneStaffingService, build_zone_manager
from guardforce.utils.validators import get_json_body, validate_required_fields


def init_zone_routes(db, models):
    """
    Initialize zone routes with database and models

    Returns:
        Blueprint mounted at /api/zones
    """
    zones_api_bp = Blueprint('zones_api', __name__, url_prefix='/api/zones')

    def manager():
        return build_zone_manager(db.session, models, current_app.config)

    @zones_api_bp.route('/<zone_id>/supervisors', methods=['GET'])
    @handle_errors
    @require_authentication()
    def get_zone_supervisors(zone_id):
        return jsonify({
            'success': True,
            'zone_id': zone_id,
            'supervisors': manager().get_supervisors(zone_id)
        })

    @zones_api_bp.route('/<zone_id>/supervisors', methods=['POST'])
    @limiter.limit('60 per minute')
    @handle_errors
    @require_role(*MANAGER_ROLES)
    def add_zone_supervisor(zone_id):
        """
        Add a supervisor to the zone

        Request JSON:
        {
            "supervisor_id": "uuid"
        }

        Returns:
            200 with changed=false when the supervisor was already listed
        """
        data = get_json_body()
        validate_required_fields(data, ['supervisor_id'])
        result = manager().add_supervisor(data['supervisor_id'], zone_id)
        return jsonify({'success': True, **result.to_dict()})

    @zones_api_bp.route('/<zone_id>/supervisors/<supervisor_id>', methods=['DELETE'])
    @limiter.limit('60 per minute')
    @handle_errors
    @require_role(*MANAGER_ROLES)
    def remove_zone_supervisor(zone_id, supervisor_id):
        result = manager().remove_supervisor(supervisor_id, zone_id)
        return jsonify({'success': True, **result.to_dict()})

    @zones_api_bp.route('/event/<event_id>/stats', methods=['GET'])
    @handle_errors
    @require_role(*MANAGER_ROLES)
    def get_event_zone_stats(event_id):
        """
        Assigned vs required headcount for every zone of an event

        Pending and confirmed assignments count; cancelled, declined and
        deleted ones do not.
        """
        stats = ZoneStaffingService(db.session, models).zone_staffing_stats(event_id)
        return jsonify({'success': True, 'data': stats.to_dict()})

    return zones_api_bp
