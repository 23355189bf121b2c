"""
Assignments API Blueprint
Thin JSON adapter over AssignmentLifecycleManager
"""
from flask import Blueprint, current_app, jsonify, request
import logging

from guardforce.error_handlers import handle_errors
from guardforce.error_handlers.exceptions import ResourceNotFoundException
from guardforce.extensions import limiter
from guardforce.routes.auth import MANAGER_ROLES, ROLE_ADMIN, get_current_user, require_authentication, require_role
from guardforce.services import AssignmentAction, build_assignment_manager
from guardforce.utils.timezone import local_now
from guardforce.utils.validators import (
    get_json_body,
    validate_bool,
    validate_choice,
    validate_id_list,
    validate_optional_text,
    validate_page_params,
    validate_required_fields,
)

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


def init_assignment_routes(db, models):
    """
    Initialize assignment routes with database and models

    Args:
        db: SQLAlchemy database instance
        models: Dictionary of model classes

    Returns:
        Blueprint mounted at /api/assignments
    """
    assignments_api_bp = Blueprint('assignments_api', __name__, url_prefix='/api/assignments')
    Assignment = models['Assignment']

    def manager():
        return build_assignment_manager(db.session, models, current_app.config)

    @assignments_api_bp.route('', methods=['POST'])
    @limiter.limit('60 per minute')
    @handle_errors
    @require_role(*MANAGER_ROLES)
    def create_assignment():
        """
        Request an assignment

        Request JSON:
        {
            "agent_id": "uuid",
            "event_id": "uuid",
            "zone_id": "uuid",        // optional
            "role": "primary",        // primary, backup, supervisor (default primary)
            "notes": "Optional notes"
        }

        Returns:
            201 when created, 200 when restored or reassigned,
            409 with outcome "rejected" when the slot is taken
        """
        data = get_json_body()
        validate_required_fields(data, ['agent_id', 'event_id'])
        role = validate_choice(data.get('role'), Assignment.VALID_ROLES, 'role')

        outcome = manager().request_assignment(
            agent_id=data['agent_id'],
            event_id=data['event_id'],
            zone_id=data.get('zone_id') or None,
            role=role,
            notes=validate_optional_text(data.get('notes'), 'notes'),
            requested_by=get_current_user().id,
        )

        status_code = 201 if outcome.action == AssignmentAction.CREATED else 200
        return jsonify({'success': True, **outcome.to_dict()}), status_code

    @assignments_api_bp.route('/bulk', methods=['POST'])
    @limiter.limit('20 per minute')
    @handle_errors
    @require_role(*MANAGER_ROLES)
    def create_bulk_assignments():
        """
        Request the same assignment for several agents

        Request JSON:
        {
            "event_id": "uuid",
            "agent_ids": ["uuid", ...],
            "zone_id": "uuid",   // optional
            "role": "primary"    // optional
        }
        """
        data = get_json_body()
        validate_required_fields(data, ['event_id'])
        agent_ids = validate_id_list(data.get('agent_ids'), 'agent_ids')
        role = validate_choice(data.get('role'), Assignment.VALID_ROLES, 'role')

        result = manager().bulk_request_assignments(
            event_id=data['event_id'],
            agent_ids=agent_ids,
            zone_id=data.get('zone_id') or None,
            role=role,
            requested_by=get_current_user().id,
        )

        return jsonify({
            'success': True,
            'message': f"{len(result.created)} affectation(s) créée(s), {len(result.failed)} échec(s)",
            'data': result.to_dict()
        }), 201

    @assignments_api_bp.route('/bulk-confirm', methods=['POST'])
    @limiter.limit('20 per minute')
    @handle_errors
    @require_role(*MANAGER_ROLES)
    def bulk_confirm_assignments():
        """
        Confirm every pending assignment of an event

        Request JSON:
        {
            "event_id": "uuid",
            "role": "supervisor",          // optional, overrides the flags
            "confirm_agents": true,        // default true
            "confirm_supervisors": true    // default true
        }
        """
        data = get_json_body()
        validate_required_fields(data, ['event_id'])

        result = manager().bulk_confirm_by_event(
            event_id=data['event_id'],
            role=validate_choice(data.get('role'), Assignment.VALID_ROLES, 'role'),
            confirm_agents=validate_bool(data.get('confirm_agents'), 'confirm_agents', True),
            confirm_supervisors=validate_bool(data.get('confirm_supervisors'), 'confirm_supervisors', True),
            requested_by=get_current_user().id,
        )

        return jsonify({
            'success': True,
            'message': f"{result.confirmed_count} affectation(s) confirmée(s) avec succès",
            'data': result.to_dict()
        })

    @assignments_api_bp.route('/<assignment_id>/respond', methods=['POST'])
    @handle_errors
    @require_authentication()
    def respond_to_assignment(assignment_id):
        """
        Accept or decline one of the caller's pending assignments

        Request JSON:
        {
            "response": "confirmed"   // confirmed or declined
        }
        """
        data = get_json_body()
        validate_required_fields(data, ['response'])

        assignment = manager().respond_to_assignment(
            assignment_id, get_current_user().id, data['response']
        )

        confirmed = assignment.status == Assignment.STATUS_CONFIRMED
        return jsonify({
            'success': True,
            'message': 'Affectation confirmée' if confirmed else 'Affectation refusée',
            'assignment': assignment.to_dict()
        })

    @assignments_api_bp.route('/<assignment_id>', methods=['PUT'])
    @handle_errors
    @require_role(*MANAGER_ROLES)
    def update_assignment(assignment_id):
        """
        Edit status, role or notes

        Request JSON (all optional):
        {
            "status": "cancelled",
            "role": "backup",
            "notes": "..."
        }
        """
        data = get_json_body()
        kwargs = {
            'status': validate_choice(data.get('status'), Assignment.VALID_STATUSES, 'status'),
            'role': validate_choice(data.get('role'), Assignment.VALID_ROLES, 'role'),
            'requested_by': get_current_user().id,
        }
        if 'notes' in data:
            kwargs['notes'] = validate_optional_text(data['notes'], 'notes')

        assignment = manager().update_assignment(assignment_id, **kwargs)
        return jsonify({'success': True, 'assignment': assignment.to_dict()})

    @assignments_api_bp.route('/<assignment_id>', methods=['DELETE'])
    @handle_errors
    @require_role(*MANAGER_ROLES)
    def delete_assignment(assignment_id):
        """Soft-delete an assignment"""
        manager().delete_assignment(assignment_id, requested_by=get_current_user().id)
        return jsonify({'success': True, 'message': 'Affectation supprimée'})

    @assignments_api_bp.route('/agent/<agent_id>', methods=['DELETE'])
    @handle_errors
    @require_role(ROLE_ADMIN)
    def discard_agent_assignments(agent_id):
        """Soft-delete every live assignment of a rejected temporary agent"""
        removed = manager().discard_agent_assignments(agent_id, requested_by=get_current_user().id)
        return jsonify({'success': True, 'removed': removed})

    @assignments_api_bp.route('', methods=['GET'])
    @handle_errors
    @require_role(*MANAGER_ROLES)
    def list_assignments():
        """
        List live assignments, one page at a time

        Query Parameters:
            event_id, agent_id, zone_id, status, role: optional filters
            page: page number (default 1)
            limit: page size (default 20, max 100)
            sort_by: created_at, updated_at, status, role or confirmed_at
            sort_order: asc or desc (default desc)
        """
        page, limit = validate_page_params(
            request.args.get('page', 1), request.args.get('limit', DEFAULT_PAGE_SIZE), MAX_PAGE_SIZE
        )
        pagination = manager().paginate_assignments(
            page=page,
            per_page=limit,
            sort_by=request.args.get('sort_by', 'created_at'),
            sort_order=request.args.get('sort_order', 'desc').lower(),
            event_id=request.args.get('event_id'),
            agent_id=request.args.get('agent_id'),
            zone_id=request.args.get('zone_id'),
            status=validate_choice(request.args.get('status'), Assignment.VALID_STATUSES, 'status'),
            role=validate_choice(request.args.get('role'), Assignment.VALID_ROLES, 'role'),
        )
        return jsonify({
            'success': True,
            'count': len(pagination.items),
            'assignments': [a.to_dict() for a in pagination.items],
            'pagination': {
                'page': page,
                'limit': limit,
                'total': pagination.total,
                'pages': pagination.pages,
            }
        })

    @assignments_api_bp.route('/<assignment_id>', methods=['GET'])
    @handle_errors
    @require_authentication()
    def get_assignment(assignment_id):
        """
        One live assignment

        Managers get any assignment along with its audit history; agents
        only see their own.
        """
        user = get_current_user()
        lifecycle = manager()
        assignment = lifecycle.get_assignment(assignment_id)

        is_manager = user.role in MANAGER_ROLES
        if not is_manager and assignment.agent_id != user.id:
            raise ResourceNotFoundException('Affectation non trouvée')

        data = assignment.to_dict()
        data['assigned_by_name'] = assignment.assigner.full_name if assignment.assigner else None
        if is_manager:
            data['history'] = [entry.to_dict() for entry in lifecycle.assignment_history(assignment.id)]
        return jsonify({'success': True, 'assignment': data})

    @assignments_api_bp.route('/mine', methods=['GET'])
    @handle_errors
    @require_authentication()
    def my_assignments():
        """
        Assignments of the calling agent

        Query Parameters:
            status: optional status filter
            upcoming: "true" to hide events past their display window
        """
        assignments = manager().list_agent_assignments(
            get_current_user().id,
            status=validate_choice(request.args.get('status'), Assignment.VALID_STATUSES, 'status'),
            upcoming=validate_bool(request.args.get('upcoming'), 'upcoming', False),
            now=local_now(),
            grace_minutes=current_app.config.get('EVENT_COMPLETION_GRACE_MINUTES'),
        )
        return jsonify({
            'success': True,
            'count': len(assignments),
            'assignments': [a.to_dict() for a in assignments]
        })

    return assignments_api_bp
