"""
Notifications API Blueprint
In-app inbox of the calling user
"""
from flask import Blueprint, current_app, jsonify

from guardforce.error_handlers import handle_errors
from guardforce.routes.auth import get_current_user, require_authentication
from guardforce.services import NotificationService


def init_notification_routes(db, models):
    """
    Initialize notification routes with database and models

    Returns:
        Blueprint mounted at /api/notifications
    """
    notifications_api_bp = Blueprint('notifications_api', __name__, url_prefix='/api/notifications')

    def service():
        return NotificationService(
            db.session, models, enabled=current_app.config.get('NOTIFICATIONS_ENABLED', True)
        )

    @notifications_api_bp.route('/unread', methods=['GET'])
    @handle_errors
    @require_authentication()
    def get_unread_notifications():
        notifications = service().unread_for(get_current_user().id)
        return jsonify({
            'success': True,
            'count': len(notifications),
            'notifications': [n.to_dict() for n in notifications]
        })

    @notifications_api_bp.route('/<notification_id>/read', methods=['POST'])
    @handle_errors
    @require_authentication()
    def mark_notification_read(notification_id):
        """Mark one of the caller's notifications as read; 404 for anyone else's"""
        notification = service().mark_read(notification_id, get_current_user().id)
        return jsonify({'success': True, 'notification': notification.to_dict()})

    return notifications_api_bp
