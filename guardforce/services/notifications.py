"""
Notification Service
Creates in-app notifications for assignment changes

Unlike ActivityLogService, dispatch methods raise on failure; callers that
treat notifications as best-effort catch and log the error themselves.
"""
import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from guardforce.error_handlers.exceptions import ResourceNotFoundException, TransientStoreException

logger = logging.getLogger(__name__)


class NotificationDispatchError(Exception):
    """A notification could not be stored or delivered"""


class NotificationService:
    """Stores notifications in the in-app inbox"""

    def __init__(self, db_session: Session, models: dict, enabled: bool = True):
        """
        Args:
            db_session: SQLAlchemy database session
            models: Dictionary of model classes from init_models()
            enabled: When False, dispatch methods are no-ops returning None
        """
        self.db = db_session
        self.Notification = models['Notification']
        self.enabled = enabled

    def notify(self, user_id: str, notification_type: str, title: str, message: str,
               event_id: Optional[str] = None, assignment_id: Optional[str] = None):
        """
        Store one notification for user_id.

        Raises:
            NotificationDispatchError: If the notification cannot be stored
        """
        if not self.enabled:
            logger.debug(f"Notifications disabled, skipping {notification_type} for {user_id}")
            return None

        try:
            notification = self.Notification(
                user_id=user_id,
                type=notification_type,
                title=title,
                message=message,
                event_id=event_id,
                assignment_id=assignment_id,
            )
            self.db.add(notification)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise NotificationDispatchError(
                f"Could not store {notification_type} notification for {user_id}: {e}"
            ) from e

        logger.info(f"Notification {notification_type} sent to {user_id}")
        return notification

    def notify_assignment(self, assignment, event, agent):
        """Tell an agent they were assigned to an event"""
        when = event.start_date.strftime('%d/%m/%Y') if event.start_date else ''
        check_in = event.check_in_time.strftime('%H:%M') if event.check_in_time else '00:00'
        message = (
            f'Vous avez été affecté à l\'événement "{event.name}" le {when} à {check_in}.'
        )
        if event.location:
            message += f' Lieu: {event.location}'

        return self.notify(
            agent.id,
            self.Notification.TYPE_ASSIGNMENT,
            'Nouvelle Affectation',
            message,
            event_id=event.id,
            assignment_id=assignment.id,
        )

    def notify_assignment_confirmed(self, assignment, event_name: str):
        """Tell an agent their assignment was confirmed by a manager"""
        return self.notify(
            assignment.agent_id,
            self.Notification.TYPE_ASSIGNMENT_CONFIRMED,
            'Affectation confirmée',
            f'Votre affectation pour "{event_name}" a été confirmée',
            event_id=assignment.event_id,
            assignment_id=assignment.id,
        )

    def unread_for(self, user_id: str):
        """Unread inbox of user_id, newest first"""
        return (
            self.db.query(self.Notification)
            .filter_by(user_id=user_id, is_read=False)
            .order_by(self.Notification.created_at.desc())
            .all()
        )

    def mark_read(self, notification_id: str, user_id: str):
        """
        Mark one of user_id's notifications as read.

        Raises:
            ResourceNotFoundException: No such notification for this user
            TransientStoreException: The change could not be stored
        """
        notification = (
            self.db.query(self.Notification)
            .filter_by(id=notification_id, user_id=user_id)
            .first()
        )
        if notification is None:
            raise ResourceNotFoundException('Notification non trouvée')
        if notification.is_read:
            return notification

        notification.mark_read()
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to mark notification {notification_id} as read: {e}")
            raise TransientStoreException() from e
        return notification
