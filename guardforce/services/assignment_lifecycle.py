"""
Assignment Lifecycle Manager
Creates, restores, reassigns and rejects agent/supervisor assignments

One (agent, event, zone) slot holds at most one live assignment. A request
for a slot is resolved against what the slot already contains, soft-deleted
rows included:

    nothing                     -> create a pending assignment
    soft-deleted row            -> restore it as pending
    live row, cancelled/declined -> reassign it (reset to pending)
    live row, pending/confirmed  -> reject with ConflictException

Supervisor assignments on a zone also add the supervisor to the zone's
cached supervisor set, in the same transaction as the assignment write.

Every write runs as one unit of work. If the database reports a unique
index violation (another request took the slot first) or a stale zone
version, the transaction is rolled back and the decision is made again on
fresh data, so a lost race ends in the same ConflictException a sequential
request would get.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from guardforce.error_handlers.exceptions import (
    AppException,
    ConflictException,
    ResourceNotFoundException,
    TransientStoreException,
    ValidationException,
)
from guardforce.error_handlers.logging import operation_logger
from guardforce.services.event_status import should_display_event
from guardforce.services.supervisor_zones import SupervisorZoneManager, ZoneMembershipResult

logger = logging.getLogger(__name__)

RELEASE_POLICY_RETAIN = 'retain'
RELEASE_POLICY_RELEASE = 'release'

SLOT_INDEX_NAME = 'uix_assignment_active_slot'

# Columns a listing may be ordered by
SORTABLE_COLUMNS = ('created_at', 'updated_at', 'status', 'role', 'confirmed_at')

# Assignment role -> account roles allowed to hold it
ROLE_ACCOUNT_TYPES = {
    'primary': ('agent',),
    'backup': ('agent',),
    'supervisor': ('supervisor', 'admin'),
}

_UNSET = object()


class AssignmentAction(str, Enum):
    """How a request_assignment() call was resolved"""
    CREATED = 'created'
    RESTORED = 'restored'
    REASSIGNED = 'reassigned'
    REJECTED = 'rejected'


ACTION_MESSAGES = {
    AssignmentAction.CREATED: 'Affectation créée avec succès',
    AssignmentAction.RESTORED: 'Affectation restaurée avec succès',
    AssignmentAction.REASSIGNED: 'Affectation réassignée avec succès',
}

ACTION_AUDIT_CODES = {
    AssignmentAction.CREATED: 'CREATE_ASSIGNMENT',
    AssignmentAction.RESTORED: 'RESTORE_ASSIGNMENT',
    AssignmentAction.REASSIGNED: 'REASSIGN_ASSIGNMENT',
}


@dataclass
class AssignmentOutcome:
    """Result of a successful request_assignment() call"""
    action: AssignmentAction
    assignment: Any
    message: str
    zone_membership: Optional[ZoneMembershipResult] = None
    notification_sent: bool = False

    def to_dict(self):
        return {
            'action': self.action.value,
            'message': self.message,
            'assignment': self.assignment.to_dict(),
            'zone_supervisors': self.zone_membership.supervisors if self.zone_membership else None,
            'notification_sent': self.notification_sent,
        }


@dataclass
class BulkConfirmResult:
    """Result of bulk_confirm_by_event()"""
    event_id: str
    confirmed_ids: List[str] = field(default_factory=list)
    notification_failures: List[str] = field(default_factory=list)

    @property
    def confirmed_count(self) -> int:
        return len(self.confirmed_ids)

    def to_dict(self):
        return {
            'event_id': self.event_id,
            'confirmed_count': self.confirmed_count,
            'confirmed_ids': self.confirmed_ids,
            'notification_failures': self.notification_failures,
        }


@dataclass
class BulkAssignmentResult:
    """Result of bulk_request_assignments(): per-agent successes and failures"""
    created: List[Dict[str, Any]] = field(default_factory=list)
    failed: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self):
        return {'created': self.created, 'failed': self.failed}


def conflict_message(status_label: str, zone_name: Optional[str] = None) -> str:
    zone_info = f' dans la zone "{zone_name}"' if zone_name else ''
    return (
        f"Cet utilisateur est déjà affecté à cet événement{zone_info} "
        f"(statut: {status_label}). "
        f"Veuillez d'abord modifier ou annuler l'affectation existante."
    )


def is_unique_violation(error: IntegrityError) -> bool:
    """
    True when error comes from a unique index, i.e. another writer already
    holds the row this transaction tried to take.

    SQLite reports "UNIQUE constraint failed", PostgreSQL and MySQL report a
    duplicate key. Other constraint failures mention neither.
    """
    message = str(error.orig if error.orig is not None else error).lower()
    return (
        SLOT_INDEX_NAME in message
        or 'unique' in message
        or 'duplicate' in message
    )


class AssignmentLifecycleManager:
    """
    Owns every write to the assignments table

    Collaborators are injected: notifier (NotificationService) and activity
    (ActivityLogService) are optional and best-effort, zone_manager defaults
    to a SupervisorZoneManager on the same session.
    """

    def __init__(self, db_session: Session, models: dict, notifier=None, activity=None,
                 zone_manager: Optional[SupervisorZoneManager] = None,
                 release_policy: Optional[str] = None, max_retries: int = 3):
        """
        Args:
            db_session: SQLAlchemy database session
            models: Dictionary of model classes from init_models()
            notifier: NotificationService, or None to skip notifications
            activity: ActivityLogService, or None to skip auditing
            zone_manager: SupervisorZoneManager sharing db_session
            release_policy: 'retain' (default) keeps a supervisor in the zone
                set after their assignment is deleted, 'release' removes them
            max_retries: Attempts per unit of work when racing other writers
        """
        self.db = db_session
        self.User = models['User']
        self.Event = models['Event']
        self.Zone = models['Zone']
        self.Assignment = models['Assignment']
        self.notifier = notifier
        self.activity = activity
        self.zone_manager = zone_manager or SupervisorZoneManager(db_session, models)
        self.release_policy = release_policy or RELEASE_POLICY_RETAIN
        if self.release_policy not in (RELEASE_POLICY_RETAIN, RELEASE_POLICY_RELEASE):
            raise ValueError(f"Unknown supervisor release policy '{self.release_policy}'")
        self.max_retries = max(1, max_retries)

    # ------------------------------------------------------------------
    # Request / restore / reassign
    # ------------------------------------------------------------------

    def request_assignment(self, agent_id: str, event_id: str, zone_id: Optional[str] = None,
                           role: Optional[str] = None, notes: Optional[str] = None,
                           requested_by: Optional[str] = None) -> AssignmentOutcome:
        """
        Assign agent_id to event_id (and zone_id).

        Checks, in order: agent exists, role fits the agent's account,
        account is active, event exists, zone exists within the event.

        Raises:
            ResourceNotFoundException: Unknown agent, event, or zone for this event
            ValidationException: Role/account mismatch or inactive account
            ConflictException: Slot already holds a pending/confirmed assignment
            TransientStoreException: The database could not complete the write
        """
        effective_role = role or self.Assignment.ROLE_PRIMARY
        agent = self._validated_agent(agent_id, effective_role)
        event = self._get_event(event_id)
        zone = self._get_zone_in_event(zone_id, event_id) if zone_id else None
        zone_id = zone.id if zone else None

        outcome = self._run_unit_of_work(
            'request_assignment',
            lambda: self._resolve_slot(agent_id, event_id, zone_id, effective_role, notes, requested_by)
        )

        operation_logger.succeeded(
            'request_assignment',
            f"{outcome.action.value} {outcome.assignment.id} agent={agent_id} event={event_id} zone={zone_id}"
        )
        self._record_request(outcome, agent, event, zone, requested_by)
        outcome.notification_sent = self._send_assignment_notification(outcome.assignment, event, agent)
        return outcome

    def _resolve_slot(self, agent_id, event_id, zone_id, role, notes, requested_by) -> AssignmentOutcome:
        rows = self._find_slot_rows(agent_id, event_id, zone_id)
        live = next((row for row in rows if row.deleted_at is None), None)
        deleted = sorted(
            (row for row in rows if row.deleted_at is not None),
            key=lambda row: row.deleted_at,
            reverse=True
        )

        if live is not None and live.status in self.Assignment.BLOCKING_STATUSES:
            zone_name = live.zone.name if live.zone_id and live.zone else None
            label = live.status_label
            operation_logger.rejected(
                'request_assignment',
                f"slot occupied by {live.id} ({live.status})",
                {'agent_id': agent_id, 'event_id': event_id, 'zone_id': zone_id}
            )
            raise ConflictException(
                conflict_message(label, zone_name),
                details={
                    'outcome': AssignmentAction.REJECTED.value,
                    'existing_assignment_id': live.id,
                    'existing_status': live.status,
                    'status_label': label,
                    'zone_name': zone_name,
                }
            )

        if live is not None:
            assignment = live
            action = AssignmentAction.REASSIGNED
        elif deleted:
            assignment = deleted[0]
            assignment.restore()
            action = AssignmentAction.RESTORED
        else:
            assignment = self.Assignment(agent_id=agent_id, event_id=event_id, zone_id=zone_id)
            self.db.add(assignment)
            action = AssignmentAction.CREATED

        self._reset_to_pending(assignment, zone_id, role, notes, requested_by)

        membership = None
        if role == self.Assignment.ROLE_SUPERVISOR and zone_id:
            membership = self.zone_manager.add_supervisor(agent_id, zone_id, commit=False)

        return AssignmentOutcome(action, assignment, ACTION_MESSAGES[action], membership)

    def _find_slot_rows(self, agent_id, event_id, zone_id) -> list:
        """Every row for the slot, soft-deleted ones included"""
        return (
            self.db.query(self.Assignment)
            .filter(*self.Assignment.slot_filter(agent_id, event_id, zone_id))
            .all()
        )

    def _reset_to_pending(self, assignment, zone_id, role, notes, requested_by) -> None:
        assignment.status = self.Assignment.STATUS_PENDING
        assignment.zone_id = zone_id
        assignment.role = role
        assignment.notes = notes
        assignment.assigned_by = requested_by
        assignment.confirmed_at = None
        assignment.notification_sent = False
        assignment.notification_sent_at = None

    def bulk_request_assignments(self, event_id: str, agent_ids: List[str], zone_id: Optional[str] = None,
                                 role: Optional[str] = None,
                                 requested_by: Optional[str] = None) -> BulkAssignmentResult:
        """
        Request the same assignment for several agents.

        Event and zone are checked once up front; a failure for one agent is
        recorded in the result and does not stop the batch.
        """
        event = self._get_event(event_id)
        if zone_id:
            self._get_zone_in_event(zone_id, event_id)

        result = BulkAssignmentResult()
        for agent_id in agent_ids:
            try:
                outcome = self.request_assignment(agent_id, event_id, zone_id, role, None, requested_by)
            except AppException as e:
                result.failed.append({'agent_id': agent_id, 'reason': e.message, 'error': e.error_type})
                continue
            result.created.append({
                'id': outcome.assignment.id,
                'agent_id': agent_id,
                'agent_name': outcome.assignment.agent.full_name if outcome.assignment.agent else None,
                'action': outcome.action.value,
            })

        self._audit(
            requested_by, 'BULK_CREATE_ASSIGNMENTS', None,
            f'{len(result.created)} affectations créées pour "{event.name}"',
            new_values=result.to_dict()
        )
        return result

    # ------------------------------------------------------------------
    # Responses and confirmations
    # ------------------------------------------------------------------

    def respond_to_assignment(self, assignment_id: str, agent_id: str, response: str):
        """
        Agent accepts or declines one of their pending assignments.

        Raises:
            ValidationException: response is not 'confirmed' or 'declined'
            ResourceNotFoundException: No live assignment with this id for this agent
            ConflictException: The assignment is no longer pending
        """
        Assignment = self.Assignment
        if response not in (Assignment.STATUS_CONFIRMED, Assignment.STATUS_DECLINED):
            raise ValidationException("response must be 'confirmed' or 'declined'")

        def stage():
            assignment = self._get_live_assignment(assignment_id)
            if assignment.agent_id != agent_id:
                raise ResourceNotFoundException('Affectation non trouvée')
            if assignment.status != Assignment.STATUS_PENDING:
                raise ConflictException(
                    f"Cette affectation n'est plus en attente (statut: {assignment.status_label})",
                    details={'current_status': assignment.status}
                )
            assignment.status = response
            if response == Assignment.STATUS_CONFIRMED:
                assignment.confirmed_at = datetime.utcnow()
            return assignment

        assignment = self._run_unit_of_work('respond_to_assignment', stage)

        confirmed = response == Assignment.STATUS_CONFIRMED
        self._audit(
            agent_id,
            'CONFIRM_ASSIGNMENT' if confirmed else 'DECLINE_ASSIGNMENT',
            assignment.id,
            f"Affectation {'confirmée' if confirmed else 'refusée'}",
        )
        return assignment

    def bulk_confirm_by_event(self, event_id: str, role: Optional[str] = None,
                              confirm_agents: bool = True, confirm_supervisors: bool = True,
                              requested_by: Optional[str] = None) -> BulkConfirmResult:
        """
        Confirm every pending assignment of an event in one UPDATE.

        role narrows the selection to one assignment role; without it the
        flags pick agent roles (primary, backup) and/or supervisor. Each
        confirmed agent then gets a notification; notification failures are
        reported in the result and never undo the confirmation.

        Raises:
            ValidationException: Unknown role, or both flags false without a role
            ResourceNotFoundException: Unknown event or nothing pending to confirm
        """
        Assignment = self.Assignment
        if role is not None:
            if role not in Assignment.VALID_ROLES:
                raise ValidationException(f"Invalid role '{role}'")
            roles = [role]
        else:
            roles = []
            if confirm_agents:
                roles.extend(Assignment.AGENT_ROLES)
            if confirm_supervisors:
                roles.append(Assignment.ROLE_SUPERVISOR)
            if not roles:
                raise ValidationException('Nothing to confirm: both confirm_agents and confirm_supervisors are false')

        event = self._get_event(event_id)
        event_name = event.name

        def stage():
            pending_ids = [
                row.id for row in
                self.db.query(Assignment.id)
                .filter(
                    Assignment.event_id == event_id,
                    Assignment.status == Assignment.STATUS_PENDING,
                    Assignment.role.in_(roles),
                    Assignment.not_deleted(),
                )
                .all()
            ]
            if not pending_ids:
                raise ResourceNotFoundException('Aucune affectation en attente trouvée pour cet événement')

            updated = (
                self.db.query(Assignment)
                .filter(Assignment.id.in_(pending_ids), Assignment.status == Assignment.STATUS_PENDING)
                .update(
                    {Assignment.status: Assignment.STATUS_CONFIRMED, Assignment.confirmed_at: datetime.utcnow()},
                    synchronize_session=False
                )
            )
            if updated != len(pending_ids):
                logger.warning(
                    f"bulk_confirm_by_event: {len(pending_ids) - updated} assignment(s) of event "
                    f"{event_id} changed status during confirmation"
                )
            return pending_ids

        pending_ids = self._run_unit_of_work('bulk_confirm_by_event', stage)

        confirmed = (
            self.db.query(Assignment)
            .filter(Assignment.id.in_(pending_ids), Assignment.status == Assignment.STATUS_CONFIRMED)
            .all()
        )
        result = BulkConfirmResult(event_id=event_id, confirmed_ids=[a.id for a in confirmed])

        self._audit(
            requested_by, 'BULK_CONFIRM_ASSIGNMENTS', event_id,
            f"Confirmation en masse de {result.confirmed_count} affectation(s) pour l'événement",
            new_values={
                'event_id': event_id,
                'role': role or 'all',
                'confirm_agents': confirm_agents,
                'confirm_supervisors': confirm_supervisors,
                'assignment_ids': result.confirmed_ids,
            }
        )

        if self.notifier is not None:
            for assignment in confirmed:
                try:
                    if self.notifier.notify_assignment_confirmed(assignment, event_name) is not None:
                        self._mark_notification_sent(assignment)
                except Exception as e:
                    self.db.rollback()
                    logger.error(f"Confirmation notification failed for assignment {assignment.id}: {e}")
                    result.notification_failures.append(assignment.id)

        operation_logger.succeeded(
            'bulk_confirm_by_event',
            f"event={event_id} confirmed={result.confirmed_count} "
            f"notification_failures={len(result.notification_failures)}"
        )
        return result

    # ------------------------------------------------------------------
    # Administrative edits
    # ------------------------------------------------------------------

    def update_assignment(self, assignment_id: str, status: Optional[str] = None, role: Optional[str] = None,
                          notes: Any = _UNSET, requested_by: Optional[str] = None):
        """
        Edit status, role or notes of a live assignment.

        A role change must still fit the agent's account role. Setting the
        supervisor role on a zone assignment adds the agent to the zone set.
        """
        Assignment = self.Assignment
        if status is not None and status not in Assignment.VALID_STATUSES:
            raise ValidationException(f"Invalid status '{status}'")
        if role is not None and role not in Assignment.VALID_ROLES:
            raise ValidationException(f"Invalid role '{role}'")

        snapshot = {}

        def stage():
            assignment = self._get_live_assignment(assignment_id)
            snapshot.clear()
            snapshot.update(self._snapshot(assignment))

            if role is not None and role != assignment.role:
                self._check_role_compatibility(assignment.agent, role)
                assignment.role = role
            if status is not None and status != assignment.status:
                assignment.status = status
                if status == Assignment.STATUS_CONFIRMED:
                    assignment.confirmed_at = datetime.utcnow()
            if notes is not _UNSET:
                assignment.notes = notes

            if assignment.role == Assignment.ROLE_SUPERVISOR and assignment.zone_id:
                self.zone_manager.add_supervisor(assignment.agent_id, assignment.zone_id, commit=False)
            return assignment

        assignment = self._run_unit_of_work('update_assignment', stage)

        self._audit(
            requested_by, 'UPDATE_ASSIGNMENT', assignment.id, 'Affectation mise à jour',
            old_values=snapshot, new_values=self._snapshot(assignment)
        )
        return assignment

    def delete_assignment(self, assignment_id: str, requested_by: Optional[str] = None):
        """
        Soft-delete an assignment.

        Under the 'release' policy a deleted supervisor zone assignment also
        removes the supervisor from the zone set; under 'retain' the set is
        left alone.
        """
        snapshot = {}

        def stage():
            assignment = self._get_live_assignment(assignment_id)
            snapshot.clear()
            snapshot.update(self._snapshot(assignment))
            assignment.soft_delete()
            self._release_supervisor(assignment)
            return assignment

        assignment = self._run_unit_of_work('delete_assignment', stage)

        agent_name = assignment.agent.full_name if assignment.agent else assignment.agent_id
        self._audit(
            requested_by, 'DELETE_ASSIGNMENT', assignment.id,
            f'Affectation de {agent_name} supprimée',
            old_values=snapshot
        )
        return assignment

    def discard_agent_assignments(self, agent_id: str, requested_by: Optional[str] = None) -> int:
        """
        Soft-delete every live assignment of an agent.

        Used when a quickly added temporary agent is rejected and replaced.

        Returns:
            Number of assignments removed
        """
        agent = self.db.get(self.User, agent_id)
        if agent is None:
            raise ResourceNotFoundException('Utilisateur non trouvé')

        def stage():
            rows = (
                self.db.query(self.Assignment)
                .filter(self.Assignment.agent_id == agent_id, self.Assignment.not_deleted())
                .all()
            )
            for assignment in rows:
                assignment.soft_delete()
                self._release_supervisor(assignment)
            return [row.id for row in rows]

        removed_ids = self._run_unit_of_work('discard_agent_assignments', stage)

        if removed_ids:
            self._audit(
                requested_by, 'DISCARD_AGENT_ASSIGNMENTS', None,
                f'{len(removed_ids)} affectation(s) de {agent.full_name} supprimée(s)',
                old_values={'agent_id': agent_id, 'assignment_ids': removed_ids}
            )
        return len(removed_ids)

    def _release_supervisor(self, assignment) -> None:
        if (self.release_policy == RELEASE_POLICY_RELEASE
                and assignment.role == self.Assignment.ROLE_SUPERVISOR
                and assignment.zone_id):
            self.zone_manager.remove_supervisor(assignment.agent_id, assignment.zone_id, commit=False)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_assignment(self, assignment_id: str):
        """
        One live assignment.

        Raises:
            ResourceNotFoundException: Unknown or soft-deleted assignment
        """
        return self._get_live_assignment(assignment_id)

    def assignment_history(self, assignment_id: str) -> list:
        """Audit entries recorded for an assignment, newest first"""
        if self.activity is None:
            return []
        return self.activity.for_entity('assignment', assignment_id)

    def _filtered_query(self, event_id=None, agent_id=None, zone_id=None, status=None, role=None):
        Assignment = self.Assignment
        query = self.db.query(Assignment).filter(Assignment.not_deleted())
        if event_id:
            query = query.filter(Assignment.event_id == event_id)
        if agent_id:
            query = query.filter(Assignment.agent_id == agent_id)
        if zone_id:
            query = query.filter(Assignment.zone_id == zone_id)
        if status:
            query = query.filter(Assignment.status == status)
        if role:
            query = query.filter(Assignment.role == role)
        return query

    def list_assignments(self, event_id: Optional[str] = None, agent_id: Optional[str] = None,
                         zone_id: Optional[str] = None, status: Optional[str] = None,
                         role: Optional[str] = None) -> list:
        """Live assignments matching all given filters, newest first"""
        query = self._filtered_query(event_id, agent_id, zone_id, status, role)
        return query.order_by(self.Assignment.created_at.desc()).all()

    def paginate_assignments(self, page: int = 1, per_page: int = 20, sort_by: str = 'created_at',
                             sort_order: str = 'desc', **filters):
        """
        One page of live assignments.

        filters are the keyword filters of list_assignments(). The session
        must be Flask-SQLAlchemy's, whose queries provide paginate().

        Returns:
            flask_sqlalchemy Pagination (items, page, per_page, total, pages)
        """
        if sort_by not in SORTABLE_COLUMNS:
            raise ValidationException(
                f"Invalid sort_by '{sort_by}'. Expected one of: {', '.join(SORTABLE_COLUMNS)}"
            )
        if sort_order not in ('asc', 'desc'):
            raise ValidationException("sort_order must be 'asc' or 'desc'")

        column = getattr(self.Assignment, sort_by)
        ordering = column.asc() if sort_order == 'asc' else column.desc()
        query = self._filtered_query(**filters).order_by(ordering, self.Assignment.id)
        return query.paginate(page=page, per_page=per_page, error_out=False)

    def list_agent_assignments(self, agent_id: str, status: Optional[str] = None,
                               upcoming: bool = False, now: Optional[datetime] = None,
                               grace_minutes: Optional[int] = None) -> list:
        """
        Live assignments of one agent.

        With upcoming=True only assignments whose event is still displayed
        at `now` (not past its post-check-out grace window, not cancelled)
        are returned.
        """
        assignments = self.list_assignments(agent_id=agent_id, status=status)
        if not upcoming:
            return assignments
        if now is None:
            raise ValueError('now is required when upcoming=True')
        return [a for a in assignments if a.event and should_display_event(a.event, now, grace_minutes)]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _validated_agent(self, agent_id: str, role: str):
        agent = self.db.get(self.User, agent_id)
        if agent is None:
            raise ResourceNotFoundException('Utilisateur non trouvé')
        self._check_role_compatibility(agent, role)
        if agent.status != self.User.STATUS_ACTIVE:
            raise ValidationException("L'utilisateur n'est pas actif", details={'account_status': agent.status})
        return agent

    def _check_role_compatibility(self, agent, role: str) -> None:
        allowed = ROLE_ACCOUNT_TYPES.get(role)
        if allowed is None:
            raise ValidationException(
                f"Invalid role '{role}'. Expected one of: {', '.join(ROLE_ACCOUNT_TYPES)}"
            )
        if agent.role not in allowed:
            if role == self.Assignment.ROLE_SUPERVISOR:
                message = 'Seul un responsable ou un administrateur peut être affecté comme superviseur'
            else:
                message = 'Seul un agent peut être affecté avec ce rôle'
            raise ValidationException(message, details={'account_role': agent.role, 'requested_role': role})

    def _get_event(self, event_id: str):
        event = self.db.get(self.Event, event_id)
        if event is None:
            raise ResourceNotFoundException('Événement non trouvé')
        return event

    def _get_zone_in_event(self, zone_id: str, event_id: str):
        zone = (
            self.db.query(self.Zone)
            .filter(self.Zone.id == zone_id, self.Zone.event_id == event_id)
            .first()
        )
        if zone is None:
            raise ResourceNotFoundException("Zone non trouvée ou n'appartient pas à cet événement")
        return zone

    def _get_live_assignment(self, assignment_id: str):
        assignment = (
            self.db.query(self.Assignment)
            .filter(self.Assignment.id == assignment_id, self.Assignment.not_deleted())
            .first()
        )
        if assignment is None:
            raise ResourceNotFoundException('Affectation non trouvée')
        return assignment

    def _run_unit_of_work(self, operation: str, stage: Callable[[], Any]) -> Any:
        """
        Run stage() and commit, as one transaction.

        Unique index violations and stale zone versions mean another request
        got there first: roll back and run stage() again so it sees the
        winner's data. Any other integrity error (a dangling foreign key, a
        failed check) will not go away on retry and is reported at once.
        Domain errors raised by stage() roll back and propagate.
        """
        for attempt in range(1, self.max_retries + 1):
            try:
                result = stage()
                self.db.commit()
                return result
            except AppException:
                self.db.rollback()
                raise
            except IntegrityError as e:
                self.db.rollback()
                if not is_unique_violation(e):
                    error_id = operation_logger.failed(operation, e.orig or e)
                    raise TransientStoreException(
                        'The database rejected this change', details={'error_id': error_id}
                    ) from e
                logger.warning(
                    f"{operation}: concurrent write detected "
                    f"(attempt {attempt}/{self.max_retries}): unique index violation"
                )
            except StaleDataError:
                self.db.rollback()
                logger.warning(
                    f"{operation}: concurrent write detected "
                    f"(attempt {attempt}/{self.max_retries}): stale zone version"
                )
            except SQLAlchemyError as e:
                self.db.rollback()
                error_id = operation_logger.failed(operation, e)
                raise TransientStoreException(details={'error_id': error_id}) from e

        raise TransientStoreException(
            'The assignment was modified by another request, please try again'
        )

    def _snapshot(self, assignment) -> Dict[str, Any]:
        return {
            'id': assignment.id,
            'agent_id': assignment.agent_id,
            'event_id': assignment.event_id,
            'zone_id': assignment.zone_id,
            'role': assignment.role,
            'status': assignment.status,
            'notes': assignment.notes,
            'assigned_by': assignment.assigned_by,
            'confirmed_at': assignment.confirmed_at,
            'deleted_at': assignment.deleted_at,
        }

    def _audit(self, user_id, action, entity_id, description, old_values=None, new_values=None) -> None:
        if self.activity is None:
            return
        self.activity.log(
            user_id, action, 'assignment', entity_id, description,
            old_values=old_values, new_values=new_values
        )

    def _record_request(self, outcome: AssignmentOutcome, agent, event, zone, requested_by) -> None:
        who = 'Agent' if agent.role == self.User.ROLE_AGENT else 'Responsable'
        zone_info = f' (Zone: {zone.name})' if zone else ''
        verb = 'affecté' if outcome.action == AssignmentAction.CREATED else 'réaffecté'
        suffix = ' (restauré)' if outcome.action == AssignmentAction.RESTORED else ''
        self._audit(
            requested_by,
            ACTION_AUDIT_CODES[outcome.action],
            outcome.assignment.id,
            f'{who} {agent.full_name} {verb} à "{event.name}"{zone_info}{suffix}',
            new_values=self._snapshot(outcome.assignment)
        )

    def _send_assignment_notification(self, assignment, event, agent) -> bool:
        """Best-effort: a failed notification never undoes the assignment"""
        if self.notifier is None:
            return False
        try:
            notification = self.notifier.notify_assignment(assignment, event, agent)
            if notification is None:
                return False
            self._mark_notification_sent(assignment)
            return True
        except Exception as e:
            self.db.rollback()
            logger.error(f"Assignment notification failed for {assignment.id}: {e}")
            return False

    def _mark_notification_sent(self, assignment) -> None:
        assignment.notification_sent = True
        assignment.notification_sent_at = datetime.utcnow()
        self.db.commit()
