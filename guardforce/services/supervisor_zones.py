"""
Zone Supervisor Set Manager
Maintains the deduplicated list of supervisor ids cached on each zone

Zone.supervisors is a JSON array stored in a text column. Older rows hold
other shapes (a JSON object, a double-encoded string, garbage), so every
read goes through decode_supervisors() and every write through
encode_supervisors().
"""
import json
import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from guardforce.error_handlers.exceptions import ResourceNotFoundException, TransientStoreException

logger = logging.getLogger(__name__)


def _flatten(values, out: List[str]) -> None:
    for value in values:
        if value is None or isinstance(value, (dict, bool)):
            continue
        if isinstance(value, (list, tuple)):
            _flatten(value, out)
            continue
        value = str(value).strip()
        if value and value not in out:
            out.append(value)


def decode_supervisors(raw: Any) -> List[str]:
    """
    Decode a stored supervisors value into an ordered list of unique ids.

    Accepted shapes:
        - JSON text of an array or object ('["a","b"]', '{"0":"a"}')
        - JSON text of such text (double-encoded)
        - a list/tuple of ids, possibly nested
        - a dict, whose values are taken as ids
        - None

    Anything else, including malformed JSON, decodes to []. Ids are coerced
    to str, blanks are dropped and duplicates keep their first position.
    """
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode('utf-8', errors='replace')

    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            return []
        try:
            parsed = json.loads(text)
        except ValueError:
            logger.warning(f"Discarding malformed supervisors value: {text[:100]!r}")
            return []
        if isinstance(parsed, str) and parsed.strip()[:1] in ('[', '{'):
            return decode_supervisors(parsed)
        raw = parsed

    if isinstance(raw, dict):
        values = list(raw.values())
    elif isinstance(raw, (list, tuple)):
        values = raw
    else:
        return []

    ids: List[str] = []
    _flatten(values, ids)
    return ids


def encode_supervisors(ids: List[str]) -> Optional[str]:
    """Serialize a supervisor list for storage; an empty list is stored as NULL"""
    ids = decode_supervisors(list(ids))
    if not ids:
        return None
    return json.dumps(ids)


@dataclass
class ZoneMembershipResult:
    """Outcome of an add/remove on a zone's supervisor set"""
    zone_id: str
    changed: bool
    message: str
    supervisors: List[str] = field(default_factory=list)

    def to_dict(self):
        return {
            'zone_id': self.zone_id,
            'changed': self.changed,
            'message': self.message,
            'supervisors': self.supervisors,
        }


class SupervisorZoneManager:
    """
    Adds and removes supervisors on a zone's cached supervisor set

    Both operations are idempotent. Updates go through the zone's
    version_id column: if another writer changed the zone between our read
    and our write, the commit raises StaleDataError and the whole
    read-modify-write is retried with fresh data.

    With commit=False the change is only staged on the session. The caller
    then owns the transaction and the retry (AssignmentLifecycleManager
    does this so the zone change commits together with the assignment).
    """

    MSG_ADDED = 'Supervisor added to zone'
    MSG_ALREADY_ASSIGNED = 'Supervisor already assigned to this zone'
    MSG_REMOVED = 'Supervisor removed from zone'
    MSG_NOT_PRESENT = 'Supervisor not present in this zone'

    def __init__(self, db_session: Session, models: dict, max_retries: int = 3):
        """
        Args:
            db_session: SQLAlchemy database session
            models: Dictionary of model classes from init_models()
            max_retries: Attempts before giving up on a contended zone
        """
        self.db = db_session
        self.Zone = models['Zone']
        self.max_retries = max(1, max_retries)

    def get_supervisors(self, zone_id: str) -> List[str]:
        return decode_supervisors(self._load_zone(zone_id).supervisors)

    def add_supervisor(self, supervisor_id: str, zone_id: str, commit: bool = True) -> ZoneMembershipResult:
        """Add supervisor_id to the zone's set; no-op if already present"""
        return self._mutate(str(supervisor_id), zone_id, adding=True, commit=commit)

    def remove_supervisor(self, supervisor_id: str, zone_id: str, commit: bool = True) -> ZoneMembershipResult:
        """Remove supervisor_id from the zone's set; no-op if absent"""
        return self._mutate(str(supervisor_id), zone_id, adding=False, commit=commit)

    def _load_zone(self, zone_id: str):
        zone = self.db.get(self.Zone, zone_id)
        if zone is None:
            raise ResourceNotFoundException(f'Zone {zone_id} not found')
        return zone

    def _mutate(self, supervisor_id: str, zone_id: str, adding: bool, commit: bool) -> ZoneMembershipResult:
        attempts = self.max_retries if commit else 1
        operation = 'add_supervisor' if adding else 'remove_supervisor'

        for attempt in range(1, attempts + 1):
            zone = self._load_zone(zone_id)
            current = decode_supervisors(zone.supervisors)

            if adding:
                if supervisor_id in current:
                    return ZoneMembershipResult(zone_id, False, self.MSG_ALREADY_ASSIGNED, current)
                updated = current + [supervisor_id]
                message = self.MSG_ADDED
            else:
                if supervisor_id not in current:
                    return ZoneMembershipResult(zone_id, False, self.MSG_NOT_PRESENT, current)
                updated = [s for s in current if s != supervisor_id]
                message = self.MSG_REMOVED

            zone.supervisors = encode_supervisors(updated)

            if not commit:
                return ZoneMembershipResult(zone_id, True, message, updated)

            try:
                self.db.commit()
            except StaleDataError:
                self.db.rollback()
                logger.warning(
                    f"{operation}: zone {zone_id} changed concurrently "
                    f"(attempt {attempt}/{attempts}), retrying"
                )
                continue
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error(f"{operation}: failed to persist zone {zone_id}: {e}")
                raise TransientStoreException() from e

            logger.info(f"{operation}: supervisor {supervisor_id} on zone {zone_id} -> {updated}")
            return ZoneMembershipResult(zone_id, True, message, updated)

        raise TransientStoreException(
            f'Zone {zone_id} is being modified by another request, please try again'
        )
