"""
Zone Staffing Service
Compares each zone's assigned headcount with its required headcount

Only live assignments that still hold their slot (pending or confirmed)
count; cancelled and declined rows are ignored, as are soft-deleted ones.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from sqlalchemy import func
from sqlalchemy.orm import Session

from guardforce.error_handlers.exceptions import ResourceNotFoundException

logger = logging.getLogger(__name__)


def fill_percentage(assigned: int, required: int) -> int:
    """Agent fill rate; a zone that needs nobody is full"""
    if required <= 0:
        return 100
    return round(assigned * 100 / required)


@dataclass
class ZoneStaffing:
    """Headcount of one zone"""
    zone_id: str
    name: str
    color: str
    priority: str
    required_agents: int
    required_supervisors: int
    assigned_agents: int = 0
    assigned_supervisors: int = 0
    pending_count: int = 0
    confirmed_count: int = 0

    @property
    def is_filled(self) -> bool:
        return (self.assigned_agents >= self.required_agents
                and self.assigned_supervisors >= self.required_supervisors)

    def to_dict(self):
        return {
            'id': self.zone_id,
            'name': self.name,
            'color': self.color,
            'priority': self.priority,
            'required_agents': self.required_agents,
            'assigned_agents': self.assigned_agents,
            'required_supervisors': self.required_supervisors,
            'assigned_supervisors': self.assigned_supervisors,
            'pending_count': self.pending_count,
            'confirmed_count': self.confirmed_count,
            'is_filled': self.is_filled,
            'fill_percentage': fill_percentage(self.assigned_agents, self.required_agents),
        }


@dataclass
class EventStaffingStats:
    """Per-zone headcounts of one event, with event-wide totals"""
    event_id: str
    zones: List[ZoneStaffing] = field(default_factory=list)

    @property
    def filled_zones(self) -> int:
        return sum(1 for zone in self.zones if zone.is_filled)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'event_id': self.event_id,
            'total_zones': len(self.zones),
            'filled_zones': self.filled_zones,
            'underfilled_zones': len(self.zones) - self.filled_zones,
            'total_required_agents': sum(z.required_agents for z in self.zones),
            'total_assigned_agents': sum(z.assigned_agents for z in self.zones),
            'total_required_supervisors': sum(z.required_supervisors for z in self.zones),
            'total_assigned_supervisors': sum(z.assigned_supervisors for z in self.zones),
            'zones': [zone.to_dict() for zone in self.zones],
        }


class ZoneStaffingService:
    """Read-only staffing figures for the zones of an event"""

    def __init__(self, db_session: Session, models: dict):
        self.db = db_session
        self.Event = models['Event']
        self.Zone = models['Zone']
        self.Assignment = models['Assignment']

    def zone_staffing_stats(self, event_id: str) -> EventStaffingStats:
        """
        Headcount of every zone of event_id, ordered by zone name.

        Raises:
            ResourceNotFoundException: Unknown event
        """
        if self.db.get(self.Event, event_id) is None:
            raise ResourceNotFoundException('Événement non trouvé')

        Assignment = self.Assignment
        zones = (
            self.db.query(self.Zone)
            .filter(self.Zone.event_id == event_id)
            .order_by(self.Zone.name)
            .all()
        )
        stats = EventStaffingStats(event_id=event_id)
        by_id = {}
        for zone in zones:
            staffing = ZoneStaffing(
                zone_id=zone.id,
                name=zone.name,
                color=zone.color,
                priority=zone.priority,
                required_agents=zone.required_agents,
                required_supervisors=zone.required_supervisors,
            )
            stats.zones.append(staffing)
            by_id[zone.id] = staffing

        counts = (
            self.db.query(Assignment.zone_id, Assignment.role, Assignment.status, func.count(Assignment.id))
            .filter(
                Assignment.event_id == event_id,
                Assignment.zone_id.is_not(None),
                Assignment.status.in_(Assignment.BLOCKING_STATUSES),
                Assignment.not_deleted(),
            )
            .group_by(Assignment.zone_id, Assignment.role, Assignment.status)
            .all()
        )
        for zone_id, role, status, count in counts:
            staffing = by_id.get(zone_id)
            if staffing is None:
                continue
            if role == Assignment.ROLE_SUPERVISOR:
                staffing.assigned_supervisors += count
            else:
                staffing.assigned_agents += count
            if status == Assignment.STATUS_PENDING:
                staffing.pending_count += count
            else:
                staffing.confirmed_count += count

        logger.debug(
            f"zone_staffing_stats: event {event_id} has {stats.filled_zones}/{len(stats.zones)} zones filled"
        )
        return stats
