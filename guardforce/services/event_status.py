"""
Event time-window computation

Derives an event's display status from its dates, check-in/check-out
times and buffers. Everything here is a pure function of (event, now)
except refresh_event_statuses(), which optionally writes 'completed' back
to the events table.

All datetimes are naive wall-clock times in the event timezone; use
guardforce.utils.timezone.local_now() to get "now".
"""
import logging
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, Iterable, Optional, Union

from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)

DEFAULT_CHECK_IN_TIME = time(0, 0, 0)
DEFAULT_CHECK_OUT_TIME = time(23, 59, 59)
DEFAULT_AGENT_CREATION_BUFFER = 120  # minutes
DEFAULT_COMPLETION_GRACE_MINUTES = 120

STATUS_SCHEDULED = 'scheduled'
STATUS_ACTIVE = 'active'
STATUS_COMPLETED = 'completed'
FINAL_STATUSES = ('cancelled', 'terminated')


def parse_time(value: Union[time, str, None]) -> Optional[time]:
    """
    Parse a time of day.

    Examples:
        >>> parse_time('08:00')
        datetime.time(8, 0)
        >>> parse_time('18:30:15')
        datetime.time(18, 30, 15)
    """
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.time()
    if isinstance(value, time):
        return value
    parts = str(value).strip().split(':')
    if len(parts) not in (2, 3):
        raise ValueError(f"Invalid time '{value}', expected HH:MM or HH:MM:SS")
    hours, minutes = int(parts[0]), int(parts[1])
    seconds = int(float(parts[2])) if len(parts) == 3 else 0
    return time(hours, minutes, seconds)


def _as_date(value: Union[date, datetime, str]) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def combine_date_and_time(day: Union[date, datetime, str],
                          time_value: Union[time, str, None],
                          default: time) -> datetime:
    """Combine the calendar day of `day` with a time of day (or `default`)"""
    return datetime.combine(_as_date(day), parse_time(time_value) or default)


def check_in_moment(event) -> datetime:
    return combine_date_and_time(event.start_date, event.check_in_time, DEFAULT_CHECK_IN_TIME)


def check_out_moment(event) -> datetime:
    """
    End of the event's working window.

    A check-out time of exactly midnight means the shift closes at the end
    of end_date, so it rolls over to the next calendar day.
    """
    moment = combine_date_and_time(event.end_date, event.check_out_time, DEFAULT_CHECK_OUT_TIME)
    if parse_time(event.check_out_time) == time(0, 0, 0):
        moment += timedelta(days=1)
    return moment


def agent_creation_start(event, default_buffer: Optional[int] = None) -> datetime:
    """Moment from which agents may be staffed and may check in"""
    buffer_minutes = event.agent_creation_buffer
    if buffer_minutes is None:
        buffer_minutes = DEFAULT_AGENT_CREATION_BUFFER if default_buffer is None else default_buffer
    return check_in_moment(event) - timedelta(minutes=buffer_minutes)


def _grace(grace_minutes: Optional[int]) -> timedelta:
    if grace_minutes is None:
        grace_minutes = DEFAULT_COMPLETION_GRACE_MINUTES
    return timedelta(minutes=grace_minutes)


def compute_effective_status(event, now: datetime,
                             grace_minutes: Optional[int] = None,
                             default_buffer: Optional[int] = None) -> str:
    """
    Compute the status an event should be displayed with at `now`.

    - cancelled/terminated stored on the event always win
    - completed once now is past check-out plus the grace window
    - active from agent_creation_start() until check-out plus grace
    - scheduled before that

    Example (check-in 08:00, check-out 18:00, buffer 120, grace 120):
        05:30 scheduled, 06:30 active, 19:59 active, 20:01 completed
    """
    if event.status in FINAL_STATUSES:
        return event.status

    display_end = check_out_moment(event) + _grace(grace_minutes)
    if now > display_end:
        return STATUS_COMPLETED

    if now >= agent_creation_start(event, default_buffer):
        return STATUS_ACTIVE

    return STATUS_SCHEDULED


def is_within_check_in_window(event, now: datetime, default_buffer: Optional[int] = None) -> bool:
    """True between agent_creation_start() and check-out (no grace)"""
    if event.status in FINAL_STATUSES:
        return False
    return agent_creation_start(event, default_buffer) <= now <= check_out_moment(event)


def should_display_event(event, now: datetime, grace_minutes: Optional[int] = None) -> bool:
    """Events stay visible until the grace window after check-out has passed"""
    if (event.status or '').lower() in FINAL_STATUSES:
        return False
    return now <= check_out_moment(event) + _grace(grace_minutes)


def describe_time_window(event, now: datetime,
                         grace_minutes: Optional[int] = None,
                         default_buffer: Optional[int] = None) -> Dict[str, Any]:
    """Serializable summary of an event's computed window, for API responses"""
    return {
        'event_id': event.id,
        'stored_status': event.status,
        'status': compute_effective_status(event, now, grace_minutes, default_buffer),
        'check_in_moment': check_in_moment(event).isoformat(),
        'check_out_moment': check_out_moment(event).isoformat(),
        'agent_creation_start': agent_creation_start(event, default_buffer).isoformat(),
        'display_until': (check_out_moment(event) + _grace(grace_minutes)).isoformat(),
        'within_check_in_window': is_within_check_in_window(event, now, default_buffer),
        'now': now.isoformat(),
    }


def refresh_event_statuses(events: Iterable, session, now: datetime,
                           grace_minutes: Optional[int] = None,
                           default_buffer: Optional[int] = None) -> Dict[str, str]:
    """
    Compute statuses for a batch of events and persist 'completed' lazily.

    Only the transition to 'completed' is written back; other computed
    statuses are returned but not stored. A failed write is logged and
    rolled back: the returned statuses are correct either way.

    Returns:
        Mapping of event id to computed status
    """
    computed = {}
    changed = 0

    for event in events:
        status = compute_effective_status(event, now, grace_minutes, default_buffer)
        computed[event.id] = status
        if status == STATUS_COMPLETED and event.status != STATUS_COMPLETED:
            event.status = STATUS_COMPLETED
            changed += 1

    if changed:
        try:
            session.commit()
            logger.info(f"Marked {changed} event(s) as completed")
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Could not persist completed event statuses: {e}")

    return computed
