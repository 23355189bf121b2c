"""Timezone helpers: event times are wall-clock times in the configured zone."""

from datetime import datetime
from functools import lru_cache
from zoneinfo import ZoneInfo

DEFAULT_EVENT_TIMEZONE = 'Africa/Casablanca'


@lru_cache(maxsize=8)
def _get_tz(tz_name):
    return ZoneInfo(tz_name)


def _configured_tz_name():
    from flask import current_app, has_app_context
    if has_app_context():
        return current_app.config.get('EVENT_TIMEZONE', DEFAULT_EVENT_TIMEZONE)
    return DEFAULT_EVENT_TIMEZONE


def local_now(tz_name=None):
    """Current wall-clock time in the event timezone, as a naive datetime.

    Event dates and check-in/check-out times are stored naive, so "now" must
    be naive in the same zone before comparing.
    """
    tz = _get_tz(tz_name or _configured_tz_name())
    return datetime.now(tz).replace(tzinfo=None)
