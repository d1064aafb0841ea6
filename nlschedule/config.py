"""Simple runtime configuration for the scheduling engine.

Policy constants are read from environment variables to allow toggling in
development or production without code changes.
"""
import os
import re


def _trueish(v: str | None) -> bool:
    if not v:
        return False
    return v.lower() in ('1', 'true', 'yes', 'on')


def _minutes_from_env(name: str, default: str) -> int:
    """Read an 'HH:MM' wall-clock time from the environment as minutes since midnight."""
    raw = os.getenv(name, default)
    m = re.fullmatch(r'\s*(\d{1,2}):(\d{2})\s*', raw or '')
    if not m or int(m.group(1)) > 23 or int(m.group(2)) > 59:
        m = re.fullmatch(r'(\d{1,2}):(\d{2})', default)
    return int(m.group(1)) * 60 + int(m.group(2))


# Timezone spec used when a caller does not supply one. Accepts an IANA name
# (e.g. 'Asia/Karachi') or a fixed offset like '+05:00'.
DEFAULT_TIMEZONE = os.getenv('DEFAULT_TIMEZONE', 'UTC')

# Numeric date ordering: 'MDY' reads '3/4' as March 4 (the default), 'DMY'
# reads it as 3 April. There is no locale detection.
DATE_ORDER = os.getenv('DATE_ORDER', 'MDY').upper()
if DATE_ORDER not in ('MDY', 'DMY'):
    DATE_ORDER = 'MDY'

# Time of day (minutes since midnight) given to dates that carry no explicit
# clock time, and to dates qualified with 'morning'.
DEFAULT_DUE_MINUTES = _minutes_from_env('DEFAULT_DUE_TIME', '17:00')
MORNING_DUE_MINUTES = _minutes_from_env('MORNING_DUE_TIME', '09:00')

# What a monthly anchor does in a month that lacks the day (e.g. the 31st in
# April): 'clamp' lands on the month's last day, 'skip' moves on to the next
# month that has the day.
MONTHLY_ANCHOR_POLICY = os.getenv('MONTHLY_ANCHOR_POLICY', 'clamp').lower()
if MONTHLY_ANCHOR_POLICY not in ('clamp', 'skip'):
    MONTHLY_ANCHOR_POLICY = 'clamp'

# Which instant a completed recurring task rolls forward from: the completion
# timestamp ('completion') or the task's previous due date ('due').
COMPLETION_BASE = os.getenv('COMPLETION_BASE', 'completion').lower()
if COMPLETION_BASE not in ('completion', 'due'):
    COMPLETION_BASE = 'completion'

# When False the schedule merge never produces a recurrence rule, so typed
# phrases like 'every monday' only resolve as plain dates.
ENABLE_RECURRING_DETECTION = _trueish(os.getenv('ENABLE_RECURRING_DETECTION', '1'))

# Maximum title length accepted from the AI capture path.
AI_CAPTURE_MAX_TITLE = 300

LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()


# Optional local overrides: define variables in nlschedule/local_config.py to
# override the defaults above without changing versioned config.
try:
    from .local_config import *  # type: ignore  # noqa: F401,F403
except ImportError:
    # No local overrides present; proceed with defaults.
    pass
