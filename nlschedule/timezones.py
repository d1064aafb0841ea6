"""Timezone offset resolution.

Callers hand us whatever timezone string the user profile stores: an IANA
identifier ('Asia/Karachi'), a fixed offset ('+05:00') or junk. Every
function here is total: an unusable spec resolves to UTC and leaves a
warning in the log, it never raises.
"""
from datetime import datetime, timedelta, timezone, tzinfo
import logging
import re
from typing import NamedTuple, Optional
import zoneinfo

from . import config
from .utils import coerce_instant, to_epoch_ms

logger = logging.getLogger(__name__)

_FIXED_OFFSET_RE = re.compile(r'(?:utc|gmt)?([+-])(\d{2}):(\d{2})', re.IGNORECASE)
_UTC_ALIASES = {'utc', 'z', 'gmt', 'etc/utc'}


class TimezoneOffset(NamedTuple):
    minutes: int
    timezone: str


def _zone(spec: str) -> Optional[zoneinfo.ZoneInfo]:
    try:
        return zoneinfo.ZoneInfo(spec)
    except zoneinfo.ZoneInfoNotFoundError:
        logger.warning('invalid IANA timezone %r, falling back to UTC', spec)
        return None
    except Exception:
        # malformed keys ('../x', 'America/') surface as ValueError or OSError
        logger.warning('unusable IANA timezone %r, falling back to UTC', spec, exc_info=True)
        return None


def _fixed_offset_minutes(spec: str) -> Optional[int]:
    m = _FIXED_OFFSET_RE.fullmatch(spec)
    if not m:
        return None
    hours = int(m.group(2))
    minutes = int(m.group(3))
    if hours > 14 or minutes > 59:
        return None
    sign = 1 if m.group(1) == '+' else -1
    return sign * (hours * 60 + minutes)


def resolve_offset(spec: Optional[str], at=None) -> TimezoneOffset:
    """Resolve a timezone spec to its offset from UTC in minutes at instant `at`.

    Returns (minutes, normalized_spec). normalized_spec is the input when it
    was usable, else 'UTC'.
    """
    if not isinstance(spec, str) or not spec.strip():
        logger.warning('invalid timezone format %r, falling back to UTC', spec)
        return TimezoneOffset(0, 'UTC')
    spec = spec.strip()
    if '/' in spec:
        zone = _zone(spec)
        if zone is None:
            return TimezoneOffset(0, 'UTC')
        try:
            instant = coerce_instant(at)
            delta = instant.astimezone(zone).utcoffset() or timedelta(0)
        except (OverflowError, ValueError, TypeError):
            logger.exception('failed to compute offset for timezone %s', spec)
            return TimezoneOffset(0, 'UTC')
        return TimezoneOffset(int(delta.total_seconds() // 60), spec)
    if spec.lower() in _UTC_ALIASES:
        return TimezoneOffset(0, 'UTC')
    minutes = _fixed_offset_minutes(spec)
    if minutes is None:
        logger.warning('invalid timezone format %r, falling back to UTC', spec)
        return TimezoneOffset(0, 'UTC')
    return TimezoneOffset(minutes, spec)


def resolve_offset_minutes(spec: Optional[str], at=None) -> int:
    """Offset from UTC in minutes for spec; 0 for anything unusable."""
    return resolve_offset(spec, at).minutes


def resolve_tzinfo(spec: Optional[str]) -> tzinfo:
    """Return a tzinfo for spec, for calendar arithmetic that must follow DST.

    IANA names give a ZoneInfo, fixed offsets a datetime.timezone, anything
    else UTC.
    """
    if spec is None:
        spec = config.DEFAULT_TIMEZONE
    if isinstance(spec, str) and '/' in spec:
        zone = _zone(spec.strip())
        return zone if zone is not None else timezone.utc
    offset = resolve_offset(spec)
    if offset.minutes == 0:
        return timezone.utc
    return timezone(timedelta(minutes=offset.minutes))


def local_timezone(spec: Optional[str], at=None) -> timezone:
    """Fixed-offset tzinfo for spec as observed at instant `at`."""
    if spec is None:
        spec = config.DEFAULT_TIMEZONE
    return timezone(timedelta(minutes=resolve_offset_minutes(spec, at)))


def today_range(timezone_spec: Optional[str] = None, now=None) -> tuple[int, int]:
    """Return (start_ms, end_ms) bounding the user's local calendar day.

    end is the next local midnight minus one millisecond.
    """
    instant = coerce_instant(now)
    tz = local_timezone(timezone_spec, instant)
    local = instant.astimezone(tz)
    start = datetime(local.year, local.month, local.day, tzinfo=tz)
    end = start + timedelta(days=1)
    return to_epoch_ms(start), to_epoch_ms(end) - 1
