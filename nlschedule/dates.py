"""Date resolver: turn the first date phrase in free text into an instant.

All calendar arithmetic happens on the user's local calendar day, derived
from the reference instant and the timezone offset in effect at that
instant. The result is epoch milliseconds (UTC).
"""
from datetime import date, datetime, time, timedelta, timezone
import calendar
import logging
import re
from typing import Callable, Optional

from dateparser.date import DateDataParser
from dateutil import parser as dateutil_parser
from dateutil.relativedelta import relativedelta

from . import config
from .patterns import (
    MONTH_ALT,
    MONTH_INDEX,
    WEEKDAY_ALT,
    WEEKDAY_INDEX,
    CatalogMatch,
    has_morning_qualifier,
    parse_time_of_day,
    resolvable_date_pattern,
)
from .timezones import resolve_offset_minutes, resolve_tzinfo
from .utils import coerce_instant, to_epoch_ms

logger = logging.getLogger(__name__)


class DateParseError(ValueError):
    """Raised when an absolute due string (ISO 8601 or similar) cannot be parsed."""


def _sunday_index(d: date) -> int:
    # python: Monday=0; ours: Sunday=0
    return (d.weekday() + 1) % 7


def _last_day_of_month(d: date) -> date:
    return d.replace(day=calendar.monthrange(d.year, d.month)[1])


def _upcoming(today: date, target: int, allow_today: bool) -> date:
    delta = target - _sunday_index(today)
    if delta < 0 or (delta == 0 and not allow_today):
        delta += 7
    return today + timedelta(days=delta)


def _end_of_week(today: date) -> date:
    return today + timedelta(days=(7 - _sunday_index(today)) % 7)


def _calendar_day(month: int, day: int, today: date, year: int | None = None) -> Optional[date]:
    """Month/day in the current year, or the next year that has it when already past.

    An explicit year is taken as-is. Returns None for impossible dates.
    """
    if not 1 <= month <= 12 or not 1 <= day <= 31:
        return None
    if year is not None:
        try:
            return date(year, month, day)
        except ValueError:
            return None
    # Feb 29 can be up to 8 years away
    for y in range(today.year, today.year + 9):
        try:
            candidate = date(y, month, day)
        except ValueError:
            continue
        if candidate >= today:
            return candidate
    return None


_RELATIVE_DAY_OFFSETS = {
    'today': 0, 'tonight': 0,
    'tomorrow': 1, 'tmrw': 1, 'tmr': 1,
    'yesterday': -1, 'yday': -1,
}


def _resolve_relative_day(text: str, today: date) -> Optional[date]:
    return today + timedelta(days=_RELATIVE_DAY_OFFSETS[text.lower()])


_PERIOD_RE = re.compile(r'(next|this|last)\s+(week|month|year)', re.IGNORECASE)
_IN_N_RE = re.compile(r'(\d+)\s+(day|week|month)', re.IGNORECASE)


def _resolve_relative_period(text: str, today: date) -> Optional[date]:
    m = _PERIOD_RE.fullmatch(text)
    if m:
        qualifier, unit = m.group(1).lower(), m.group(2).lower()
        if unit == 'week':
            if qualifier == 'this':
                return _end_of_week(today)
            return today + timedelta(days=7 if qualifier == 'next' else -7)
        if qualifier == 'this':
            return _last_day_of_month(today) if unit == 'month' else date(today.year, 12, 31)
        step = 1 if qualifier == 'next' else -1
        if unit == 'month':
            return today + relativedelta(months=step)
        return today + relativedelta(years=step)
    m = _IN_N_RE.search(text)
    n, unit = int(m.group(1)), m.group(2).lower()
    if unit == 'day':
        return today + timedelta(days=n)
    if unit == 'week':
        return today + timedelta(weeks=n)
    return today + relativedelta(months=n)


_WEEKDAY_RE = re.compile(r'(?:(next|this|last)\s+)?(' + WEEKDAY_ALT + r')', re.IGNORECASE)


def _resolve_weekday(text: str, today: date) -> Optional[date]:
    m = _WEEKDAY_RE.fullmatch(text)
    qualifier = (m.group(1) or '').lower()
    target = WEEKDAY_INDEX[m.group(2).lower()]
    if qualifier == 'last':
        back = (_sunday_index(today) - target) % 7 or 7
        return today - timedelta(days=back)
    # bare and 'next' skip today, 'this' accepts it
    return _upcoming(today, target, allow_today=(qualifier == 'this'))


_MONTH_RE = re.compile(MONTH_ALT, re.IGNORECASE)
_DAY_RE = re.compile(r'\d{1,2}')


def _resolve_month_day(text: str, today: date) -> Optional[date]:
    month = MONTH_INDEX[_MONTH_RE.search(text).group(0).lower()]
    day = int(_DAY_RE.search(text).group(0))
    return _calendar_day(month, day, today)


_ISO_DAY_RE = re.compile(r'(\d{4})-(\d{1,2})-(\d{1,2})')
_NUMERIC_RE = re.compile(r'(\d{1,2})[/.-](\d{1,2})(?:[/-](\d{4}|\d{2}))?')


def _resolve_numeric(text: str, today: date) -> Optional[date]:
    m = _ISO_DAY_RE.fullmatch(text)
    if m:
        return _calendar_day(int(m.group(2)), int(m.group(3)), today, year=int(m.group(1)))
    m = _NUMERIC_RE.fullmatch(text)
    if not m:
        return None
    a, b = int(m.group(1)), int(m.group(2))
    month, day = (b, a) if config.DATE_ORDER == 'DMY' else (a, b)
    year = None
    if m.group(3):
        year = int(m.group(3))
        if year < 100:
            year += 2000
    return _calendar_day(month, day, today, year=year)


def _quarter_end(year: int, quarter: int) -> date:
    return _last_day_of_month(date(year, quarter * 3, 1))


def _mid_month(today: date) -> date:
    if today.day <= 15:
        return today.replace(day=15)
    return (today + relativedelta(months=1)).replace(day=15)


def _mid_year(today: date) -> date:
    july = date(today.year, 7, 1)
    return july if today <= july else date(today.year + 1, 7, 1)


_SPECIAL_DAYS: dict[str, Callable[[date], date]] = {
    'endofweek': _end_of_week,
    'eow': _end_of_week,
    'beginningofweek': lambda today: _upcoming(today, 1, allow_today=False),
    'startofweek': lambda today: _upcoming(today, 1, allow_today=False),
    'bow': lambda today: _upcoming(today, 1, allow_today=False),
    'midweek': lambda today: _upcoming(today, 3, allow_today=True),
    'endofmonth': _last_day_of_month,
    'eom': _last_day_of_month,
    'beginningofmonth': lambda today: today.replace(day=1) + relativedelta(months=1),
    'startofmonth': lambda today: today.replace(day=1) + relativedelta(months=1),
    'bom': lambda today: today.replace(day=1) + relativedelta(months=1),
    'midmonth': _mid_month,
    'endofyear': lambda today: date(today.year, 12, 31),
    'eoy': lambda today: date(today.year, 12, 31),
    'beginningofyear': lambda today: date(today.year + 1, 1, 1),
    'startofyear': lambda today: date(today.year + 1, 1, 1),
    'boy': lambda today: date(today.year + 1, 1, 1),
    'midyear': _mid_year,
    'quarterend': lambda today: _quarter_end(today.year, (today.month - 1) // 3 + 1),
}


def _resolve_special(text: str, today: date) -> Optional[date]:
    key = re.sub(r'\bthe\b|[\s-]+', '', text.lower())
    m = re.fullmatch(r'q([1-4])', key)
    if m:
        end = _quarter_end(today.year, int(m.group(1)))
        return end if end >= today else _quarter_end(today.year + 1, int(m.group(1)))
    return _SPECIAL_DAYS[key](today)


_RESOLVERS: dict[str, Callable[[str, date], Optional[date]]] = {
    'relative_day': _resolve_relative_day,
    'relative_period': _resolve_relative_period,
    'weekdays': _resolve_weekday,
    'on_prefix': _resolve_month_day,
    'ordinal': _resolve_month_day,
    'no_prefix': _resolve_month_day,
    'numeric': _resolve_numeric,
    'special': _resolve_special,
}


def resolve_day(match: CatalogMatch, today: date) -> Optional[date]:
    """Calendar day named by a catalog match, relative to the local `today`."""
    text = re.sub(r'\s+', ' ', match.text.strip())
    return _RESOLVERS[match.category](text, today)


def time_of_day_minutes(text: str | None) -> int:
    """Clock time for a resolved day: explicit time, else morning, else the default."""
    explicit = parse_time_of_day(text)
    if explicit is not None:
        return explicit
    if has_morning_qualifier(text):
        return config.MORNING_DUE_MINUTES
    return config.DEFAULT_DUE_MINUTES


def local_wall_to_epoch_ms(day: date, minutes: int, offset_minutes: int) -> int:
    """Epoch ms for a local wall-clock time given the local offset from UTC."""
    wall = datetime.combine(day, time(), tzinfo=timezone.utc) + timedelta(minutes=minutes)
    return to_epoch_ms(wall) - offset_minutes * 60_000


def local_today(instant: datetime, offset_minutes: int) -> date:
    return (instant + timedelta(minutes=offset_minutes)).date()


def resolve_date(text: str | None, now=None, timezone_spec: str | None = None) -> Optional[int]:
    """Resolve the first date phrase in text to epoch milliseconds.

    `now` is the reference instant (datetime or epoch ms, default: the host
    clock) and `timezone_spec` the user's timezone (default:
    config.DEFAULT_TIMEZONE). Returns None when no phrase resolves.

    Phrases are tried left to right; one that names an impossible date
    (e.g. '4/31') is skipped in favour of the next.
    """
    if not text:
        return None
    instant = coerce_instant(now)
    spec = timezone_spec if timezone_spec is not None else config.DEFAULT_TIMEZONE
    offset = resolve_offset_minutes(spec, instant)
    today = local_today(instant, offset)
    for m in resolvable_date_pattern().finditer(text):
        day = resolve_day(CatalogMatch(m.start(), m.end(), m.lastgroup, m.group(0)), today)
        if day is None:
            logger.debug('date phrase %r does not name a real day', m.group(0))
            continue
        return local_wall_to_epoch_ms(day, time_of_day_minutes(text), offset)
    return None


_DATE_ONLY_RE = re.compile(r'\d{4}(?:-?\d{2}(?:-?\d{2})?)?')


def parse_due_string(value: str | None, timezone_spec: str | None = None, now=None) -> int:
    """Parse an absolute due string (e.g. from an LLM) into epoch milliseconds.

    ISO 8601 is tried first; otherwise dateparser with strict parsing.
    A value without a clock time lands on the default due time, and a value
    without an explicit offset is read as the user's local wall time.

    Raises DateParseError when the value cannot be parsed.
    """
    if not isinstance(value, str) or not value.strip():
        raise DateParseError(f'Invalid date string: {value!r}')
    raw = value.strip()
    zone = resolve_tzinfo(timezone_spec)
    instant = coerce_instant(now)
    try:
        dt = dateutil_parser.isoparse(raw)
        has_time = not _DATE_ONLY_RE.fullmatch(raw)
    except (ValueError, OverflowError):
        dt, has_time = _parse_loose(raw, instant.astimezone(zone))
    if not has_time:
        minutes = config.DEFAULT_DUE_MINUTES
        dt = datetime.combine(dt.date(), time(minutes // 60, minutes % 60))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=zone)
    return to_epoch_ms(dt)


def _parse_loose(raw: str, local_now: datetime) -> tuple[datetime, bool]:
    settings = {
        'STRICT_PARSING': True,
        'RETURN_TIME_AS_PERIOD': True,
        'DATE_ORDER': config.DATE_ORDER,
        'RELATIVE_BASE': local_now.replace(tzinfo=None),
        'PREFER_DATES_FROM': 'future',
    }
    try:
        data = DateDataParser(languages=['en'], settings=settings).get_date_data(raw)
    except (ValueError, OverflowError, TypeError) as e:
        raise DateParseError(f'Invalid date string: {raw!r}') from e
    if data is None or data.date_obj is None:
        raise DateParseError(f'Invalid date string: {raw!r}')
    return data.date_obj, data.period == 'time'
