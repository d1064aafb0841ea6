"""Project the next occurrence of a recurrence rule from a base instant."""
from datetime import datetime, timedelta, timezone
import calendar
import logging
from typing import Optional

from dateutil.relativedelta import relativedelta

from . import config
from .recurrence import RecurrenceKind, RecurrenceRule
from .timezones import resolve_tzinfo
from .utils import coerce_instant, to_epoch_ms

logger = logging.getLogger(__name__)

# 'skip' never needs more than a few months to find a 31st; this bounds the
# search for any anchor the rule model accepts.
_MAX_MONTH_SEARCH = 48


def _apply_time(dt: datetime, rule: RecurrenceRule, preserve_time_of_day: bool) -> datetime:
    if rule.anchor_time_of_day is not None:
        minutes = rule.anchor_time_of_day
    elif not preserve_time_of_day:
        minutes = config.DEFAULT_DUE_MINUTES
    else:
        return dt
    return dt.replace(hour=minutes // 60, minute=minutes % 60, second=0, microsecond=0)


def _on_day_of_month(month_start: datetime, day: int) -> Optional[datetime]:
    """month_start moved to `day`, following MONTHLY_ANCHOR_POLICY for short months.

    Returns None under 'skip' when the month has no such day.
    """
    length = calendar.monthrange(month_start.year, month_start.month)[1]
    if day > length:
        if config.MONTHLY_ANCHOR_POLICY == 'skip':
            return None
        day = length
    return month_start.replace(day=day)


def _next_anchored_month(rule: RecurrenceRule, base: datetime, preserve_time_of_day: bool) -> datetime:
    first = base.replace(day=1)
    months = 0
    for _ in range(_MAX_MONTH_SEARCH):
        candidate = _on_day_of_month(first + relativedelta(months=months), rule.anchor_day_of_month)
        if candidate is None:
            months += 1
            continue
        candidate = _apply_time(candidate, rule, preserve_time_of_day)
        if candidate > base:
            return candidate
        months += rule.interval
    # unreachable for valid rules; keep the function total
    logger.error('no month with day %s found after %s', rule.anchor_day_of_month, base)
    return _apply_time(base + relativedelta(months=rule.interval), rule, preserve_time_of_day)


def project(rule: RecurrenceRule, base: datetime, preserve_time_of_day: bool = True) -> datetime:
    """Next occurrence of rule strictly after base, as an aware datetime.

    Calendar arithmetic runs in base's own timezone, so the wall-clock time
    survives DST changes. A naive base is taken as UTC.
    """
    if base.tzinfo is None:
        base = base.replace(tzinfo=timezone.utc)

    if rule.kind is RecurrenceKind.DAILY:
        result = base + timedelta(days=rule.interval)
    elif rule.kind is RecurrenceKind.WEEKLY:
        if rule.anchor_day_of_week is not None:
            current = (base.weekday() + 1) % 7
            days = rule.anchor_day_of_week - current
            if days <= 0:
                days += 7
            result = base + timedelta(days=days + 7 * (rule.interval - 1))
        else:
            result = base + timedelta(weeks=rule.interval)
    elif rule.kind is RecurrenceKind.MONTHLY:
        if rule.anchor_day_of_month is not None:
            return _next_anchored_month(rule, base, preserve_time_of_day)
        result = base + relativedelta(months=rule.interval)
    else:
        result = base + relativedelta(years=rule.interval)
    return _apply_time(result, rule, preserve_time_of_day)


def next_occurrence(rule: RecurrenceRule, base, preserve_time_of_day: bool = True,
                    timezone_spec: str | None = None) -> int:
    """Epoch-millisecond form of project().

    `base` is epoch ms or a datetime; the calendar is the user's timezone
    (default: config.DEFAULT_TIMEZONE).
    """
    tz = resolve_tzinfo(timezone_spec)
    local = coerce_instant(base).astimezone(tz)
    return to_epoch_ms(project(rule, local, preserve_time_of_day))
