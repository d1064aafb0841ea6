"""Recurrence rules: the value type and the phrase parser.

parse_recurrence() checks a fixed list of phrase shapes in precedence
order and returns on the first hit:

    every day / daily            -> daily
    every 3 days                 -> daily, interval 3
    every week / weekly          -> weekly
    every 2 weeks                -> weekly, interval 2
    every monday                 -> weekly, anchored to Monday
    every month / monthly        -> monthly
    every 2 months               -> monthly, interval 2
    every 15th / on the 1st      -> monthly, anchored to that day
    every year / annually        -> yearly
    every 2 years                -> yearly, interval 2
"""
from datetime import datetime
from enum import Enum
import logging
import re
from typing import Any, Mapping, Optional

from dateutil import rrule as _rrule
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from .patterns import (
    NOT_A_UNIT,
    ORDINAL_SUFFIX,
    WEEKDAY_FULL_ALT,
    WEEKDAY_NAMES,
    combined_recurrence_pattern,
    parse_time_of_day,
)
from .utils import collapse_whitespace

logger = logging.getLogger(__name__)


class RecurrenceKind(str, Enum):
    DAILY = 'daily'
    WEEKLY = 'weekly'
    MONTHLY = 'monthly'
    YEARLY = 'yearly'


_UNIT_NAMES = {
    RecurrenceKind.DAILY: 'day',
    RecurrenceKind.WEEKLY: 'week',
    RecurrenceKind.MONTHLY: 'month',
    RecurrenceKind.YEARLY: 'year',
}

# RFC 5545 day codes indexed Sunday=0
_BYDAY_CODES = ['SU', 'MO', 'TU', 'WE', 'TH', 'FR', 'SA']
# dateutil counts Monday=0
_DATEUTIL_WEEKDAYS = [_rrule.SU, _rrule.MO, _rrule.TU, _rrule.WE, _rrule.TH, _rrule.FR, _rrule.SA]
_RRULE_FREQ = {
    RecurrenceKind.DAILY: _rrule.DAILY,
    RecurrenceKind.WEEKLY: _rrule.WEEKLY,
    RecurrenceKind.MONTHLY: _rrule.MONTHLY,
    RecurrenceKind.YEARLY: _rrule.YEARLY,
}


def ordinal(n: int) -> str:
    if 10 <= n % 100 <= 20:
        suffix = 'th'
    else:
        suffix = {1: 'st', 2: 'nd', 3: 'rd'}.get(n % 10, 'th')
    return f'{n}{suffix}'


class RecurrenceRule(BaseModel):
    """A repeat cadence: kind, interval, optional anchor and time of day.

    At most one anchor is set, and only for the matching kind
    (day-of-week for weekly, day-of-month for monthly).
    """
    model_config = ConfigDict(frozen=True)

    kind: RecurrenceKind
    interval: int = Field(default=1, ge=1)
    anchor_day_of_week: Optional[int] = Field(default=None, ge=0, le=6)
    anchor_day_of_month: Optional[int] = Field(default=None, ge=1, le=31)
    anchor_time_of_day: Optional[int] = Field(default=None, ge=0, le=1439)

    @model_validator(mode='after')
    def _check_anchors(self):
        if self.anchor_day_of_week is not None and self.kind is not RecurrenceKind.WEEKLY:
            raise ValueError('anchor_day_of_week is only valid for weekly rules')
        if self.anchor_day_of_month is not None and self.kind is not RecurrenceKind.MONTHLY:
            raise ValueError('anchor_day_of_month is only valid for monthly rules')
        return self

    def describe(self) -> str:
        """Canonical English phrase for the rule; parse_recurrence() reads it back."""
        if self.anchor_day_of_week is not None:
            day = WEEKDAY_NAMES[self.anchor_day_of_week]
            phrase = f'every {day}' if self.interval == 1 else f'every {self.interval} weeks on {day}'
        elif self.anchor_day_of_month is not None:
            nth = ordinal(self.anchor_day_of_month)
            phrase = f'every {nth}' if self.interval == 1 else f'every {self.interval} months on the {nth}'
        else:
            unit = _UNIT_NAMES[self.kind]
            phrase = f'every {unit}' if self.interval == 1 else f'every {self.interval} {unit}s'
        if self.anchor_time_of_day is not None:
            hours, minutes = divmod(self.anchor_time_of_day, 60)
            phrase += f' at {hours:02d}:{minutes:02d}'
        return phrase

    def to_rrule_string(self) -> str:
        """Export as an RFC 5545 RRULE body (no leading 'RRULE:')."""
        parts = [f'FREQ={self.kind.value.upper()}']
        if self.interval != 1:
            parts.append(f'INTERVAL={self.interval}')
        if self.anchor_day_of_month is not None:
            parts.append(f'BYMONTHDAY={self.anchor_day_of_month}')
        if self.anchor_day_of_week is not None:
            parts.append(f'BYDAY={_BYDAY_CODES[self.anchor_day_of_week]}')
        if self.anchor_time_of_day is not None:
            hours, minutes = divmod(self.anchor_time_of_day, 60)
            parts.append(f'BYHOUR={hours};BYMINUTE={minutes}')
        return ';'.join(parts)

    def build_rrule(self, dtstart: datetime):
        """Build a dateutil.rrule.rrule starting at dtstart.

        Note that RFC 5545 skips months lacking BYMONTHDAY; next_occurrence()
        applies the configured clamp/skip policy instead.
        """
        params: dict[str, Any] = {'freq': _RRULE_FREQ[self.kind], 'interval': self.interval}
        if self.anchor_day_of_week is not None:
            params['byweekday'] = (_DATEUTIL_WEEKDAYS[self.anchor_day_of_week],)
        if self.anchor_day_of_month is not None:
            params['bymonthday'] = self.anchor_day_of_month
        if self.anchor_time_of_day is not None:
            hours, minutes = divmod(self.anchor_time_of_day, 60)
            params.update(byhour=hours, byminute=minutes, bysecond=0)
        return _rrule.rrule(dtstart=dtstart, **params)

    def to_task_fields(self) -> dict:
        """Values for the recurring* fields of a task record."""
        return {
            'isRecurring': True,
            'recurringPattern': self.kind.value,
            'recurringInterval': self.interval,
            'recurringDayOfWeek': self.anchor_day_of_week,
            'recurringDayOfMonth': self.anchor_day_of_month,
            'recurringTime': self.anchor_time_of_day,
        }

    @classmethod
    def from_task_fields(cls, fields: Mapping[str, Any]) -> Optional['RecurrenceRule']:
        """Rebuild the rule stored on a task record, or None for one-off tasks.

        Stored anchors that do not belong to the stored kind are ignored.
        Records whose fields do not form a valid rule also give None.
        """
        if not fields.get('isRecurring') or not fields.get('recurringPattern'):
            return None
        try:
            kind = RecurrenceKind(str(fields['recurringPattern']).lower())
        except ValueError:
            logger.warning('unknown recurringPattern %r on task record', fields.get('recurringPattern'))
            return None
        interval = fields.get('recurringInterval') or 1
        dow = fields.get('recurringDayOfWeek') if kind is RecurrenceKind.WEEKLY else None
        dom = fields.get('recurringDayOfMonth') if kind is RecurrenceKind.MONTHLY else None
        try:
            return cls(
                kind=kind,
                interval=max(1, int(interval)),
                anchor_day_of_week=dow,
                anchor_day_of_month=dom,
                anchor_time_of_day=fields.get('recurringTime'),
            )
        except (ValidationError, TypeError, ValueError) as e:
            logger.warning('invalid recurrence fields on task record: %s', e)
            return None


_DAILY_IDIOM = re.compile(r'\b(?:every\s+day|daily|each\s+day|everyday)\b', re.IGNORECASE)
_WEEKLY_IDIOM = re.compile(r'\b(?:every\s+week|weekly|each\s+week)\b', re.IGNORECASE)
_MONTHLY_IDIOM = re.compile(r'\b(?:every\s+month|monthly|each\s+month)\b', re.IGNORECASE)
_YEARLY_IDIOM = re.compile(r'\b(?:every\s+year|yearly|each\s+year|annually)\b', re.IGNORECASE)


def _every_n(unit: str) -> re.Pattern:
    return re.compile(r'\b(?:every|each)\s+(\d+)\s+' + unit + r's?\b', re.IGNORECASE)


_EVERY_N_DAYS = _every_n('day')
_EVERY_N_WEEKS = _every_n('week')
_EVERY_N_MONTHS = _every_n('month')
_EVERY_N_YEARS = _every_n('year')
# only every/each: 'on monday' is a plain date reference, not a cadence
_EVERY_WEEKDAY = re.compile(r'\b(?:every|each)\s+(' + WEEKDAY_FULL_ALT + r')s?\b', re.IGNORECASE)
_DAY_OF_MONTH = re.compile(
    r'\b(?:every|each|on\s+the)\s+(\d{1,2})' + ORDINAL_SUFFIX + r'?\b' + NOT_A_UNIT,
    re.IGNORECASE,
)


def _interval(pattern: re.Pattern, text: str) -> Optional[int]:
    for m in pattern.finditer(text):
        n = int(m.group(1))
        if n >= 1:
            return n
    return None


def _detect(text: str) -> Optional[tuple[RecurrenceKind, int, Optional[int], Optional[int]]]:
    if _DAILY_IDIOM.search(text):
        return RecurrenceKind.DAILY, 1, None, None
    n = _interval(_EVERY_N_DAYS, text)
    if n:
        return RecurrenceKind.DAILY, n, None, None
    if _WEEKLY_IDIOM.search(text):
        return RecurrenceKind.WEEKLY, 1, None, None
    n = _interval(_EVERY_N_WEEKS, text)
    if n:
        return RecurrenceKind.WEEKLY, n, None, None
    m = _EVERY_WEEKDAY.search(text)
    if m:
        return RecurrenceKind.WEEKLY, 1, WEEKDAY_NAMES.index(m.group(1).lower()), None
    if _MONTHLY_IDIOM.search(text):
        return RecurrenceKind.MONTHLY, 1, None, None
    n = _interval(_EVERY_N_MONTHS, text)
    if n:
        return RecurrenceKind.MONTHLY, n, None, None
    for m in _DAY_OF_MONTH.finditer(text):
        day = int(m.group(1))
        # no month has day 0 or 32+
        if 1 <= day <= 31:
            return RecurrenceKind.MONTHLY, 1, None, day
    if _YEARLY_IDIOM.search(text):
        return RecurrenceKind.YEARLY, 1, None, None
    n = _interval(_EVERY_N_YEARS, text)
    if n:
        return RecurrenceKind.YEARLY, n, None, None
    return None


def parse_recurrence(text: str | None) -> Optional[RecurrenceRule]:
    """Detect a recurrence phrase in free text.

    Returns None when the text has no recognizable cadence. An explicit
    clock time anywhere in the text becomes the rule's anchor time.
    """
    if not text:
        return None
    found = _detect(text)
    if found is None:
        return None
    kind, interval, dow, dom = found
    return RecurrenceRule(
        kind=kind,
        interval=interval,
        anchor_day_of_week=dow,
        anchor_day_of_month=dom,
        anchor_time_of_day=parse_time_of_day(text),
    )


def strip_recurrence_phrases(text: str | None) -> str:
    """Remove every recurrence phrase from text, e.g. to clean a task title.

    'Pay rent on the 1st' -> 'Pay rent'
    """
    if not text:
        return ''
    return collapse_whitespace(combined_recurrence_pattern().sub(' ', text))
