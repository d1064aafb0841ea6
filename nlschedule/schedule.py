"""Schedule merge: quick-add text to task fields, and completion roll-over.

plan_task() runs the recurrence parser and the date resolver over the same
text and merges their answers into the fields stored on a task record.
complete_task() computes the record's next due instant once a recurring
task is checked off.
"""
from datetime import date, datetime, timedelta
import calendar
import logging
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from . import config
from .dates import local_today, local_wall_to_epoch_ms, resolve_date, time_of_day_minutes
from .patterns import strip_time_of_day
from .projector import next_occurrence
from .recurrence import RecurrenceKind, RecurrenceRule, parse_recurrence, strip_recurrence_phrases
from .timezones import resolve_offset_minutes, resolve_tzinfo
from .utils import coerce_instant, extract_hashtags, from_epoch_ms, remove_hashtags_from_text

logger = logging.getLogger(__name__)


class TaskSchedule(BaseModel):
    """Schedule fields of a task record; camelCase on the wire."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    title: str = ''
    due: Optional[int] = None
    is_recurring: bool = False
    recurring_pattern: Optional[str] = None
    recurring_interval: Optional[int] = None
    recurring_day_of_week: Optional[int] = None
    recurring_day_of_month: Optional[int] = None
    recurring_time: Optional[int] = None
    original_due_date: Optional[int] = None
    next_due_date: Optional[int] = None
    hashtags: list[str] = []

    def recurrence_rule(self) -> Optional[RecurrenceRule]:
        return RecurrenceRule.from_task_fields(self.model_dump(by_alias=True))


def _first_anchor_day(rule: RecurrenceRule, today: date) -> date:
    """First day a freshly created recurring task is due when no date was typed."""
    if rule.kind is RecurrenceKind.WEEKLY and rule.anchor_day_of_week is not None:
        days = rule.anchor_day_of_week - (today.weekday() + 1) % 7
        if days <= 0:
            days += 7
        return today + timedelta(days=days)
    if rule.kind is RecurrenceKind.MONTHLY and rule.anchor_day_of_month is not None:
        year, month = today.year, today.month
        while True:
            length = calendar.monthrange(year, month)[1]
            day = rule.anchor_day_of_month
            if day > length and config.MONTHLY_ANCHOR_POLICY == 'clamp':
                day = length
            if day <= length and date(year, month, day) >= today:
                return date(year, month, day)
            year, month = (year + 1, 1) if month == 12 else (year, month + 1)
    return today


def plan_task(text: str | None, now=None, timezone_spec: str | None = None,
              default_to_today: bool = False) -> TaskSchedule:
    """Compute initial schedule fields for a task typed as free text.

    An explicit date in the text always wins. A recurring task without one
    starts on its first anchor day (or today). A one-off task without a date
    is left undated unless default_to_today is set, as the Today view does.
    """
    instant = coerce_instant(now)
    spec = timezone_spec if timezone_spec is not None else config.DEFAULT_TIMEZONE
    hashtags = extract_hashtags(text)
    body = remove_hashtags_from_text(text)

    rule = parse_recurrence(body) if config.ENABLE_RECURRING_DETECTION else None
    due = resolve_date(body, instant, spec)
    if due is None and (rule is not None or default_to_today):
        offset = resolve_offset_minutes(spec, instant)
        today = local_today(instant, offset)
        day = _first_anchor_day(rule, today) if rule is not None else today
        due = local_wall_to_epoch_ms(day, time_of_day_minutes(body), offset)

    title = body
    if rule is not None:
        title = strip_recurrence_phrases(body)
        if rule.anchor_time_of_day is not None:
            title = strip_time_of_day(title)
    schedule = TaskSchedule(
        title=title,
        due=due,
        hashtags=hashtags,
    )
    if rule is None:
        return schedule
    logger.debug('recurrence %s detected in %r', rule.to_rrule_string(), text)
    return schedule.model_copy(update={
        'is_recurring': True,
        'recurring_pattern': rule.kind.value,
        'recurring_interval': rule.interval,
        'recurring_day_of_week': rule.anchor_day_of_week,
        'recurring_day_of_month': rule.anchor_day_of_month,
        'recurring_time': rule.anchor_time_of_day,
        'original_due_date': due,
    })


def complete_task(schedule: TaskSchedule, completed_at=None,
                  timezone_spec: str | None = None) -> Optional[TaskSchedule]:
    """Roll a recurring task forward after it was completed.

    Returns a copy with `due` and `nextDueDate` set to the next occurrence,
    or None when the schedule does not recur. With COMPLETION_BASE
    'completion' the next occurrence counts from the completion day, keeping
    the task's own time of day; with 'due' it counts from the previous due.
    """
    rule = schedule.recurrence_rule()
    if rule is None:
        return None
    tz = resolve_tzinfo(timezone_spec)
    if config.COMPLETION_BASE == 'due' and schedule.due is not None:
        base = from_epoch_ms(schedule.due, tz)
    else:
        base = coerce_instant(completed_at).astimezone(tz)
        if schedule.due is not None:
            due_local = from_epoch_ms(schedule.due, tz)
            base = datetime.combine(base.date(), due_local.time(), tzinfo=tz)
    next_ms = next_occurrence(rule, base, preserve_time_of_day=schedule.due is not None,
                              timezone_spec=timezone_spec)
    return schedule.model_copy(update={'due': next_ms, 'next_due_date': next_ms})
