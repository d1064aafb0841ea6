"""Natural-language scheduling: dates, recurrence rules and due-date roll-over."""
from .capture import CaptureBatch, CapturedTask, NormalizedTask, normalize_capture
from .dates import DateParseError, parse_due_string, resolve_date
from .patterns import (
    combined_date_pattern,
    combined_recurrence_pattern,
    date_patterns_by_category,
    find_date_matches,
    find_recurrence_matches,
    highlight_matches,
    parse_time_of_day,
    strip_time_of_day,
    recurrence_patterns_by_category,
)
from .projector import next_occurrence, project
from .recurrence import RecurrenceKind, RecurrenceRule, parse_recurrence, strip_recurrence_phrases
from .schedule import TaskSchedule, complete_task, plan_task
from .timezones import TimezoneOffset, resolve_offset, resolve_offset_minutes, today_range

__all__ = [
    'CaptureBatch', 'CapturedTask', 'NormalizedTask', 'normalize_capture',
    'DateParseError', 'parse_due_string', 'resolve_date',
    'combined_date_pattern', 'combined_recurrence_pattern', 'date_patterns_by_category',
    'find_date_matches', 'find_recurrence_matches', 'highlight_matches', 'parse_time_of_day',
    'recurrence_patterns_by_category', 'strip_time_of_day',
    'next_occurrence', 'project',
    'RecurrenceKind', 'RecurrenceRule', 'parse_recurrence', 'strip_recurrence_phrases',
    'TaskSchedule', 'complete_task', 'plan_task',
    'TimezoneOffset', 'resolve_offset', 'resolve_offset_minutes', 'today_range',
]
