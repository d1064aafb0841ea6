"""Pattern catalog for date and recurrence phrases.

Each registry maps a category name to an ordered list of regex sources.
Everything is compiled case-insensitively once and cached; compiled Python
patterns keep no scan position, so every finditer()/search() call starts
from a fresh state and concurrent callers cannot interfere.
"""
from functools import lru_cache
import re
from typing import NamedTuple, Optional

# Sunday=0 .. Saturday=6
WEEKDAY_NAMES = ['sunday', 'monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday']

WEEKDAY_INDEX = {
    'sunday': 0, 'sun': 0,
    'monday': 1, 'mon': 1,
    'tuesday': 2, 'tues': 2, 'tue': 2,
    'wednesday': 3, 'wed': 3,
    'thursday': 4, 'thurs': 4, 'thu': 4,
    'friday': 5, 'fri': 5,
    'saturday': 6, 'sat': 6,
}

MONTH_INDEX = {
    'january': 1, 'jan': 1, 'february': 2, 'feb': 2, 'march': 3, 'mar': 3,
    'april': 4, 'apr': 4, 'may': 5, 'june': 6, 'jun': 6, 'july': 7, 'jul': 7,
    'august': 8, 'aug': 8, 'september': 9, 'sept': 9, 'sep': 9,
    'october': 10, 'oct': 10, 'november': 11, 'nov': 11, 'december': 12, 'dec': 12,
}

# Longer spellings first so alternation prefers 'sept' over 'sep' etc.
WEEKDAY_ALT = r'(?:' + '|'.join(sorted(WEEKDAY_INDEX, key=len, reverse=True)) + r')'
WEEKDAY_FULL_ALT = r'(?:' + '|'.join(WEEKDAY_NAMES) + r')'
MONTH_ALT = r'(?:' + '|'.join(sorted(MONTH_INDEX, key=len, reverse=True)) + r')'
ORDINAL_SUFFIX = r'(?:st|nd|rd|th)'

# A bare number after every/each/on the is a day of month unless a unit or
# clock marker follows it ('every 2 years', 'every 2 hours', 'each 9am').
NOT_A_UNIT = r'(?!\s*(?:days?|weeks?|months?|years?|hours?|hrs?|minutes?|mins?|am|pm)\b)(?!:\d)'

DATE_PATTERNS: dict[str, list[str]] = {
    'relative_day': [
        r'\b(?:today|tonight)\b',
        r'\b(?:tomorrow|tmrw|tmr)\b',
        r'\b(?:yesterday|yday)\b',
    ],
    'relative_period': [
        r'\b(?:next|this|last)\s+(?:week|month|year)\b',
        r'\bin\s+\d{1,3}\s+(?:days?|weeks?|months?)\b',
        r'\b\d{1,3}\s+(?:days?|weeks?|months?)\s+from\s+now\b',
    ],
    'weekdays': [
        r'\b(?:next|this|last)\s+' + WEEKDAY_ALT + r'\b',
        r'\b' + WEEKDAY_ALT + r'\b',
    ],
    'on_prefix': [
        r'\bon\s+' + MONTH_ALT + r'\.?\s+\d{1,2}' + ORDINAL_SUFFIX + r'?\b',
        r'\bon\s+(?:the\s+)?\d{1,2}' + ORDINAL_SUFFIX + r'?\s+(?:of\s+)?' + MONTH_ALT + r'\b',
    ],
    'ordinal': [
        r'\b\d{1,2}' + ORDINAL_SUFFIX + r'\s+(?:of\s+)?' + MONTH_ALT + r'\b',
    ],
    'no_prefix': [
        r'\b' + MONTH_ALT + r'\.?\s+\d{1,2}' + ORDINAL_SUFFIX + r'?\b',
        r'\b\d{1,2}\s+' + MONTH_ALT + r'\b',
    ],
    'numeric': [
        r'\b\d{4}-\d{1,2}-\d{1,2}\b',
        r'\b\d{1,2}/\d{1,2}/(?:\d{4}|\d{2})\b',
        r'\b\d{1,2}-\d{1,2}-(?:\d{4}|\d{2})\b',
        # '5.30pm' is a clock time, not May 30
        r'\b\d{1,2}[/.-]\d{1,2}\b(?!\s*(?:am|pm)\b)',
    ],
    'special': [
        r'\b(?:end\s+of\s+(?:the\s+)?week|eow)\b',
        r'\b(?:(?:beginning|start)\s+of\s+(?:the\s+)?week|bow)\b',
        r'\bmid[-\s]?week\b',
        r'\b(?:end\s+of\s+(?:the\s+)?month|eom)\b',
        r'\b(?:(?:beginning|start)\s+of\s+(?:the\s+)?month|bom)\b',
        r'\bmid[-\s]?month\b',
        r'\b(?:end\s+of\s+(?:the\s+)?year|eoy)\b',
        r'\b(?:(?:beginning|start)\s+of\s+(?:the\s+)?year|boy)\b',
        r'\bmid[-\s]?year\b',
        r'\b(?:quarter\s+end|q[1-4])\b',
    ],
    'time': [
        r'\b(?:at|by)\s+\d{1,2}(?::\d{2})?\s*(?:am|pm)\b',
        r'\b(?:at|by)\s+\d{1,2}:\d{2}\b',
        r'\b\d{1,2}:\d{2}\s*(?:am|pm)\b',
        r'\b\d{1,2}:\d{2}\b',
        r'\b\d{1,2}\s*(?:am|pm)\b',
    ],
    'months': [
        r'\b' + MONTH_ALT + r'\b',
    ],
}

RECURRENCE_PATTERNS: dict[str, list[str]] = {
    'daily': [
        r'\b(?:every\s+day|daily|each\s+day|everyday)\b',
        r'\b(?:every|each)\s+\d+\s+days?\b',
        r'\b\d+\s+days?\s+apart\b',
    ],
    'weekly': [
        r'\b(?:every\s+week|weekly|each\s+week)\b',
        r'\b(?:every|each)\s+\d+\s+weeks?\b',
        r'\b\d+\s+weeks?\s+apart\b',
        r'\b(?:every|each|on)\s+' + WEEKDAY_FULL_ALT + r's?\b',
    ],
    'monthly': [
        r'\b(?:every\s+month|monthly|each\s+month)\b',
        r'\b(?:every|each)\s+\d+\s+months?\b',
        r'\b\d+\s+months?\s+apart\b',
        r'\b(?:every|each|on\s+the)\s+\d{1,2}' + ORDINAL_SUFFIX + r'?\b' + NOT_A_UNIT,
    ],
    'yearly': [
        r'\b(?:every\s+year|yearly|each\s+year|annually)\b',
        r'\b(?:every|each)\s+\d+\s+years?\b',
        r'\b\d+\s+years?\s+apart\b',
    ],
}

# Categories the date resolver can turn into a calendar day, in precedence
# order. Bare month names and clock times are recognized for highlighting
# but carry no day on their own.
RESOLVABLE_DATE_CATEGORIES = (
    'relative_day', 'relative_period', 'weekdays',
    'on_prefix', 'ordinal', 'no_prefix', 'numeric', 'special',
)

# Order used for the scanning/highlighting matcher.
HIGHLIGHT_DATE_CATEGORIES = RESOLVABLE_DATE_CATEGORIES + ('time', 'months')


class CatalogMatch(NamedTuple):
    start: int
    end: int
    category: str
    text: str


class Highlight(NamedTuple):
    start: int
    length: int
    category: str  # 'date' or 'recurrence'
    text: str


def _combine(registry: dict[str, list[str]], categories) -> re.Pattern:
    parts = []
    for cat in categories:
        parts.append('(?P<' + cat + '>' + '|'.join(registry[cat]) + ')')
    return re.compile('|'.join(parts), re.IGNORECASE)


def date_patterns_by_category(category: str) -> list[re.Pattern]:
    """Compiled patterns for one date category; KeyError for unknown names."""
    return list(_compiled_category('date', category))


def recurrence_patterns_by_category(category: str) -> list[re.Pattern]:
    """Compiled patterns for one recurrence category; KeyError for unknown names."""
    return list(_compiled_category('recurrence', category))


@lru_cache(maxsize=None)
def _compiled_category(kind: str, category: str) -> tuple[re.Pattern, ...]:
    registry = DATE_PATTERNS if kind == 'date' else RECURRENCE_PATTERNS
    return tuple(re.compile(src, re.IGNORECASE) for src in registry[category])


@lru_cache(maxsize=None)
def combined_date_pattern() -> re.Pattern:
    """Single matcher over every date category (used for scanning/highlighting)."""
    return _combine(DATE_PATTERNS, HIGHLIGHT_DATE_CATEGORIES)


@lru_cache(maxsize=None)
def resolvable_date_pattern() -> re.Pattern:
    """Single matcher over the categories the date resolver understands."""
    return _combine(DATE_PATTERNS, RESOLVABLE_DATE_CATEGORIES)


@lru_cache(maxsize=None)
def combined_recurrence_pattern() -> re.Pattern:
    return _combine(RECURRENCE_PATTERNS, ('daily', 'weekly', 'monthly', 'yearly'))


def _scan(pattern: re.Pattern, text: str | None) -> list[CatalogMatch]:
    if not text:
        return []
    return [CatalogMatch(m.start(), m.end(), m.lastgroup, m.group(0)) for m in pattern.finditer(text)]


def find_date_matches(text: str | None) -> list[CatalogMatch]:
    return _scan(combined_date_pattern(), text)


def find_recurrence_matches(text: str | None) -> list[CatalogMatch]:
    return _scan(combined_recurrence_pattern(), text)


def first_resolvable_date(text: str | None) -> Optional[CatalogMatch]:
    """Leftmost resolvable date phrase in text, or None."""
    if not text:
        return None
    m = resolvable_date_pattern().search(text)
    if m is None:
        return None
    return CatalogMatch(m.start(), m.end(), m.lastgroup, m.group(0))


def highlight_matches(text: str | None) -> list[Highlight]:
    """Spans to render as inline badges, ordered by position.

    Recurrence phrases are collected first; date spans that overlap one of
    them are dropped so 'every monday' renders as a single recurrence badge.
    """
    recurring = find_recurrence_matches(text)
    out = [Highlight(m.start, m.end - m.start, 'recurrence', m.text) for m in recurring]
    for m in find_date_matches(text):
        if any(m.start < r.end and r.start < m.end for r in recurring):
            continue
        out.append(Highlight(m.start, m.end - m.start, 'date', m.text))
    out.sort(key=lambda h: h.start)
    return out


# --- clock time extraction ---

_TIME_PATTERNS = [
    re.compile(r'\b(\d{1,2}):(\d{2})\s*(am|pm)?\b', re.IGNORECASE),
    re.compile(r'\b(\d{1,2})()\s*(am|pm)\b', re.IGNORECASE),
    re.compile(r'\b(?:at|by)\s+(\d{1,2})()()\b(?![/.:-]\d)', re.IGNORECASE),
]
_MORNING_RE = re.compile(r'\bmornings?\b', re.IGNORECASE)
_TIME_PREFIX_RE = re.compile(r'\b(?:at|by)\s*$', re.IGNORECASE)


def _find_time_of_day(text: str) -> Optional[tuple[re.Match, int]]:
    for pat in _TIME_PATTERNS:
        for m in pat.finditer(text):
            hour = int(m.group(1))
            minute = int(m.group(2) or 0)
            ampm = (m.group(3) or '').lower()
            if minute > 59:
                continue
            if ampm:
                if not 1 <= hour <= 12:
                    continue
                if ampm == 'pm' and hour != 12:
                    hour += 12
                if ampm == 'am' and hour == 12:
                    hour = 0
            elif hour > 23:
                continue
            return m, hour * 60 + minute
    return None


def parse_time_of_day(text: str | None) -> Optional[int]:
    """Return minutes since midnight for the first clock time in text.

    Understands '15:30', '3:30 pm', '9am', 'at 9'. Out-of-range values
    ('25:00', '13pm') are ignored.
    """
    if not text:
        return None
    found = _find_time_of_day(text)
    return found[1] if found else None


def strip_time_of_day(text: str | None) -> str:
    """Remove the clock time parse_time_of_day() reads, with its 'at'/'by'."""
    if not text:
        return ''
    found = _find_time_of_day(text)
    if found is None:
        return text
    m = found[0]
    head = _TIME_PREFIX_RE.sub('', text[:m.start()])
    return re.sub(r'\s+', ' ', head + ' ' + text[m.end():]).strip()


def has_morning_qualifier(text: str | None) -> bool:
    return bool(text) and _MORNING_RE.search(text) is not None
