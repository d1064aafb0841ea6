from datetime import datetime, timedelta, timezone
import logging
import re

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_MS = timedelta(milliseconds=1)


def now_utc() -> datetime:
    """Return timezone-aware current UTC datetime."""
    return datetime.now(timezone.utc)


def to_epoch_ms(dt: datetime) -> int:
    """Convert a datetime to integer epoch milliseconds.

    Naive datetimes are treated as UTC.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return (dt - EPOCH) // _ONE_MS


def from_epoch_ms(ms: int, tz=timezone.utc) -> datetime:
    """Return the aware datetime for epoch milliseconds, expressed in tz."""
    return (EPOCH + timedelta(milliseconds=int(ms))).astimezone(tz)


def coerce_instant(value) -> datetime:
    """Normalize a reference instant into an aware UTC datetime.

    - None means "now" (host wall-clock).
    - int/float values are epoch milliseconds.
    - naive datetimes are treated as UTC; aware ones are converted.
    """
    if value is None:
        return now_utc()
    if isinstance(value, bool):
        raise TypeError('instant must be a datetime or epoch milliseconds, not bool')
    if isinstance(value, (int, float)):
        return from_epoch_ms(int(value))
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    raise TypeError(f'instant must be a datetime or epoch milliseconds, not {type(value).__name__}')


def normalize_hashtag(tag: str) -> str:
    """Normalize a hashtag: strip whitespace, ensure it starts with '#'.

    The body is lowercased; a ValueError is raised for empty or
    non-alphanumeric tags.
    """
    t = tag.strip()
    if not t.startswith('#'):
        t = '#' + t
    body = t[1:]
    if not body:
        raise ValueError("invalid hashtag: empty")
    # first char must be a letter
    if not re.fullmatch(r"[A-Za-z][A-Za-z0-9_]*", body):
        raise ValueError("invalid hashtag: must start with a letter and be alphanumeric after '#'")
    return '#' + body.lower()


def extract_hashtags(text: str | None) -> list[str]:
    """Extract hashtags from quick-add text, normalized and de-duplicated in order.

    The first tag is what callers treat as the project hint.
    """
    if not text:
        return []
    seen: set[str] = set()
    out: list[str] = []
    for m in re.finditer(r"(?:(?<=\s)|^)#([A-Za-z][A-Za-z0-9_]*)(?=\s|$)", text):
        try:
            n = normalize_hashtag(m.group(1))
        except ValueError:
            continue
        if n not in seen:
            seen.add(n)
            out.append(n)
    return out


def remove_hashtags_from_text(text: str | None) -> str:
    """Remove hashtag tokens (e.g. #work) from text and collapse whitespace."""
    if not text:
        return ""
    cleaned = re.sub(r"(^|\s)#[A-Za-z][A-Za-z0-9_]*(?=\s|$)", lambda m: (" " if m.group(1) else ""), text)
    return collapse_whitespace(cleaned)


def collapse_whitespace(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()
