from datetime import datetime
import logging
import sys
from typing import Optional, Union

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, ValidationError

from . import config
from .capture import CaptureBatch, CatalogEntry, NormalizedTask, normalize_capture
from .dates import DateParseError
from .patterns import highlight_matches
from .recurrence import parse_recurrence
from .schedule import TaskSchedule, complete_task, plan_task
from .timezones import resolve_offset, today_range
from .utils import from_epoch_ms

logger = logging.getLogger(__name__)
# Make package log output visible on the server console when the host
# application did not configure logging.
_pkg_logger = logging.getLogger('nlschedule')
if not _pkg_logger.handlers:
    handler = logging.StreamHandler(sys.stdout)
    formatter = logging.Formatter('%(asctime)s %(levelname)s:%(name)s: %(message)s')
    handler.setFormatter(formatter)
    _pkg_logger.addHandler(handler)
_pkg_logger.setLevel(getattr(logging, config.LOG_LEVEL, logging.INFO))

app = FastAPI(title='nlschedule')

# epoch milliseconds or an ISO 8601 datetime
Instant = Union[int, datetime]


class ParseRequest(BaseModel):
    text: str
    timezone: Optional[str] = None
    now: Optional[Instant] = None
    default_to_today: bool = False


class ParseRRuleRequest(BaseModel):
    text: str
    timezone: Optional[str] = None
    now: Optional[Instant] = None


class ParseRRuleResponse(BaseModel):
    dtstart: str | None
    rrule: str
    rule: dict | None


class CompleteRequest(BaseModel):
    schedule: TaskSchedule
    completed_at: Optional[Instant] = None
    timezone: Optional[str] = None


class HighlightRequest(BaseModel):
    text: str


class CaptureRequest(BaseModel):
    tasks: list[dict]
    project_catalog: list[CatalogEntry] = []
    label_catalog: list[CatalogEntry] = []
    timezone: Optional[str] = None
    now: Optional[Instant] = None


@app.post('/parse')
async def api_parse(req: ParseRequest):
    """Schedule fields for quick-add text."""
    schedule = plan_task(req.text, now=req.now, timezone_spec=req.timezone,
                         default_to_today=req.default_to_today)
    return schedule.model_dump(by_alias=True)


@app.post('/parse_text_to_rrule')
async def api_parse_text_to_rrule(req: ParseRRuleRequest):
    """Parse text for an anchor date and recurrence, returning DTSTART and RRULE info.

    dtstart is the first due instant as ISO 8601 UTC; rrule is empty when the
    text does not recur.
    """
    rule = parse_recurrence(req.text)
    schedule = plan_task(req.text, now=req.now, timezone_spec=req.timezone)
    dtstart = from_epoch_ms(schedule.due).isoformat() if schedule.due is not None else None
    if rule is None:
        return ParseRRuleResponse(dtstart=dtstart, rrule='', rule=None)
    return ParseRRuleResponse(dtstart=dtstart, rrule=rule.to_rrule_string(), rule=rule.model_dump(mode='json'))


@app.post('/complete')
async def api_complete(req: CompleteRequest):
    """Roll a recurring task forward; 409 when the task does not recur."""
    nxt = complete_task(req.schedule, completed_at=req.completed_at, timezone_spec=req.timezone)
    if nxt is None:
        raise HTTPException(status_code=409, detail='task is not recurring')
    return nxt.model_dump(by_alias=True)


@app.post('/highlight')
async def api_highlight(req: HighlightRequest):
    return {'matches': [h._asdict() for h in highlight_matches(req.text)]}


@app.get('/timezone/offset')
async def api_timezone_offset(timezone: Optional[str] = None):
    offset = resolve_offset(timezone if timezone is not None else config.DEFAULT_TIMEZONE)
    return {'minutes': offset.minutes, 'timezone': offset.timezone}


@app.get('/today_range')
async def api_today_range(timezone: Optional[str] = None, now: Optional[int] = None):
    start, end = today_range(timezone, now)
    return {'start': start, 'end': end}


@app.post('/capture/normalize')
async def api_capture_normalize(req: CaptureRequest):
    """Validate and resolve an LLM capture batch.

    422 for malformed tasks or unparseable due strings, so the caller can
    retry the extraction.
    """
    try:
        batch = CaptureBatch.model_validate({'tasks': req.tasks})
        tasks: list[NormalizedTask] = normalize_capture(
            batch, req.project_catalog, req.label_catalog,
            timezone_spec=req.timezone, now=req.now,
        )
    except ValidationError as e:
        logger.info('capture batch rejected: %s', e.error_count())
        raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False))
    except DateParseError as e:
        logger.info('capture due string rejected: %s', e)
        raise HTTPException(status_code=422, detail=str(e))
    except Exception:
        logger.exception('api_capture_normalize failed')
        raise HTTPException(status_code=500, detail='capture normalization failed')
    return {'tasks': [t.model_dump(by_alias=True) for t in tasks]}
