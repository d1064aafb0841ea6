"""Normalize structured task captures produced by an LLM.

The model is asked for a batch of tasks matching CaptureBatch. This module
validates that output, resolves project and label names against the
user's catalogs, and turns due strings into epoch milliseconds. A bad due
string raises DateParseError so the calling action can retry the
extraction; nothing here retries.
"""
import logging
from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field

from . import config
from .dates import parse_due_string
from .schedule import TaskSchedule, plan_task
from .utils import coerce_instant

logger = logging.getLogger(__name__)


class CapturedTask(BaseModel):
    model_config = ConfigDict(extra='forbid')

    title: str = Field(max_length=config.AI_CAPTURE_MAX_TITLE)
    notes: Optional[str] = None
    project_hint: Optional[str] = None
    labels: list[str] = []
    priority: int = Field(default=3, ge=1, le=4)
    # ISO 8601 date or date-time
    due: Optional[str] = None


class CaptureBatch(BaseModel):
    model_config = ConfigDict(extra='forbid')

    tasks: list[CapturedTask]


class CatalogEntry(BaseModel):
    id: str
    name: str


class NormalizedTask(BaseModel):
    title: str
    notes: Optional[str] = None
    priority: int = 3
    project_id: Optional[str] = None
    label_ids: list[str] = []
    schedule: TaskSchedule


def _norm(name: str) -> str:
    return name.strip().lower()


def find_project_by_name(project_catalog: Iterable[CatalogEntry], project_hint: str | None) -> Optional[str]:
    """Id of the project whose name matches the hint, ignoring case and padding."""
    if not project_hint:
        return None
    wanted = _norm(project_hint)
    for project in project_catalog:
        if _norm(project.name) == wanted:
            return project.id
    return None


def find_labels_by_names(label_catalog: Iterable[CatalogEntry], names: Iterable[str]) -> list[str]:
    """Ids of catalog labels named in `names`, in catalog order. Unknown names are dropped."""
    wanted = {_norm(n) for n in names}
    return [label.id for label in label_catalog if _norm(label.name) in wanted]


def normalize_capture(batch: CaptureBatch | dict, project_catalog: Iterable[CatalogEntry] = (),
                      label_catalog: Iterable[CatalogEntry] = (), timezone_spec: str | None = None,
                      now=None) -> list[NormalizedTask]:
    """Validate a capture batch and resolve it into task records.

    Raises pydantic.ValidationError for a malformed batch and DateParseError
    for a due string that cannot be parsed.
    """
    if not isinstance(batch, CaptureBatch):
        batch = CaptureBatch.model_validate(batch)
    projects = list(project_catalog)
    labels = list(label_catalog)
    instant = coerce_instant(now)

    out: list[NormalizedTask] = []
    for task in batch.tasks:
        if task.due:
            schedule = TaskSchedule(
                title=task.title,
                due=parse_due_string(task.due, timezone_spec=timezone_spec, now=instant),
            )
        else:
            schedule = plan_task(task.title, now=instant, timezone_spec=timezone_spec)
        project_id = find_project_by_name(projects, task.project_hint)
        if task.project_hint and project_id is None:
            logger.info('no project named %r in catalog', task.project_hint)
        out.append(NormalizedTask(
            title=task.title,
            notes=task.notes,
            priority=task.priority,
            project_id=project_id,
            label_ids=find_labels_by_names(labels, task.labels),
            schedule=schedule,
        ))
    return out
