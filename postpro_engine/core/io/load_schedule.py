from __future__ import annotations

import json
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable, Optional, TypeVar, cast

import yaml

from postpro_engine.core.catalog.catalog import MilestoneCatalog, validate_catalog
from postpro_engine.core.errors import ConfigurationError, ScheduleLoadError
from postpro_engine.core.model import (
    CALENDAR_EVENT_TYPES,
    EPISODE_STATUSES,
    MILESTONE_STATUSES,
    WORK_ITEM_STATUSES,
    CalendarEvent,
    Episode,
    Milestone,
    MilestoneType,
    WorkItem,
)
from postpro_engine.core.state.schedule_state import ScheduleState


T = TypeVar("T")

SECTIONS = ("milestone_types", "episodes", "milestones", "calendar_events", "work_items")


def load_schedule(path: str) -> dict[str, Any]:
    """Load a YAML/JSON schedule snapshot.

    Returns a dict with keys: schema_version, project, milestone_types,
    episodes, milestones, calendar_events, work_items.
    Does not coerce types; state_from_dict owns shape checking.
    """

    p = Path(path)
    if not p.exists():
        raise ScheduleLoadError(
            code="E_FILE_NOT_FOUND",
            message="file does not exist",
            file=str(p),
        )

    suffix = p.suffix.lower()
    try:
        raw_text = p.read_text(encoding="utf-8")
    except OSError as e:  # pragma: no cover
        raise ScheduleLoadError(code="E_FILE_READ", message=str(e), file=str(p)) from e

    try:
        if suffix in {".yaml", ".yml"}:
            data = yaml.safe_load(raw_text)
        elif suffix == ".json":
            data = json.loads(raw_text)
        else:
            raise ScheduleLoadError(
                code="E_UNSUPPORTED_FORMAT",
                message="supported formats are .yaml/.yml and .json",
                file=str(p),
            )
    except ScheduleLoadError:
        raise
    except (yaml.YAMLError, ValueError) as e:
        code = "E_YAML_PARSE" if suffix in {".yaml", ".yml"} else "E_JSON_PARSE"
        raise ScheduleLoadError(code=code, message=str(e), file=str(p)) from e

    if not isinstance(data, dict):
        raise ScheduleLoadError(
            code="E_INVALID_TOP_LEVEL",
            message="top-level document must be a mapping/object",
            file=str(p),
        )

    normalized: dict[str, Any] = {
        "schema_version": data.get("schema_version"),
        "project": data.get("project") or {},
    }
    for key in SECTIONS:
        normalized[key] = data.get(key) or []

    normalized["__file__"] = str(p)
    return normalized


def state_from_dict(data: dict[str, Any]) -> ScheduleState:
    """Build a ScheduleState from a loaded snapshot.

    Raises ScheduleLoadError for bad shapes and ConfigurationError for a
    cyclic or malformed catalog.
    """

    file = cast(Optional[str], data.get("__file__"))

    project = data.get("project") or {}
    if not isinstance(project, dict):
        raise ScheduleLoadError(code="E_INVALID_TYPE", message="project must be a mapping", file=file, path="project")
    project_id = str(project.get("id") or "project")
    project_name = project.get("name") if isinstance(project.get("name"), str) else None

    for key in SECTIONS:
        if not isinstance(data.get(key, []), list):
            raise ScheduleLoadError(
                code="E_INVALID_TYPE", message=f"{key} must be an array", file=file, path=key
            )

    types = _parse_list(data, "milestone_types", file, lambda raw, path: _milestone_type(raw, path, project_id, file))
    errors = validate_catalog(types, file=file)
    if errors:
        first = errors[0]
        raise ConfigurationError(
            code=first.code,
            message="; ".join(e.message for e in errors),
            file=file,
            path=first.path,
        )
    catalog = MilestoneCatalog(types)

    episodes = _parse_list(data, "episodes", file, lambda raw, path: _episode(raw, path, project_id, file))
    milestones = _parse_list(data, "milestones", file, lambda raw, path: _milestone(raw, path, file))
    events = _parse_list(data, "calendar_events", file, lambda raw, path: _calendar_event(raw, path, project_id, file))
    work_items = _parse_list(data, "work_items", file, lambda raw, path: _work_item(raw, path, file))

    try:
        return ScheduleState(
            project_id=project_id,
            project_name=project_name,
            catalog=catalog,
            episodes=episodes,
            milestones=milestones,
            calendar_events=events,
            work_items=work_items,
        )
    except ConfigurationError as e:
        raise ConfigurationError(code=e.code, message=e.message, file=file, path=e.path) from e


def _parse_list(
    data: dict[str, Any],
    key: str,
    file: Optional[str],
    fn: Callable[[dict[str, Any], str], T],
) -> list[T]:
    out: list[T] = []
    for i, raw in enumerate(data.get(key) or []):
        path = f"{key}[{i}]"
        if not isinstance(raw, dict):
            raise ScheduleLoadError(code="E_INVALID_TYPE", message="entry must be an object", file=file, path=path)
        out.append(fn(raw, path))
    return out


def _req_str(raw: dict[str, Any], key: str, path: str, file: Optional[str]) -> str:
    v = raw.get(key)
    if isinstance(v, (int, float)) and not isinstance(v, bool):
        # Episode numbers like 304 arrive as ints from YAML.
        v = str(v)
    if not isinstance(v, str) or not v.strip():
        raise ScheduleLoadError(
            code="E_REQUIRED_FIELD",
            message=f"{key} is required and must be a non-empty string",
            file=file,
            path=f"{path}.{key}",
        )
    return v


def _enum(raw: dict[str, Any], key: str, allowed: tuple[str, ...], default: str, path: str, file: Optional[str]) -> Any:
    v = raw.get(key, default)
    if v not in allowed:
        raise ScheduleLoadError(
            code="E_INVALID_ENUM",
            message=f"{key} must be one of {list(allowed)}",
            file=file,
            path=f"{path}.{key}",
        )
    return v


def _bool(raw: dict[str, Any], key: str, default: bool, path: str, file: Optional[str]) -> bool:
    v = raw.get(key, default)
    if not isinstance(v, bool):
        raise ScheduleLoadError(
            code="E_INVALID_TYPE", message=f"{key} must be true or false", file=file, path=f"{path}.{key}"
        )
    return v


def _date(raw: dict[str, Any], key: str, path: str, file: Optional[str]) -> Optional[date]:
    v = raw.get(key)
    if v is None:
        return None
    if isinstance(v, datetime):
        return v.date()
    if isinstance(v, date):
        return v
    if isinstance(v, str):
        try:
            return date.fromisoformat(v)
        except ValueError:
            pass
        try:
            return datetime.fromisoformat(v).date()
        except ValueError:
            pass
    raise ScheduleLoadError(
        code="E_INVALID_DATE",
        message=f"{key} must be an ISO date (YYYY-MM-DD)",
        file=file,
        path=f"{path}.{key}",
    )


def _datetime(raw: dict[str, Any], key: str, path: str, file: Optional[str]) -> Optional[datetime]:
    v = raw.get(key)
    if v is None or isinstance(v, datetime):
        return v
    if isinstance(v, str):
        try:
            return datetime.fromisoformat(v)
        except ValueError:
            pass
    raise ScheduleLoadError(
        code="E_INVALID_DATE",
        message=f"{key} must be an ISO timestamp",
        file=file,
        path=f"{path}.{key}",
    )


def _milestone_type(raw: dict[str, Any], path: str, project_id: str, file: Optional[str]) -> MilestoneType:
    requires = raw.get("requires_completion_of") or []
    if not isinstance(requires, list) or any(not isinstance(x, str) for x in requires):
        raise ScheduleLoadError(
            code="E_INVALID_TYPE",
            message="requires_completion_of must be an array of codes",
            file=file,
            path=f"{path}.requires_completion_of",
        )
    sort_order = raw.get("sort_order", 0)
    if not isinstance(sort_order, int):
        raise ScheduleLoadError(
            code="E_INVALID_TYPE", message="sort_order must be an integer", file=file, path=f"{path}.sort_order"
        )
    return MilestoneType(
        id=_req_str(raw, "id", path, file),
        project_id=project_id,
        code=_req_str(raw, "code", path, file),
        name=_req_str(raw, "name", path, file),
        sort_order=sort_order,
        is_hard_deadline=_bool(raw, "is_hard_deadline", False, path, file),
        requires_completion_of=tuple(requires),
    )


def _episode(raw: dict[str, Any], path: str, project_id: str, file: Optional[str]) -> Episode:
    sort_order = raw.get("sort_order", 0)
    if not isinstance(sort_order, int):
        raise ScheduleLoadError(
            code="E_INVALID_TYPE", message="sort_order must be an integer", file=file, path=f"{path}.sort_order"
        )
    title = raw.get("title")
    return Episode(
        id=_req_str(raw, "id", path, file),
        project_id=project_id,
        number=_req_str(raw, "number", path, file),
        sort_order=sort_order,
        status=_enum(raw, "status", EPISODE_STATUSES, "active", path, file),
        title=title if isinstance(title, str) else None,
    )


def _milestone(raw: dict[str, Any], path: str, file: Optional[str]) -> Milestone:
    notes = raw.get("notes")
    return Milestone(
        id=_req_str(raw, "id", path, file),
        episode_id=_req_str(raw, "episode_id", path, file),
        milestone_type_id=_req_str(raw, "milestone_type_id", path, file),
        scheduled_date=_date(raw, "scheduled_date", path, file),
        status=_enum(raw, "status", MILESTONE_STATUSES, "scheduled", path, file),
        notes=notes if isinstance(notes, str) else None,
        updated_at=_datetime(raw, "updated_at", path, file),
    )


def _calendar_event(raw: dict[str, Any], path: str, project_id: str, file: Optional[str]) -> CalendarEvent:
    start = _date(raw, "start_date", path, file)
    if start is None:
        raise ScheduleLoadError(
            code="E_REQUIRED_FIELD", message="start_date is required", file=file, path=f"{path}.start_date"
        )
    return CalendarEvent(
        project_id=project_id,
        name=_req_str(raw, "name", path, file),
        event_type=_enum(raw, "event_type", CALENDAR_EVENT_TYPES, "note", path, file),
        start_date=start,
        end_date=_date(raw, "end_date", path, file),
        affects_all=_bool(raw, "affects_all", True, path, file),
    )


def _work_item(raw: dict[str, Any], path: str, file: Optional[str]) -> WorkItem:
    department = raw.get("department")
    return WorkItem(
        id=_req_str(raw, "id", path, file),
        episode_id=_req_str(raw, "episode_id", path, file),
        work_description=_req_str(raw, "work_description", path, file),
        status=_enum(raw, "status", WORK_ITEM_STATUSES, "pending", path, file),
        department=department if isinstance(department, str) else None,
    )
