from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from postpro_engine.core.state.schedule_state import ScheduleState


def state_to_dict(state: ScheduleState, *, schema_version: str = "0.1.0") -> dict[str, Any]:
    """Serialize a state back to the snapshot shape read by state_from_dict."""

    return {
        "schema_version": schema_version,
        "project": {"id": state.project_id, "name": state.project_name},
        "milestone_types": [
            {
                "id": t.id,
                "code": t.code,
                "name": t.name,
                "sort_order": t.sort_order,
                "is_hard_deadline": t.is_hard_deadline,
                "requires_completion_of": list(t.requires_completion_of),
            }
            for t in state.catalog
        ],
        "episodes": [
            {
                "id": e.id,
                "number": e.number,
                "sort_order": e.sort_order,
                "status": e.status,
                **({"title": e.title} if e.title else {}),
            }
            for e in state.episodes
        ],
        "milestones": [_drop_none(m.to_dict()) for m in state.milestones],
        "calendar_events": [
            _drop_none(
                {
                    "name": ev.name,
                    "event_type": ev.event_type,
                    "start_date": ev.start_date.isoformat(),
                    "end_date": ev.end_date.isoformat() if ev.end_date else None,
                    "affects_all": ev.affects_all,
                }
            )
            for ev in state.calendar_events
        ],
        "work_items": [
            _drop_none(
                {
                    "id": w.id,
                    "episode_id": w.episode_id,
                    "work_description": w.work_description,
                    "status": w.status,
                    "department": w.department,
                }
            )
            for w in state.work_items
        ],
    }


def dump_schedule_yaml(data: dict[str, Any], path: str) -> None:
    p = Path(path)
    if str(p.parent) not in (".", ""):
        p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(yaml.safe_dump(data, sort_keys=False, allow_unicode=True), encoding="utf-8")


def _drop_none(d: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in d.items() if v is not None}
