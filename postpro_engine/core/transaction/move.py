from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, datetime, timezone
from typing import Optional

from postpro_engine.core.dates.resolve_date import format_date
from postpro_engine.core.errors import DependencyConflictError, NotFoundError
from postpro_engine.core.evaluator.check_move import check_move
from postpro_engine.core.model import Milestone, Result, ScheduleConflict
from postpro_engine.core.state.schedule_state import ScheduleState


logger = logging.getLogger(__name__)


def move_milestone(
    state: ScheduleState,
    milestone_id: str,
    new_date: date,
    *,
    now: Optional[datetime] = None,
) -> Result:
    """Validate and apply a date change as one step.

    Holds the project lock from lookup to apply, so the conflict report
    always describes the state that gets mutated. Blocking conflicts leave
    the milestone untouched; warnings ride along on a successful result.
    """

    with state.lock:
        try:
            milestone = _lookup(state, milestone_id)
            conflicts = _validate(state, milestone, new_date)
        except NotFoundError as e:
            logger.warning("move rejected: %s", e)
            return Result(success=False, message=e.message)
        except DependencyConflictError as e:
            logger.warning(
                "move of %s to %s rejected: %d blocking conflict(s)",
                milestone_id,
                new_date.isoformat(),
                sum(1 for c in e.conflicts if c.severity == "error"),
            )
            return Result(success=False, message=e.message, conflicts=list(e.conflicts))

        updated = replace(
            milestone,
            scheduled_date=new_date,
            updated_at=now or datetime.now(timezone.utc),
        )
        state.replace_milestone(updated)

    label = state.label(updated)
    logger.info(
        "moved %s from %s to %s (%d warning(s))",
        label,
        milestone.scheduled_date.isoformat() if milestone.scheduled_date else "unscheduled",
        new_date.isoformat(),
        len(conflicts),
    )
    return Result(
        success=True,
        message=f"Moved {label} to {format_date(new_date)}",
        conflicts=conflicts,
        milestone=updated,
    )


def what_if(
    state: ScheduleState,
    milestone_id: str,
    new_date: date,
    *,
    include_advisories: bool = False,
) -> Result:
    """Dry-run of move_milestone: reports consequences, never applies."""

    with state.lock:
        milestone = state.milestone(milestone_id)
        if milestone is None:
            return Result(success=False, message="Milestone not found")
        conflicts = check_move(milestone, new_date, state, include_advisories=include_advisories)
        label = state.label(milestone)

    prefix = f"Moving {label} to {format_date(new_date)}"
    if not conflicts:
        return Result(success=True, message=f"{prefix} would have no conflicts.")
    return Result(
        success=True,
        message=f"{prefix} would cause {len(conflicts)} issue(s):",
        conflicts=conflicts,
    )


def _lookup(state: ScheduleState, milestone_id: str) -> Milestone:
    milestone = state.milestone(milestone_id)
    if milestone is None:
        raise NotFoundError(code="E_MILESTONE_NOT_FOUND", message="Milestone not found", path=milestone_id)
    return milestone


def _validate(state: ScheduleState, milestone: Milestone, new_date: date) -> list[ScheduleConflict]:
    conflicts = check_move(milestone, new_date, state)
    if any(c.severity == "error" for c in conflicts):
        raise DependencyConflictError(
            code="E_DEPENDENCY_CONFLICT",
            message="Cannot move milestone due to dependency conflicts",
            path=milestone.id,
            conflicts=tuple(conflicts),
        )
    return conflicts
