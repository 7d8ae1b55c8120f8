from __future__ import annotations

from datetime import date

from postpro_engine.core.dates.resolve_date import format_date
from postpro_engine.core.model import Milestone, ScheduleConflict
from postpro_engine.core.state.schedule_state import ScheduleState


def check_move(
    milestone: Milestone,
    proposed_date: date,
    state: ScheduleState,
    *,
    include_advisories: bool = False,
) -> list[ScheduleConflict]:
    """Conflicts caused by moving `milestone` to `proposed_date`.

    Only direct neighbours in the prerequisite graph are checked, within the
    milestone's own episode:

    - a prerequisite scheduled after the proposed date blocks the move (error)
    - a dependent scheduled before the proposed date has to shift (warning)

    Prerequisite conflicts come first, each group in catalog order. State is
    never mutated.

    With include_advisories, calendar holds and hard-deadline slips are added
    as info/warning conflicts after the dependency checks.
    """

    catalog = state.catalog
    mtype = catalog.by_id(milestone.milestone_type_id)
    if mtype is None:
        return []

    conflicts: list[ScheduleConflict] = []

    for prereq_code in catalog.prerequisites_of(mtype.code):
        prereq_type = catalog.get(prereq_code)
        if prereq_type is None:
            continue
        prereq = state.milestone_for(milestone.episode_id, prereq_type.id)
        if prereq is None or prereq.scheduled_date is None:
            continue
        if prereq.scheduled_date > proposed_date:
            when = format_date(prereq.scheduled_date)
            conflicts.append(
                ScheduleConflict(
                    kind="dependency",
                    severity="error",
                    message=f"{mtype.code} cannot be before {prereq_code} (scheduled {when})",
                    affected_milestone_ids=(milestone.id, prereq.id),
                    suggested_resolution=f"Move {prereq_code} earlier or schedule {mtype.code} after {when}",
                )
            )

    for dep_code in catalog.dependents_of(mtype.code):
        dep_type = catalog.get(dep_code)
        if dep_type is None:
            continue
        dep = state.milestone_for(milestone.episode_id, dep_type.id)
        if dep is None or dep.scheduled_date is None:
            continue
        if dep.scheduled_date < proposed_date:
            conflicts.append(
                ScheduleConflict(
                    kind="dependency",
                    severity="warning",
                    message=(
                        f"This will require moving {dep_code} "
                        f"(currently {format_date(dep.scheduled_date)})"
                    ),
                    affected_milestone_ids=(milestone.id, dep.id),
                    suggested_resolution=f"{dep_code} will cascade to after {format_date(proposed_date)}",
                )
            )

    if include_advisories:
        conflicts.extend(_advisories(milestone, proposed_date, state))

    return conflicts


def _advisories(milestone: Milestone, proposed_date: date, state: ScheduleState) -> list[ScheduleConflict]:
    out: list[ScheduleConflict] = []
    mtype = state.type_of(milestone)

    if (
        mtype.is_hard_deadline
        and milestone.scheduled_date is not None
        and proposed_date > milestone.scheduled_date
    ):
        out.append(
            ScheduleConflict(
                kind="deadline",
                severity="warning",
                message=(
                    f"{mtype.code} is a hard deadline; this slips it from "
                    f"{format_date(milestone.scheduled_date)} to {format_date(proposed_date)}"
                ),
                affected_milestone_ids=(milestone.id,),
                suggested_resolution="Confirm the new date with the studio/network before committing",
            )
        )

    for event in state.calendar_events:
        if event.event_type == "note" or not event.affects_all:
            continue
        if event.covers(proposed_date):
            out.append(
                ScheduleConflict(
                    kind="resource",
                    severity="info",
                    message=f"{format_date(proposed_date)} falls on {event.name} ({event.event_type})",
                    affected_milestone_ids=(milestone.id,),
                )
            )

    return out
