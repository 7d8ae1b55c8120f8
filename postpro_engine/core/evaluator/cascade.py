from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field, replace
from datetime import date, timedelta
from typing import Optional

from postpro_engine.core.errors import NotFoundError
from postpro_engine.core.evaluator.check_move import check_move
from postpro_engine.core.model import ScheduleConflict
from postpro_engine.core.state.schedule_state import ScheduleState


@dataclass(frozen=True)
class CascadeShift:
    milestone_id: str
    label: str
    from_date: date
    to_date: date
    depth: int


@dataclass(frozen=True)
class CascadeReport:
    root_id: str
    proposed_date: date
    shifts: list[CascadeShift] = field(default_factory=list)
    errors: list[ScheduleConflict] = field(default_factory=list)
    truncated: bool = False

    @property
    def ok(self) -> bool:
        return not self.errors


def simulate_cascade(
    state: ScheduleState,
    milestone_id: str,
    proposed_date: date,
    *,
    max_depth: Optional[int] = None,
) -> CascadeReport:
    """Recursive what-if: follow forced dependent shifts to a fixed point.

    Works on a copy of the state. Each forced dependent moves by the same
    delta as its prerequisite, but never earlier than the prerequisite's new
    date. Blocking errors met along the way are collected, not resolved.
    Depth is bounded by the catalog size unless max_depth is given. Shifts
    only move forward, so a milestone reached twice (diamond dependencies)
    ends on the latest date any prerequisite forces.
    """

    with state.lock:
        sim = state.copy()

    root = sim.milestone(milestone_id)
    if root is None:
        raise NotFoundError(code="E_MILESTONE_NOT_FOUND", message="Milestone not found")

    limit = max_depth if max_depth is not None else len(sim.catalog)

    errors: list[ScheduleConflict] = []
    truncated = False
    original: dict[str, date] = {}
    depths: dict[str, int] = {}

    queue: deque[tuple[str, date, int]] = deque([(milestone_id, proposed_date, 0)])
    while queue:
        mid, new_date, depth = queue.popleft()
        current = sim.milestone(mid)
        if current is None:
            continue
        # Already shifted: only a later requirement moves it again.
        if mid in depths and current.scheduled_date is not None and current.scheduled_date >= new_date:
            continue

        conflicts = check_move(current, new_date, sim)
        for c in conflicts:
            if c.severity == "error" and c not in errors:
                errors.append(c)

        old_date = current.scheduled_date
        if old_date is not None:
            original.setdefault(mid, old_date)
        depths[mid] = max(depths.get(mid, depth), depth)
        sim.replace_milestone(replace(current, scheduled_date=new_date))

        delta = new_date - old_date if old_date is not None else timedelta(0)
        for c in conflicts:
            if c.severity != "warning":
                continue
            dep_id = c.affected_milestone_ids[-1]
            dep = sim.milestone(dep_id)
            if dep is None or dep.scheduled_date is None:
                continue
            if depth + 1 > limit:
                truncated = True
                continue
            queue.append((dep_id, max(dep.scheduled_date + delta, new_date), depth + 1))

    shifts: list[CascadeShift] = []
    for mid, from_date in original.items():
        if mid == milestone_id:
            continue
        moved = sim.milestone(mid)
        assert moved is not None and moved.scheduled_date is not None
        shifts.append(
            CascadeShift(
                milestone_id=mid,
                label=sim.label(moved),
                from_date=from_date,
                to_date=moved.scheduled_date,
                depth=depths[mid],
            )
        )

    return CascadeReport(
        root_id=milestone_id,
        proposed_date=proposed_date,
        shifts=shifts,
        errors=errors,
        truncated=truncated,
    )
