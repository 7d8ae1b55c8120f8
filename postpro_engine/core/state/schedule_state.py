from __future__ import annotations

import threading
from dataclasses import replace
from datetime import date, datetime, timezone
from typing import Iterable, Optional

from postpro_engine.core.catalog.catalog import MilestoneCatalog
from postpro_engine.core.errors import ConfigurationError, NotFoundError
from postpro_engine.core.model import (
    MILESTONE_STATUSES,
    CalendarEvent,
    Episode,
    Milestone,
    MilestoneStatus,
    MilestoneType,
    WorkItem,
)


class ScheduleState:
    """The live schedule of one project.

    Owns episodes and milestones exclusively. The evaluator only reads it;
    the Move Transaction is the only writer of scheduled dates and takes
    `lock` for the whole read-validate-apply sequence.
    """

    def __init__(
        self,
        *,
        project_id: str,
        catalog: MilestoneCatalog,
        episodes: Iterable[Episode],
        milestones: Iterable[Milestone],
        calendar_events: Iterable[CalendarEvent] = (),
        work_items: Iterable[WorkItem] = (),
        project_name: Optional[str] = None,
    ) -> None:
        self.project_id = project_id
        self.project_name = project_name or project_id
        self.catalog = catalog
        self.lock = threading.Lock()

        # Stable sort keeps input order between equal sort_order values.
        self._episodes: list[Episode] = sorted(episodes, key=lambda e: e.sort_order)
        self._episodes_by_id: dict[str, Episode] = {e.id: e for e in self._episodes}

        self._milestones: dict[str, Milestone] = {}
        self._by_episode_type: dict[tuple[str, str], str] = {}
        for m in milestones:
            self._register(m)

        self.calendar_events: list[CalendarEvent] = list(calendar_events)
        self.work_items: list[WorkItem] = list(work_items)

    def _register(self, m: Milestone) -> None:
        if m.episode_id not in self._episodes_by_id:
            raise ConfigurationError(
                code="E_UNKNOWN_EPISODE",
                message=f"milestone {m.id} references unknown episode: {m.episode_id}",
                path=f"milestones.{m.id}.episode_id",
            )
        if self.catalog.by_id(m.milestone_type_id) is None:
            raise ConfigurationError(
                code="E_UNKNOWN_MILESTONE_TYPE",
                message=f"milestone {m.id} references unknown milestone type: {m.milestone_type_id}",
                path=f"milestones.{m.id}.milestone_type_id",
            )
        if m.id in self._milestones:
            raise ConfigurationError(
                code="E_DUPLICATE_ID",
                message=f"duplicate milestone id: {m.id}",
                path=f"milestones.{m.id}",
            )
        self._milestones[m.id] = m
        # First milestone wins for (episode, type) lookups.
        self._by_episode_type.setdefault((m.episode_id, m.milestone_type_id), m.id)

    # -- read access -------------------------------------------------------

    @property
    def episodes(self) -> list[Episode]:
        return list(self._episodes)

    @property
    def milestones(self) -> list[Milestone]:
        return list(self._milestones.values())

    def episode(self, episode_id: str) -> Optional[Episode]:
        return self._episodes_by_id.get(episode_id)

    def milestone(self, milestone_id: str) -> Optional[Milestone]:
        return self._milestones.get(milestone_id)

    def milestone_for(self, episode_id: str, type_id: str) -> Optional[Milestone]:
        mid = self._by_episode_type.get((episode_id, type_id))
        return self._milestones.get(mid) if mid else None

    def milestones_for_episode(self, episode_id: str) -> list[Milestone]:
        return [m for m in self._milestones.values() if m.episode_id == episode_id]

    def type_of(self, milestone: Milestone) -> MilestoneType:
        mt = self.catalog.by_id(milestone.milestone_type_id)
        assert mt is not None
        return mt

    def label(self, milestone: Milestone) -> str:
        ep = self.episode(milestone.episode_id)
        number = ep.number if ep else milestone.episode_id
        return f"{number} {self.type_of(milestone).code}"

    def find_episodes(self, ref: str) -> list[Episode]:
        """Episodes whose display number contains `ref`.

        Deliberately lenient: "3" matches "303" and "1300" alike. Callers take
        the first candidate in episode order.
        """
        return [e for e in self._episodes if ref in e.number]

    def find_episode(self, ref: str) -> Optional[Episode]:
        candidates = self.find_episodes(ref)
        return candidates[0] if candidates else None

    def late_milestones(self, today: date) -> list[Milestone]:
        return [
            m
            for m in self._milestones.values()
            if m.scheduled_date is not None and m.scheduled_date < today and m.status != "completed"
        ]

    def blockers(self, episode_id: str) -> tuple[list[Milestone], list[WorkItem]]:
        incomplete = [
            m for m in self.milestones_for_episode(episode_id) if m.status != "completed"
        ]
        pending = [w for w in self.work_items if w.episode_id == episode_id and w.status != "approved"]
        return incomplete, pending

    def milestones_between(self, start: date, end: date) -> list[Milestone]:
        out = [
            m
            for m in self._milestones.values()
            if m.scheduled_date is not None and start <= m.scheduled_date <= end
        ]
        return sorted(out, key=lambda m: m.scheduled_date or start)

    # -- mutation ----------------------------------------------------------

    def replace_milestone(self, milestone: Milestone) -> None:
        if milestone.id not in self._milestones:
            raise NotFoundError(code="E_MILESTONE_NOT_FOUND", message=f"Milestone not found: {milestone.id}")
        self._milestones[milestone.id] = milestone

    def update_milestone(
        self,
        milestone_id: str,
        *,
        status: Optional[MilestoneStatus] = None,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Milestone:
        """Update fields that need no graph validation (status, notes)."""
        if status is not None and status not in MILESTONE_STATUSES:
            raise ValueError(f"status must be one of {list(MILESTONE_STATUSES)}")

        with self.lock:
            current = self._milestones.get(milestone_id)
            if current is None:
                raise NotFoundError(code="E_MILESTONE_NOT_FOUND", message=f"Milestone not found: {milestone_id}")
            updated = replace(
                current,
                status=status if status is not None else current.status,
                notes=notes if notes is not None else current.notes,
                updated_at=now or datetime.now(timezone.utc),
            )
            self._milestones[milestone_id] = updated
        return updated

    def add_milestone(self, milestone: Milestone) -> Milestone:
        with self.lock:
            self._register(milestone)
        return milestone

    def copy(self) -> "ScheduleState":
        """Independent state over the same immutable records (fresh lock)."""
        return ScheduleState(
            project_id=self.project_id,
            project_name=self.project_name,
            catalog=self.catalog,
            episodes=self._episodes,
            milestones=self._milestones.values(),
            calendar_events=self.calendar_events,
            work_items=self.work_items,
        )
