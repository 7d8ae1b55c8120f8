from __future__ import annotations

from datetime import date, timedelta
from typing import Optional

from postpro_engine.core.catalog.catalog import MilestoneCatalog
from postpro_engine.core.model import CalendarEvent, Episode, Milestone, MilestoneType
from postpro_engine.core.state.schedule_state import ScheduleState


def provision_project(
    *,
    project_id: str,
    types: list[MilestoneType],
    episode_count: int,
    episode_prefix: str = "",
    start_number: int = 1,
    base_date: Optional[date] = None,
    project_name: Optional[str] = None,
    calendar_events: Optional[list[CalendarEvent]] = None,
) -> ScheduleState:
    """Create a project's episodes and one milestone per (episode, type).

    Without base_date milestones start unscheduled. With base_date dates are
    staggered: three days per episode, one week per milestone type.
    """

    if episode_count < 1:
        raise ValueError("episode_count must be >= 1")

    catalog = MilestoneCatalog(types)

    episodes = [
        Episode(
            id=f"ep-{i + 1}",
            project_id=project_id,
            number=f"{episode_prefix}{start_number + i}",
            sort_order=i,
            status="active",
        )
        for i in range(episode_count)
    ]

    milestones: list[Milestone] = []
    for ep_index, ep in enumerate(episodes):
        for mt_index, mt in enumerate(catalog):
            scheduled = None
            if base_date is not None:
                scheduled = base_date + timedelta(days=ep_index * 3 + mt_index * 7)
            milestones.append(
                Milestone(
                    id=f"ms-{ep.id}-{mt.id}",
                    episode_id=ep.id,
                    milestone_type_id=mt.id,
                    scheduled_date=scheduled,
                )
            )

    return ScheduleState(
        project_id=project_id,
        project_name=project_name,
        catalog=catalog,
        episodes=episodes,
        milestones=milestones,
        calendar_events=calendar_events or [],
    )
