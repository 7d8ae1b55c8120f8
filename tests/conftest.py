from datetime import date
from pathlib import Path

import pytest

from postpro_engine.core.catalog.catalog import MilestoneCatalog
from postpro_engine.core.io.load_schedule import load_schedule, state_from_dict
from postpro_engine.core.model import Episode, Milestone, MilestoneType
from postpro_engine.core.state.schedule_state import ScheduleState


EXAMPLES = Path(__file__).resolve().parents[1] / "examples"

# EC -> DC -> LOCK -> (MIX, CC) -> D
CHAIN = [
    ("EC", (), False),
    ("DC", ("EC",), False),
    ("LOCK", ("DC",), True),
    ("MIX", ("LOCK",), False),
    ("CC", ("LOCK",), False),
    ("D", ("MIX", "CC"), True),
]

CHAIN_DATES = {
    "EC": date(2024, 1, 1),
    "DC": date(2024, 1, 8),
    "LOCK": date(2024, 1, 15),
    "MIX": date(2024, 1, 22),
    "CC": date(2024, 1, 22),
    "D": date(2024, 1, 29),
}


def chain_types(project_id: str = "p1") -> list[MilestoneType]:
    return [
        MilestoneType(
            id=f"mt-{code.lower()}",
            project_id=project_id,
            code=code,
            name=code,
            sort_order=i + 1,
            is_hard_deadline=hard,
            requires_completion_of=requires,
        )
        for i, (code, requires, hard) in enumerate(CHAIN)
    ]


def build_chain_state(dates=None, *, extra_episodes=None, calendar_events=()) -> ScheduleState:
    """One episode (101) with a milestone per chain type; dates override per code."""
    dates = {**CHAIN_DATES, **(dates or {})}
    episodes = [Episode(id="ep-101", project_id="p1", number="101", sort_order=0)]
    milestones = [
        Milestone(
            id=f"ms-101-{code.lower()}",
            episode_id="ep-101",
            milestone_type_id=f"mt-{code.lower()}",
            scheduled_date=dates[code],
        )
        for code, _, _ in CHAIN
    ]
    for ep_id, number, ep_dates in extra_episodes or []:
        episodes.append(Episode(id=ep_id, project_id="p1", number=number, sort_order=len(episodes)))
        for code, d in ep_dates.items():
            milestones.append(
                Milestone(
                    id=f"ms-{number}-{code.lower()}",
                    episode_id=ep_id,
                    milestone_type_id=f"mt-{code.lower()}",
                    scheduled_date=d,
                )
            )
    return ScheduleState(
        project_id="p1",
        catalog=MilestoneCatalog(chain_types()),
        episodes=episodes,
        milestones=milestones,
        calendar_events=calendar_events,
    )


@pytest.fixture
def chain_state() -> ScheduleState:
    return build_chain_state()


@pytest.fixture
def examples_dir() -> Path:
    return EXAMPLES


@pytest.fixture
def demo_state() -> ScheduleState:
    return state_from_dict(load_schedule(str(EXAMPLES / "demo-schedule.yaml")))


@pytest.fixture
def make_chain_state():
    return build_chain_state
