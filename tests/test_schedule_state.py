from datetime import date, datetime, timezone

import pytest

from postpro_engine.core.errors import ConfigurationError, NotFoundError
from postpro_engine.core.model import Milestone, WorkItem


def test_lookups(chain_state):
    lock = chain_state.milestone("ms-101-lock")
    assert chain_state.milestone_for("ep-101", "mt-lock") == lock
    assert chain_state.type_of(lock).code == "LOCK"
    assert chain_state.label(lock) == "101 LOCK"
    assert len(chain_state.milestones_for_episode("ep-101")) == 6
    assert chain_state.episode("ep-nope") is None


def test_find_episodes_is_lenient(make_chain_state):
    state = make_chain_state(extra_episodes=[("ep-1101", "1101", {}), ("ep-201", "201", {})])
    assert [e.number for e in state.find_episodes("01")] == ["101", "1101", "201"]
    assert state.find_episode("110").number == "1101"
    assert state.find_episode("999") is None


def test_late_milestones_skip_completed(chain_state):
    chain_state.update_milestone("ms-101-ec", status="completed")
    late = chain_state.late_milestones(date(2024, 1, 10))
    assert [m.id for m in late] == ["ms-101-dc"]


def test_blockers(chain_state):
    chain_state.work_items.append(WorkItem(id="wi-1", episode_id="ep-101", work_description="ADR", status="review"))
    chain_state.work_items.append(WorkItem(id="wi-2", episode_id="ep-101", work_description="VFX", status="approved"))
    chain_state.update_milestone("ms-101-ec", status="completed")

    incomplete, pending = chain_state.blockers("ep-101")
    assert len(incomplete) == 5
    assert [w.id for w in pending] == ["wi-1"]


def test_milestones_between_is_sorted_and_inclusive(chain_state):
    found = chain_state.milestones_between(date(2024, 1, 8), date(2024, 1, 22))
    assert [chain_state.label(m) for m in found] == ["101 DC", "101 LOCK", "101 MIX", "101 CC"]


def test_update_milestone_changes_status_and_notes_only(chain_state):
    now = datetime(2024, 1, 3, tzinfo=timezone.utc)
    updated = chain_state.update_milestone("ms-101-dc", status="in_progress", notes="waiting on notes", now=now)
    assert updated.status == "in_progress"
    assert updated.notes == "waiting on notes"
    assert updated.updated_at == now
    assert updated.scheduled_date == date(2024, 1, 8)


def test_update_milestone_rejects_bad_input(chain_state):
    with pytest.raises(ValueError):
        chain_state.update_milestone("ms-101-dc", status="done")
    with pytest.raises(NotFoundError):
        chain_state.update_milestone("ms-nope", status="completed")


def test_add_milestone_checks_references(chain_state):
    with pytest.raises(ConfigurationError) as exc:
        chain_state.add_milestone(Milestone(id="ms-x", episode_id="ep-nope", milestone_type_id="mt-ec"))
    assert exc.value.code == "E_UNKNOWN_EPISODE"

    with pytest.raises(ConfigurationError) as exc:
        chain_state.add_milestone(Milestone(id="ms-101-ec", episode_id="ep-101", milestone_type_id="mt-ec"))
    assert exc.value.code == "E_DUPLICATE_ID"


def test_copy_is_independent(chain_state):
    sim = chain_state.copy()
    sim.update_milestone("ms-101-dc", status="completed")
    assert chain_state.milestone("ms-101-dc").status == "scheduled"
    assert sim.lock is not chain_state.lock
