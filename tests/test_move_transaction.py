import threading
from datetime import date, datetime, timezone

from postpro_engine.core.transaction.move import move_milestone, what_if


NOW = datetime(2024, 1, 2, 9, 30, tzinfo=timezone.utc)


def test_valid_move_is_applied(chain_state):
    result = move_milestone(chain_state, "ms-101-lock", date(2024, 1, 10), now=NOW)

    assert result.success is True
    assert result.message == "Moved 101 LOCK to 1/10/2024"
    assert result.conflicts == []
    assert result.milestone is not None
    assert result.milestone.scheduled_date == date(2024, 1, 10)
    assert result.milestone.updated_at == NOW
    assert chain_state.milestone("ms-101-lock").scheduled_date == date(2024, 1, 10)


def test_blocking_conflict_leaves_state_untouched(chain_state):
    before = chain_state.milestone("ms-101-lock")
    result = move_milestone(chain_state, "ms-101-lock", date(2024, 1, 5), now=NOW)

    assert result.success is False
    assert result.message == "Cannot move milestone due to dependency conflicts"
    assert result.has_errors
    assert result.milestone is None
    assert chain_state.milestone("ms-101-lock") == before


def test_warnings_do_not_block_and_dependents_stay_put(chain_state):
    result = move_milestone(chain_state, "ms-101-lock", date(2024, 1, 25), now=NOW)

    assert result.success is True
    assert not result.has_errors
    assert len(result.conflicts) == 2
    assert chain_state.milestone("ms-101-lock").scheduled_date == date(2024, 1, 25)
    assert chain_state.milestone("ms-101-mix").scheduled_date == date(2024, 1, 22)


def test_unknown_milestone_fails_cleanly(chain_state):
    result = move_milestone(chain_state, "ms-nope", date(2024, 1, 10))
    assert result.success is False
    assert result.message == "Milestone not found"


def test_what_if_reports_without_applying(chain_state):
    result = what_if(chain_state, "ms-101-lock", date(2024, 1, 25))

    assert result.success is True
    assert result.message == "Moving 101 LOCK to 1/25/2024 would cause 2 issue(s):"
    assert len(result.conflicts) == 2
    assert chain_state.milestone("ms-101-lock").scheduled_date == date(2024, 1, 15)


def test_what_if_blocking_move_still_succeeds_as_a_report(chain_state):
    result = what_if(chain_state, "ms-101-lock", date(2024, 1, 5))
    assert result.success is True
    assert result.has_errors


def test_what_if_clean_move(chain_state):
    result = what_if(chain_state, "ms-101-lock", date(2024, 1, 12))
    assert result.message == "Moving 101 LOCK to 1/12/2024 would have no conflicts."
    assert result.conflicts == []


def test_what_if_unknown_milestone(chain_state):
    result = what_if(chain_state, "ms-nope", date(2024, 1, 12))
    assert result.success is False
    assert result.message == "Milestone not found"


def test_what_if_matches_move_outcome(chain_state):
    proposed = date(2024, 1, 5)
    predicted = what_if(chain_state, "ms-101-lock", proposed)
    applied = move_milestone(chain_state, "ms-101-lock", proposed)
    assert predicted.has_errors == (not applied.success)
    assert predicted.conflicts == applied.conflicts


def test_concurrent_moves_serialize(chain_state):
    # DC between EC (1/1) and LOCK (1/15): every date below is valid.
    targets = [date(2024, 1, d) for d in range(2, 15)]
    results = []

    def worker(d):
        results.append(move_milestone(chain_state, "ms-101-dc", d))

    threads = [threading.Thread(target=worker, args=(d,)) for d in targets]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(results) == len(targets)
    assert all(r.success for r in results)
    assert chain_state.milestone("ms-101-dc").scheduled_date in targets
