from datetime import date

import pytest

from postpro_engine.core.ai.assistant import MAX_CONTEXT_MILESTONES, build_context, process_command
from postpro_engine.core.ai.contracts import ProposedAction, parse_proposed_action
from postpro_engine.core.interpret.intents import ListItems, Move, Unknown


TODAY = date(2024, 12, 2)


class FakeLLM:
    def __init__(self, action=None, error=None):
        self._action = action
        self._error = error
        self.calls = []

    def propose_action(self, *, context, text, model):
        self.calls.append({"context": context, "text": text, "model": model})
        if self._error is not None:
            raise self._error
        return self._action


def test_ai_move_goes_through_the_transaction(demo_state):
    llm = FakeLLM(ProposedAction(intent="move", episode_ref="304", milestone_code="lock", date="12/18", reply="Done!"))
    r = process_command("push lock on 304 to the 18th", demo_state, llm=llm, model="m", today=TODAY)

    assert r.success
    assert r.message == "Moved 304 LOCK to 12/18/2024\nDone!"
    assert demo_state.milestone("ms-304-lock").scheduled_date == date(2024, 12, 18)
    assert llm.calls[0]["model"] == "m"
    assert llm.calls[0]["context"]["today"] == "2024-12-02"


def test_ai_proposal_is_revalidated(demo_state):
    llm = FakeLLM(ProposedAction(intent="move", episode_ref="304", milestone_code="LOCK", date="Friday", reply="Sure!"))
    r = process_command("lock 304 on friday", demo_state, llm=llm, today=TODAY)

    assert not r.success
    assert r.message == "Cannot move milestone due to dependency conflicts"
    assert demo_state.milestone("ms-304-lock").scheduled_date == date(2024, 12, 16)


def test_ai_failure_is_reported_not_swallowed(demo_state):
    llm = FakeLLM(error=RuntimeError("boom"))
    r = process_command("move 304 lock to 12/18", demo_state, llm=llm, today=TODAY)

    assert not r.success
    assert r.message == "AI command processing failed: boom"
    assert demo_state.milestone("ms-304-lock").scheduled_date == date(2024, 12, 16)


def test_without_llm_the_pattern_interpreter_runs(demo_state):
    r = process_command("what's late?", demo_state, today=TODAY)
    assert r.success
    assert r.items == ["303 EC"]


def test_incomplete_move_asks_back(demo_state):
    llm = FakeLLM(ProposedAction(intent="move", episode_ref="304", milestone_code="LOCK", reply="Move it to when?"))
    r = process_command("move 304 lock", demo_state, llm=llm, today=TODAY)
    assert not r.success
    assert r.message == "Move it to when?"


def test_build_context(demo_state):
    ctx = build_context(demo_state, TODAY)
    assert ctx["project"] == {"id": "demo-project", "name": "Demo Show"}
    assert [t["code"] for t in ctx["milestone_types"]] == ["EC", "DC", "LOCK", "MIX", "CC", "D"]
    assert ctx["milestone_types"][5]["requires"] == ["MIX", "CC"]
    assert len(ctx["milestones"]) <= MAX_CONTEXT_MILESTONES
    assert all(m["scheduled_date"] for m in ctx["milestones"])
    assert ctx["calendar_events"][0]["name"] == "Winter Break"


def test_to_intent():
    raw = "x"
    assert ProposedAction(intent="move", episode_ref="304", milestone_code="fpl", date="Friday").to_intent(raw) == Move(
        "304", "FPL", "Friday"
    )
    assert ProposedAction(intent="list", list_kind="VFX", episode_ref="302").to_intent(raw) == ListItems("vfx", "302")
    assert ProposedAction(intent="blocking").to_intent(raw) == Unknown(raw="x")


def test_parse_proposed_action():
    a = parse_proposed_action(
        {"intent": "late", "episode_ref": "  ", "milestone_code": None, "date": None, "list_kind": None, "reply": " ok "}
    )
    assert a == ProposedAction(intent="late", reply="ok")


@pytest.mark.parametrize(
    "obj",
    [
        [],
        {"intent": "delete_everything"},
        {"intent": "move", "episode_ref": 304},
    ],
)
def test_parse_proposed_action_rejects_bad_shapes(obj):
    with pytest.raises(ValueError):
        parse_proposed_action(obj)
