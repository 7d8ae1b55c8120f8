from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date
from typing import Any, Optional, Protocol

from postpro_engine.core.ai.contracts import ProposedAction
from postpro_engine.core.interpret.run_command import run_command, run_intent
from postpro_engine.core.model import Result
from postpro_engine.core.state.schedule_state import ScheduleState


logger = logging.getLogger(__name__)

# Keep the prompt small on big shows.
MAX_CONTEXT_MILESTONES = 20


class CommandLLM(Protocol):
    def propose_action(self, *, context: dict[str, Any], text: str, model: str) -> ProposedAction: ...


def build_context(state: ScheduleState, today: date) -> dict[str, Any]:
    episodes = state.episodes
    numbers = {e.id: e.number for e in episodes}

    scheduled = [m for m in state.milestones if m.scheduled_date is not None]
    milestones = [
        {
            "episode": numbers.get(m.episode_id, m.episode_id),
            "code": state.type_of(m).code,
            "name": state.type_of(m).name,
            "scheduled_date": m.scheduled_date.isoformat() if m.scheduled_date else None,
            "status": m.status,
        }
        for m in scheduled[:MAX_CONTEXT_MILESTONES]
    ]

    return {
        "project": {"id": state.project_id, "name": state.project_name},
        "today": today.isoformat(),
        "episodes": [{"number": e.number, "title": e.title, "status": e.status} for e in episodes],
        "milestone_types": [
            {
                "code": t.code,
                "name": t.name,
                "requires": list(t.requires_completion_of),
                "hard_deadline": t.is_hard_deadline,
            }
            for t in sorted(state.catalog, key=lambda t: t.sort_order)
        ],
        "milestones": milestones,
        "calendar_events": [
            {
                "name": ev.name,
                "event_type": ev.event_type,
                "start_date": ev.start_date.isoformat(),
                "end_date": ev.end_date.isoformat() if ev.end_date else None,
            }
            for ev in state.calendar_events
        ],
    }


def process_command(
    text: str,
    state: ScheduleState,
    *,
    llm: Optional[CommandLLM] = None,
    model: str = "gpt-4.1-mini",
    today: Optional[date] = None,
) -> Result:
    """Run a free-text command, preferring the AI collaborator when one is given.

    Without a client the pattern-based interpreter handles the text. With a
    client, the proposed action goes back through run_intent, so moves are
    re-validated by the Move Transaction like any typed command. A failing
    client fails the command; it is never reported as success.
    """

    today = today or date.today()
    if llm is None:
        logger.debug("no AI client configured; using pattern interpreter")
        return run_command(text, state, today=today)

    # No lock is held while waiting on the model.
    context = build_context(state, today)
    try:
        action = llm.propose_action(context=context, text=text, model=model)
    except Exception as e:
        logger.warning("AI command processing failed: %s", e)
        return Result(success=False, message=f"AI command processing failed: {e}")

    logger.info("AI proposed %s for %r", action.intent, text)
    result = run_intent(action.to_intent(text), state, today=today)

    if action.reply and result.success and not result.conflicts:
        return replace(result, message=f"{result.message}\n{action.reply}")
    return result
