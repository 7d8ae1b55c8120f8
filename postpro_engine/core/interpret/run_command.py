from __future__ import annotations

from datetime import date, timedelta
from typing import Optional

from postpro_engine.core.dates.resolve_date import format_date, resolve_date, week_bounds
from postpro_engine.core.errors import NotFoundError, ScheduleError, UnparseableDateError
from postpro_engine.core.interpret.intents import (
    Blocking,
    Intent,
    Late,
    ListItems,
    Move,
    ShowEpisode,
    ShowNextWeek,
    ShowThisWeek,
    Unknown,
    WhatIf,
)
from postpro_engine.core.interpret.parse_command import parse_command
from postpro_engine.core.model import DateRange, Milestone, Result
from postpro_engine.core.state.schedule_state import ScheduleState
from postpro_engine.core.transaction.move import move_milestone, what_if


USAGE_HINT = "I didn't understand that. Try \"move 304 lock to Friday\" or \"what's late?\""


def run_command(text: str, state: ScheduleState, *, today: Optional[date] = None) -> Result:
    """Parse and execute one instruction with the pattern-based interpreter."""
    return run_intent(parse_command(text), state, today=today or date.today())


def run_intent(intent: Intent, state: ScheduleState, *, today: date) -> Result:
    try:
        return _dispatch(intent, state, today)
    except UnparseableDateError as e:
        return Result(
            success=False,
            message=e.message,
            clarification_needed="Which date did you mean? Try a weekday, \"next week\", or M/D.",
        )
    except ScheduleError as e:
        return Result(success=False, message=e.message)


def resolve_target(state: ScheduleState, episode_ref: str, milestone_code: str) -> Milestone:
    """Find the milestone for (episode reference, type code) or raise NotFoundError."""

    episode = state.find_episode(episode_ref)
    if episode is None:
        raise NotFoundError(code="E_EPISODE_NOT_FOUND", message=f"Episode {episode_ref} not found")

    code = milestone_code.upper()
    mtype = state.catalog.get(code)
    if mtype is None:
        raise NotFoundError(code="E_UNKNOWN_MILESTONE_TYPE", message=f"Unknown milestone type: {code}")

    milestone = state.milestone_for(episode.id, mtype.id)
    if milestone is None:
        raise NotFoundError(
            code="E_MILESTONE_NOT_FOUND",
            message=f"{episode.number} doesn't have a {mtype.code} scheduled",
        )
    return milestone


def resolve_target_date(text: str, today: date) -> date:
    resolved = resolve_date(text, today)
    if resolved is None:
        raise UnparseableDateError(code="E_UNPARSEABLE_DATE", message=f'Couldn\'t understand date: "{text}"')
    return resolved


def _dispatch(intent: Intent, state: ScheduleState, today: date) -> Result:
    if isinstance(intent, Move):
        milestone = resolve_target(state, intent.episode_ref, intent.milestone_code)
        return move_milestone(state, milestone.id, resolve_target_date(intent.date_text, today))

    if isinstance(intent, WhatIf):
        milestone = resolve_target(state, intent.episode_ref, intent.milestone_code)
        return what_if(state, milestone.id, resolve_target_date(intent.date_text, today))

    if isinstance(intent, (ShowThisWeek, ShowNextWeek)):
        anchor = today if isinstance(intent, ShowThisWeek) else today + timedelta(weeks=1)
        start, end = week_bounds(anchor)
        which = "this week" if isinstance(intent, ShowThisWeek) else "next week"
        items = [_describe(state, m) for m in state.milestones_between(start, end)]
        return Result(
            success=True,
            message=f"Showing {which}",
            date_range=DateRange(start=start, end=end),
            items=items,
        )

    if isinstance(intent, ShowEpisode):
        episode = state.find_episode(intent.episode_ref)
        if episode is None:
            return Result(success=False, message=f'Not sure what to show: "{intent.episode_ref}"')
        items = [_describe(state, m) for m in state.milestones_for_episode(episode.id)]
        return Result(
            success=True,
            message=f"Selected episode {episode.number}",
            episode_id=episode.id,
            items=items,
        )

    if isinstance(intent, Late):
        late = state.late_milestones(today)
        if not late:
            return Result(success=True, message="Nothing is currently late!")
        labels = [state.label(m) for m in late]
        return Result(
            success=True,
            message=f"{len(late)} item(s) are past their scheduled date: {', '.join(labels)}",
            items=labels,
        )

    if isinstance(intent, Blocking):
        episode = state.find_episode(intent.episode_ref)
        if episode is None:
            raise NotFoundError(code="E_EPISODE_NOT_FOUND", message=f"Episode {intent.episode_ref} not found")
        incomplete, pending = state.blockers(episode.id)
        blockers = [f"{state.type_of(m).code} ({m.status})" for m in incomplete]
        if pending:
            blockers.append(f"{len(pending)} work item(s) pending")
        if not blockers:
            return Result(success=True, message=f"Nothing is blocking {episode.number}!", episode_id=episode.id)
        return Result(
            success=True,
            message=f"{episode.number} is waiting on: {', '.join(blockers)}",
            episode_id=episode.id,
            items=blockers,
        )

    if isinstance(intent, ListItems):
        return _list_items(intent, state)

    if isinstance(intent, Unknown):
        return Result(success=False, message=intent.reason or USAGE_HINT)

    raise TypeError(f"unsupported intent: {intent!r}")


def _list_items(intent: ListItems, state: ScheduleState) -> Result:
    episode = None
    if intent.episode_ref:
        episode = state.find_episode(intent.episode_ref)
        if episode is None:
            raise NotFoundError(code="E_EPISODE_NOT_FOUND", message=f"Episode {intent.episode_ref} not found")
    scope = f" for {episode.number}" if episode else ""

    if intent.kind in ("milestone", "milestones"):
        milestones = state.milestones_for_episode(episode.id) if episode else state.milestones
        items = [_describe(state, m) for m in milestones]
        return Result(
            success=True,
            message=f"{len(items)} milestone(s){scope}",
            episode_id=episode.id if episode else None,
            items=items,
        )

    kind = intent.kind.lower()
    work = [
        w
        for w in state.work_items
        if (episode is None or w.episode_id == episode.id)
        and (
            intent.kind in ("work", "items", "all")
            or kind in (w.department or "").lower()
            or kind in w.work_description.lower()
        )
    ]
    items = [f"{w.work_description} ({w.status})" for w in work]
    if not items:
        return Result(success=True, message=f"No {intent.kind} items{scope}", episode_id=episode.id if episode else None)
    return Result(
        success=True,
        message=f"{len(items)} {intent.kind} item(s){scope}",
        episode_id=episode.id if episode else None,
        items=items,
    )


def _describe(state: ScheduleState, m: Milestone) -> str:
    when = format_date(m.scheduled_date) if m.scheduled_date else "unscheduled"
    return f"{state.label(m)}: {when} [{m.status}]"
