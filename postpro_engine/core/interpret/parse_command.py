from __future__ import annotations

import re

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


_FLAGS = re.IGNORECASE

# Tried top to bottom; first match wins.
# "move 304 lock to Friday" / "move 304's FPL to 12/15"
MOVE_RE = re.compile(r"move\s+(\d+)(?:['’]s?)?\s+([\w/]+)\s+(?:to\s+)?(.+)", _FLAGS)
# "what if 304 lock slips to Monday" / "what happens if 304 DC moves to 12/20"
WHAT_IF_RE = re.compile(
    r"what\s*(?:if|happens?\s*if)\s+(\d+)(?:['’]s?)?\s+([\w/]+)\s+(?:(?:slips?|moves?)\s+)?(?:to\s+)?(.+)",
    _FLAGS,
)
# "show me this week" / "show 304"
SHOW_RE = re.compile(r"show\s+(?:me\s+)?(.+)", _FLAGS)
# "what's blocking 306?"
BLOCKING_RE = re.compile(r"what(?:['’]s|s|\s+is)\s+blocking\s+(\d+)", _FLAGS)
# "what's late?"
LATE_RE = re.compile(r"what(?:['’]s|s|\s+is)\s+late", _FLAGS)
# "list VFX shots for 302" / "list milestones"
LIST_RE = re.compile(r"list\s+(\w+)(?:\s+(?:shots?\s+)?(?:for\s+)?(\d+))?", _FLAGS)

_DIGITS_RE = re.compile(r"(\d+)")


def parse_command(text: str) -> Intent:
    """Parse a free-text instruction into an Intent.

    Pattern based and case-insensitive. Milestone codes are upper-cased;
    date text is kept as typed for the date resolver.
    """

    s = text.strip()

    m = MOVE_RE.search(s)
    if m:
        return Move(
            episode_ref=m.group(1),
            milestone_code=m.group(2).upper(),
            date_text=_clean_tail(m.group(3)),
        )

    m = WHAT_IF_RE.search(s)
    if m:
        return WhatIf(
            episode_ref=m.group(1),
            milestone_code=m.group(2).upper(),
            date_text=_clean_tail(m.group(3)),
        )

    m = SHOW_RE.search(s)
    if m:
        target = m.group(1).lower()
        if "this week" in target:
            return ShowThisWeek()
        if "next week" in target:
            return ShowNextWeek()
        ep = _DIGITS_RE.search(target)
        if ep:
            return ShowEpisode(episode_ref=ep.group(1))
        return Unknown(raw=text, reason=f'Not sure what to show: "{m.group(1).strip()}"')

    m = BLOCKING_RE.search(s)
    if m:
        return Blocking(episode_ref=m.group(1))

    if LATE_RE.search(s):
        return Late()

    m = LIST_RE.search(s)
    if m:
        return ListItems(kind=m.group(1).lower(), episode_ref=m.group(2))

    return Unknown(raw=text)


def _clean_tail(s: str) -> str:
    return s.strip().rstrip("?.!").strip()
