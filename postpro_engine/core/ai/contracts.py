from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

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


ACTION_INTENTS: tuple[str, ...] = (
    "move",
    "what_if",
    "show_this_week",
    "show_next_week",
    "show_episode",
    "late",
    "blocking",
    "list",
    "unknown",
)


@dataclass(frozen=True)
class ProposedAction:
    """What the model thinks the user asked for. Never trusted as-is."""

    intent: str
    episode_ref: Optional[str] = None
    milestone_code: Optional[str] = None
    date: Optional[str] = None
    list_kind: Optional[str] = None
    reply: Optional[str] = None

    def to_intent(self, raw: str) -> Intent:
        if self.intent in ("move", "what_if"):
            if not (self.episode_ref and self.milestone_code and self.date):
                return Unknown(raw=raw, reason=self.reply or "Which episode, milestone, and date?")
            cls = Move if self.intent == "move" else WhatIf
            return cls(
                episode_ref=self.episode_ref,
                milestone_code=self.milestone_code.upper(),
                date_text=self.date,
            )
        if self.intent == "show_this_week":
            return ShowThisWeek()
        if self.intent == "show_next_week":
            return ShowNextWeek()
        if self.intent == "show_episode" and self.episode_ref:
            return ShowEpisode(episode_ref=self.episode_ref)
        if self.intent == "late":
            return Late()
        if self.intent == "blocking" and self.episode_ref:
            return Blocking(episode_ref=self.episode_ref)
        if self.intent == "list" and self.list_kind:
            return ListItems(kind=self.list_kind.lower(), episode_ref=self.episode_ref)
        return Unknown(raw=raw, reason=self.reply)


def parse_proposed_action(obj: dict[str, Any]) -> ProposedAction:
    if not isinstance(obj, dict):
        raise ValueError("ProposedAction must be an object")

    intent = obj.get("intent")
    if not isinstance(intent, str) or intent not in ACTION_INTENTS:
        raise ValueError(f"intent must be one of {list(ACTION_INTENTS)}")

    fields: dict[str, Optional[str]] = {}
    for key in ("episode_ref", "milestone_code", "date", "list_kind", "reply"):
        v = obj.get(key)
        if v is not None and not isinstance(v, str):
            raise ValueError(f"{key} must be a string or null")
        fields[key] = v.strip() if isinstance(v, str) and v.strip() else None

    return ProposedAction(intent=intent, **fields)
