from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union


@dataclass(frozen=True)
class Move:
    episode_ref: str
    milestone_code: str
    date_text: str


@dataclass(frozen=True)
class WhatIf:
    episode_ref: str
    milestone_code: str
    date_text: str


@dataclass(frozen=True)
class ShowThisWeek:
    pass


@dataclass(frozen=True)
class ShowNextWeek:
    pass


@dataclass(frozen=True)
class ShowEpisode:
    episode_ref: str


@dataclass(frozen=True)
class Late:
    pass


@dataclass(frozen=True)
class Blocking:
    episode_ref: str


@dataclass(frozen=True)
class ListItems:
    kind: str
    episode_ref: Optional[str] = None


@dataclass(frozen=True)
class Unknown:
    raw: str
    reason: Optional[str] = None


Intent = Union[Move, WhatIf, ShowThisWeek, ShowNextWeek, ShowEpisode, Late, Blocking, ListItems, Unknown]
