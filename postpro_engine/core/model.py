from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Literal, Optional


MilestoneStatus = Literal["scheduled", "in_progress", "completed", "skipped"]
EpisodeStatus = Literal["prep", "shooting", "active", "locked", "delivered"]
CalendarEventType = Literal["holiday", "hold", "block", "note"]
WorkItemStatus = Literal["pending", "in_progress", "review", "approved", "omitted"]
ConflictKind = Literal["dependency", "resource", "deadline"]
Severity = Literal["error", "warning", "info"]

MILESTONE_STATUSES: tuple[str, ...] = ("scheduled", "in_progress", "completed", "skipped")
EPISODE_STATUSES: tuple[str, ...] = ("prep", "shooting", "active", "locked", "delivered")
CALENDAR_EVENT_TYPES: tuple[str, ...] = ("holiday", "hold", "block", "note")
WORK_ITEM_STATUSES: tuple[str, ...] = ("pending", "in_progress", "review", "approved", "omitted")


@dataclass(frozen=True)
class MilestoneType:
    id: str
    project_id: str
    code: str
    name: str
    sort_order: int
    is_hard_deadline: bool = False
    requires_completion_of: tuple[str, ...] = ()


@dataclass(frozen=True)
class Episode:
    id: str
    project_id: str
    number: str
    sort_order: int
    status: EpisodeStatus = "active"
    title: Optional[str] = None


@dataclass(frozen=True)
class Milestone:
    id: str
    episode_id: str
    milestone_type_id: str
    scheduled_date: Optional[date] = None
    status: MilestoneStatus = "scheduled"
    notes: Optional[str] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "episode_id": self.episode_id,
            "milestone_type_id": self.milestone_type_id,
            "scheduled_date": self.scheduled_date.isoformat() if self.scheduled_date else None,
            "status": self.status,
            "notes": self.notes,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass(frozen=True)
class CalendarEvent:
    project_id: str
    name: str
    event_type: CalendarEventType
    start_date: date
    end_date: Optional[date] = None
    affects_all: bool = True

    def covers(self, day: date) -> bool:
        end = self.end_date or self.start_date
        return self.start_date <= day <= end


@dataclass(frozen=True)
class WorkItem:
    id: str
    episode_id: str
    work_description: str
    status: WorkItemStatus = "pending"
    department: Optional[str] = None


@dataclass(frozen=True)
class ScheduleConflict:
    kind: ConflictKind
    severity: Severity
    message: str
    affected_milestone_ids: tuple[str, ...]
    suggested_resolution: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "severity": self.severity,
            "message": self.message,
            "affected_milestone_ids": list(self.affected_milestone_ids),
            "suggested_resolution": self.suggested_resolution,
        }


@dataclass(frozen=True)
class DateRange:
    start: date
    end: date


@dataclass(frozen=True)
class Result:
    success: bool
    message: str
    conflicts: list[ScheduleConflict] = field(default_factory=list)

    # Updated record for the persistence collaborator (applied moves only).
    milestone: Optional[Milestone] = None
    clarification_needed: Optional[str] = None
    date_range: Optional[DateRange] = None
    episode_id: Optional[str] = None
    items: list[str] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return any(c.severity == "error" for c in self.conflicts)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "message": self.message,
            "conflicts": [c.to_dict() for c in self.conflicts],
            "milestone": self.milestone.to_dict() if self.milestone else None,
            "clarification_needed": self.clarification_needed,
            "date_range": (
                {"start": self.date_range.start.isoformat(), "end": self.date_range.end.isoformat()}
                if self.date_range
                else None
            ),
            "episode_id": self.episode_id,
            "items": list(self.items),
        }
