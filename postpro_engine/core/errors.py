from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from postpro_engine.core.model import ScheduleConflict


@dataclass(frozen=True)
class ScheduleError(Exception):
    """Base error envelope. Engine entry points translate these into a failed Result."""

    code: str
    message: str
    file: Optional[str] = None
    path: Optional[str] = None

    def __str__(self) -> str:
        parts: list[str] = []
        if self.file:
            parts.append(self.file)
        if self.path:
            parts.append(self.path)
        loc = ":".join(parts) if parts else "<schedule>"
        return f"{loc}: {self.code}: {self.message}"


class ConfigurationError(ScheduleError):
    """Cyclic or malformed milestone type catalog. Fatal at load time."""


class ScheduleLoadError(ScheduleError):
    pass


class NotFoundError(ScheduleError):
    pass


class UnparseableDateError(ScheduleError):
    pass


@dataclass(frozen=True)
class DependencyConflictError(ScheduleError):
    conflicts: tuple["ScheduleConflict", ...] = ()
