from __future__ import annotations

import logging
from collections import Counter
from typing import Iterable, Iterator, Optional

from postpro_engine.core.errors import ConfigurationError
from postpro_engine.core.model import MilestoneType


logger = logging.getLogger(__name__)


# Catalog rules:
# - E_DUPLICATE_CODE: two types share a code within the project
# - E_DUPLICATE_ID: two types share an id
# - E_SELF_DEPENDENCY: a type lists its own code as a prerequisite
# - E_UNKNOWN_PREREQUISITE: requires_completion_of names a code not in the catalog
# - E_CYCLE_DETECTED: the prerequisite relation contains a cycle


class MilestoneCatalog:
    """Per-project milestone types plus their prerequisite adjacency.

    Built once per load. Both directions of the relation are indexed by code,
    in catalog order, so queries never rescan the type list.
    """

    def __init__(self, types: Iterable[MilestoneType]) -> None:
        self._types: list[MilestoneType] = list(types)
        errors = validate_catalog(self._types)
        if errors:
            first = errors[0]
            raise ConfigurationError(
                code=first.code,
                message="; ".join(e.message for e in errors),
                file=first.file,
                path=first.path,
            )

        self._by_code: dict[str, MilestoneType] = {t.code: t for t in self._types}
        self._by_id: dict[str, MilestoneType] = {t.id: t for t in self._types}
        self._prereqs: dict[str, tuple[str, ...]] = {
            t.code: tuple(dict.fromkeys(t.requires_completion_of)) for t in self._types
        }

        dependents: dict[str, list[str]] = {t.code: [] for t in self._types}
        for t in self._types:
            for code in self._prereqs[t.code]:
                dependents[code].append(t.code)
        self._dependents: dict[str, tuple[str, ...]] = {k: tuple(v) for k, v in dependents.items()}

        logger.debug(
            "built milestone catalog: %d types, %d edges",
            len(self._types),
            sum(len(v) for v in self._prereqs.values()),
        )

    def __iter__(self) -> Iterator[MilestoneType]:
        return iter(self._types)

    def __len__(self) -> int:
        return len(self._types)

    def __contains__(self, code: object) -> bool:
        return code in self._by_code

    @property
    def codes(self) -> list[str]:
        return [t.code for t in self._types]

    @property
    def roots(self) -> list[str]:
        return [t.code for t in self._types if not self._prereqs[t.code]]

    def get(self, code: str) -> Optional[MilestoneType]:
        return self._by_code.get(code)

    def by_id(self, type_id: str) -> Optional[MilestoneType]:
        return self._by_id.get(type_id)

    def prerequisites_of(self, code: str) -> tuple[str, ...]:
        return self._prereqs.get(code, ())

    def dependents_of(self, code: str) -> tuple[str, ...]:
        return self._dependents.get(code, ())


def build_catalog(types: Iterable[MilestoneType]) -> MilestoneCatalog:
    return MilestoneCatalog(types)


def validate_catalog(
    types: list[MilestoneType], *, file: Optional[str] = None
) -> list[ConfigurationError]:
    """Return every catalog problem; an empty list means the catalog is usable."""

    errors: list[ConfigurationError] = []
    index_of: dict[str, int] = {}

    counts = Counter(t.code for t in types)
    seen: set[str] = set()
    for i, t in enumerate(types):
        index_of.setdefault(t.code, i)
        if counts[t.code] > 1:
            if t.code in seen:
                errors.append(
                    ConfigurationError(
                        code="E_DUPLICATE_CODE",
                        message=f"duplicate milestone type code: {t.code} (count={counts[t.code]})",
                        file=file,
                        path=f"milestone_types[{i}].code",
                    )
                )
            seen.add(t.code)

    id_counts = Counter(t.id for t in types)
    seen_ids: set[str] = set()
    for i, t in enumerate(types):
        if id_counts[t.id] > 1:
            if t.id in seen_ids:
                errors.append(
                    ConfigurationError(
                        code="E_DUPLICATE_ID",
                        message=f"duplicate milestone type id: {t.id} (count={id_counts[t.id]})",
                        file=file,
                        path=f"milestone_types[{i}].id",
                    )
                )
            seen_ids.add(t.id)

    for i, t in enumerate(types):
        for pi, prereq in enumerate(t.requires_completion_of):
            if prereq == t.code:
                errors.append(
                    ConfigurationError(
                        code="E_SELF_DEPENDENCY",
                        message=f"{t.code} cannot require itself",
                        file=file,
                        path=f"milestone_types[{i}].requires_completion_of[{pi}]",
                    )
                )
            elif prereq not in counts:
                errors.append(
                    ConfigurationError(
                        code="E_UNKNOWN_PREREQUISITE",
                        message=f"{t.code} requires unknown milestone type code: {prereq}",
                        file=file,
                        path=f"milestone_types[{i}].requires_completion_of[{pi}]",
                    )
                )

    code_to_prereqs: dict[str, list[str]] = {}
    for t in types:
        code_to_prereqs.setdefault(
            t.code, [p for p in t.requires_completion_of if p != t.code and p in counts]
        )

    for code, msg in _detect_cycles(code_to_prereqs):
        errors.append(
            ConfigurationError(
                code="E_CYCLE_DETECTED",
                message=msg,
                file=file,
                path=f"milestone_types[{index_of.get(code, 0)}].requires_completion_of",
            )
        )

    return _sorted(errors)


def _detect_cycles(code_to_prereqs: dict[str, list[str]]) -> list[tuple[str, str]]:
    WHITE, GRAY, BLACK = 0, 1, 2
    state: dict[str, int] = {code: WHITE for code in code_to_prereqs.keys()}
    stack: list[str] = []
    emitted: set[frozenset[str]] = set()
    out: list[tuple[str, str]] = []

    def dfs(u: str) -> None:
        state[u] = GRAY
        stack.append(u)
        for v in code_to_prereqs.get(u, []):
            if state[v] == GRAY:
                cycle = stack[stack.index(v) :] + [v]
                key = frozenset(cycle)
                if key not in emitted:
                    emitted.add(key)
                    out.append((u, "prerequisite cycle detected: " + " -> ".join(cycle)))
            elif state[v] == WHITE:
                dfs(v)
        stack.pop()
        state[u] = BLACK

    for code in list(state.keys()):
        if state[code] == WHITE:
            dfs(code)

    return out


def _sorted(errors: list[ConfigurationError]) -> list[ConfigurationError]:
    return sorted(errors, key=lambda e: (e.file or "", e.path or "", e.code))
