from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from postpro_engine.core.model import MilestoneType


PresetEntry = dict[str, Any]


def _entry(code: str, name: str, requires: list[str], hard: bool = False) -> PresetEntry:
    return {
        "code": code,
        "name": name,
        "requires_completion_of": requires,
        "is_hard_deadline": hard,
    }


DEFAULT_PRESETS: dict[str, list[PresetEntry]] = {
    "streaming": [
        _entry("EC", "Editor's Cut", []),
        _entry("DC", "Director's Cut", ["EC"]),
        _entry("PC", "Producer's Cut", ["DC"]),
        _entry("SC", "Studio Cut", ["PC"]),
        _entry("FPL", "Final Picture Lock", ["SC"], hard=True),
        _entry("M/S", "Music/Sound Spotting", ["FPL"]),
        _entry("CC", "Color Correction", ["FPL"]),
        _entry("MIX", "Final Mix", ["M/S", "CC"]),
        _entry("QC", "Quality Control", ["MIX"]),
        _entry("D", "Delivery", ["QC"], hard=True),
    ],
    "broadcast": [
        _entry("EC", "Editor's Cut", []),
        _entry("DC", "Director's Cut", ["EC"]),
        _entry("PC", "Producer's Cut", ["DC"]),
        _entry("NC", "Network Cut", ["PC"]),
        _entry("FPL", "Final Picture Lock", ["NC"], hard=True),
        _entry("MIX", "Final Mix", ["FPL"]),
        _entry("D", "Delivery", ["MIX"], hard=True),
    ],
    "rough_fine": [
        _entry("RC1", "Rough Cut 1", []),
        _entry("RC2", "Rough Cut 2", ["RC1"]),
        _entry("FC1", "Fine Cut 1", ["RC2"]),
        _entry("FC2", "Fine Cut 2", ["FC1"]),
        _entry("LOCK", "Picture Lock", ["FC2"], hard=True),
        _entry("MIX", "Final Mix", ["LOCK"]),
        _entry("CC", "Color Correction", ["LOCK"]),
        _entry("D", "Delivery", ["MIX", "CC"], hard=True),
    ],
    "minimal": [
        _entry("CUT", "Cut", []),
        _entry("LOCK", "Lock", ["CUT"], hard=True),
        _entry("FINISH", "Finishing", ["LOCK"]),
        _entry("DELIVER", "Delivery", ["FINISH"], hard=True),
    ],
}


class PresetConfigError(ValueError):
    pass


def load_preset_file(path: str | Path) -> dict[str, list[PresetEntry]]:
    """Load catalog presets from a YAML file.

    Format:
      <name>:
        - {code: EC, name: "Editor's Cut", requires_completion_of: [], is_hard_deadline: false}

    Returns a mapping of preset name -> ordered list of type entries.
    """
    p = Path(path)
    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise PresetConfigError(f"preset file is not valid YAML: {e}") from e
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise PresetConfigError("preset file must be a mapping of name -> list of milestone types")

    out: dict[str, list[PresetEntry]] = {}
    for k, v in raw.items():
        if not isinstance(k, str) or not k.strip():
            raise PresetConfigError("preset names must be non-empty strings")
        if not isinstance(v, list) or not v:
            raise PresetConfigError(f"preset '{k}' must be a non-empty list")
        entries: list[PresetEntry] = []
        for item in v:
            if not isinstance(item, dict):
                raise PresetConfigError(f"preset '{k}' items must be mappings")
            code = item.get("code")
            name = item.get("name")
            if not isinstance(code, str) or not code.strip():
                raise PresetConfigError(f"preset '{k}' items need a non-empty code")
            if not isinstance(name, str) or not name.strip():
                raise PresetConfigError(f"preset '{k}' item {code} needs a non-empty name")
            requires = item.get("requires_completion_of") or []
            if not isinstance(requires, list) or any(not isinstance(r, str) for r in requires):
                raise PresetConfigError(
                    f"preset '{k}' item {code}: requires_completion_of must be a list of codes"
                )
            hard = item.get("is_hard_deadline", False)
            if not isinstance(hard, bool):
                raise PresetConfigError(f"preset '{k}' item {code}: is_hard_deadline must be true or false")
            entries.append(
                _entry(
                    code.strip().upper(),
                    name.strip(),
                    [r.strip().upper() for r in requires],
                    hard=hard,
                )
            )
        out[k.strip()] = entries
    return out


def merged_presets(
    overrides: dict[str, list[PresetEntry]] | None = None,
) -> dict[str, list[PresetEntry]]:
    """Return DEFAULT_PRESETS merged with optional overrides.

    Overrides replace presets of the same name, and may add new ones.
    """
    merged = dict(DEFAULT_PRESETS)
    if overrides:
        for k, v in overrides.items():
            merged[k] = list(v)
    return merged


def load_and_merge(preset_file: str | None) -> dict[str, list[PresetEntry]]:
    if not preset_file:
        return merged_presets()
    overrides = load_preset_file(preset_file)
    return merged_presets(overrides)


def preset_types(project_id: str, entries: list[PresetEntry]) -> list[MilestoneType]:
    """Materialize preset entries as milestone types for one project."""
    return [
        MilestoneType(
            id=f"mt-{e['code'].lower().replace('/', '')}",
            project_id=project_id,
            code=e["code"],
            name=e["name"],
            sort_order=i + 1,
            is_hard_deadline=bool(e.get("is_hard_deadline", False)),
            requires_completion_of=tuple(e.get("requires_completion_of", [])),
        )
        for i, e in enumerate(entries)
    ]
