from datetime import date

import pytest

from postpro_engine.core.catalog.catalog import MilestoneCatalog
from postpro_engine.core.catalog.presets import (
    DEFAULT_PRESETS,
    PresetConfigError,
    load_and_merge,
    load_preset_file,
    preset_types,
)
from postpro_engine.core.state.provision import provision_project


@pytest.mark.parametrize("name", sorted(DEFAULT_PRESETS))
def test_default_presets_build_valid_catalogs(name):
    catalog = MilestoneCatalog(preset_types("p1", DEFAULT_PRESETS[name]))
    assert len(catalog.roots) == 1


def test_streaming_preset_shape():
    types = preset_types("p1", DEFAULT_PRESETS["streaming"])
    catalog = MilestoneCatalog(types)
    assert catalog.codes[0] == "EC"
    assert catalog.prerequisites_of("MIX") == ("M/S", "CC")
    assert catalog.get("M/S").id == "mt-ms"
    assert catalog.get("FPL").is_hard_deadline
    assert [t.sort_order for t in types] == list(range(1, len(types) + 1))


def test_preset_file_overrides_and_adds(tmp_path):
    p = tmp_path / "presets.yaml"
    p.write_text(
        "\n".join(
            [
                "minimal:",
                "  - {code: cut, name: Cut}",
                "  - {code: done, name: Done, requires_completion_of: [cut]}",
                "feature:",
                "  - {code: AC, name: Assembly Cut}",
            ]
        ),
        encoding="utf-8",
    )
    loaded = load_preset_file(p)
    assert [e["code"] for e in loaded["minimal"]] == ["CUT", "DONE"]
    assert loaded["minimal"][1]["requires_completion_of"] == ["CUT"]

    merged = load_and_merge(str(p))
    assert [e["code"] for e in merged["minimal"]] == ["CUT", "DONE"]
    assert "feature" in merged
    assert "streaming" in merged


def test_empty_preset_file(tmp_path):
    p = tmp_path / "presets.yaml"
    p.write_text("", encoding="utf-8")
    assert load_preset_file(p) == {}


@pytest.mark.parametrize(
    "body",
    [
        "- just a list",
        "broken: []",
        "broken:\n  - {name: No Code}",
        "broken:\n  - {code: X, name: X, requires_completion_of: Y}",
        "broken:\n  - {code: X, name: X, is_hard_deadline: \"false\"}",
        "a: [unclosed\n",
    ],
)
def test_invalid_preset_files(tmp_path, body):
    p = tmp_path / "presets.yaml"
    p.write_text(body, encoding="utf-8")
    with pytest.raises(PresetConfigError):
        load_preset_file(p)


def test_provision_creates_one_milestone_per_episode_and_type():
    state = provision_project(
        project_id="p1",
        types=preset_types("p1", DEFAULT_PRESETS["minimal"]),
        episode_count=3,
        start_number=101,
    )
    assert [e.number for e in state.episodes] == ["101", "102", "103"]
    assert len(state.milestones) == 12
    assert all(m.scheduled_date is None for m in state.milestones)
    assert state.milestone_for("ep-2", "mt-lock").id == "ms-ep-2-mt-lock"


def test_provision_staggers_dates():
    state = provision_project(
        project_id="p1",
        types=preset_types("p1", DEFAULT_PRESETS["minimal"]),
        episode_count=2,
        episode_prefix="S1E",
        base_date=date(2024, 1, 1),
    )
    assert [e.number for e in state.episodes] == ["S1E1", "S1E2"]
    # second episode (+3 days), third type (+14 days)
    assert state.milestone_for("ep-2", "mt-finish").scheduled_date == date(2024, 1, 18)


def test_provision_requires_an_episode():
    with pytest.raises(ValueError):
        provision_project(project_id="p1", types=[], episode_count=0)
