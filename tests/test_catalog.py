import pytest

from postpro_engine.core.catalog.catalog import MilestoneCatalog, validate_catalog
from postpro_engine.core.errors import ConfigurationError
from postpro_engine.core.model import MilestoneType


def _t(code, requires=(), i=0, type_id=None):
    return MilestoneType(
        id=type_id or f"mt-{code.lower()}",
        project_id="p1",
        code=code,
        name=code,
        sort_order=i,
        requires_completion_of=tuple(requires),
    )


def _codes(errors):
    return [e.code for e in errors]


def test_catalog_indexes_both_directions():
    catalog = MilestoneCatalog(
        [
            _t("EC"),
            _t("DC", ["EC"]),
            _t("LOCK", ["DC"]),
            _t("MIX", ["LOCK"]),
            _t("CC", ["LOCK"]),
            _t("D", ["MIX", "CC"]),
        ]
    )
    assert catalog.codes == ["EC", "DC", "LOCK", "MIX", "CC", "D"]
    assert catalog.roots == ["EC"]
    assert catalog.prerequisites_of("D") == ("MIX", "CC")
    assert catalog.dependents_of("LOCK") == ("MIX", "CC")
    assert catalog.dependents_of("D") == ()
    assert catalog.prerequisites_of("NOPE") == ()
    assert "LOCK" in catalog
    assert len(catalog) == 6
    assert catalog.by_id("mt-dc").code == "DC"


def test_repeated_prerequisite_is_counted_once():
    catalog = MilestoneCatalog([_t("EC"), _t("DC", ["EC", "EC"])])
    assert catalog.prerequisites_of("DC") == ("EC",)
    assert catalog.dependents_of("EC") == ("DC",)


def test_validate_reports_duplicate_code():
    errors = validate_catalog([_t("EC", type_id="mt-1"), _t("EC", type_id="mt-2")])
    assert _codes(errors) == ["E_DUPLICATE_CODE"]


def test_validate_reports_duplicate_type_id():
    errors = validate_catalog([_t("EC", type_id="mt-1"), _t("DC", ["EC"], type_id="mt-1")])
    assert _codes(errors) == ["E_DUPLICATE_ID"]
    assert errors[0].path == "milestone_types[1].id"

    with pytest.raises(ConfigurationError) as exc:
        MilestoneCatalog([_t("EC", type_id="mt-1"), _t("DC", ["EC"], type_id="mt-1")])
    assert exc.value.code == "E_DUPLICATE_ID"


def test_validate_reports_self_dependency():
    errors = validate_catalog([_t("EC", ["EC"])])
    assert _codes(errors) == ["E_SELF_DEPENDENCY"]


def test_validate_rejects_unknown_prerequisite():
    errors = validate_catalog([_t("EC"), _t("FPL", ["NC"])])
    assert _codes(errors) == ["E_UNKNOWN_PREREQUISITE"]
    assert "NC" in errors[0].message


def test_validate_detects_two_node_cycle():
    errors = validate_catalog([_t("EC", ["DC"]), _t("DC", ["EC"])])
    assert _codes(errors) == ["E_CYCLE_DETECTED"]
    assert "EC -> DC -> EC" in errors[0].message


def test_validate_detects_longer_cycle_once():
    errors = validate_catalog([_t("A", ["C"]), _t("B", ["A"]), _t("C", ["B"]), _t("D", ["C"])])
    assert _codes(errors) == ["E_CYCLE_DETECTED"]


def test_catalog_construction_fails_on_cycle():
    with pytest.raises(ConfigurationError) as exc:
        MilestoneCatalog([_t("EC", ["DC"]), _t("DC", ["EC"])])
    assert exc.value.code == "E_CYCLE_DETECTED"
    assert "E_CYCLE_DETECTED" in str(exc.value)


def test_empty_catalog_is_valid():
    catalog = MilestoneCatalog([])
    assert catalog.codes == []
    assert catalog.roots == []
