import pytest

from engageflow.reclassify import Reclassifier, is_flagged, reclassify
from engageflow.resolver import FacilityResolver
from engageflow.schema import InputRecord, UnitEntry


def _rec(emdan: str = "", category: str = "NurseCalls", config_group: str = "General PM") -> InputRecord:
    return InputRecord(category=category, config_group=config_group, alarm_name="Code Blue", emdan=emdan)


@pytest.mark.parametrize("flag", ["y", "Y", "yes", "YES", " Yes "])
def test_flagged_nurse_call_moves_to_clinicals(flag: str):
    r = Reclassifier()
    [out] = r.reclassify([_rec(flag)])
    assert out.category == "Clinicals"
    assert out.reclassified_from == "NurseCalls"
    assert out.emdan == flag
    assert out.config_group == "General PM"
    assert r.moved_count == 1


@pytest.mark.parametrize("flag", ["", "n", "no", "maybe", "yess"])
def test_other_values_stay_put(flag: str):
    r = Reclassifier()
    [out] = r.reclassify([_rec(flag)])
    assert out.category == "NurseCalls"
    assert out.reclassified_from is None
    assert r.moved_count == 0


def test_reclassify_is_idempotent():
    records = [_rec("Yes"), _rec(""), _rec("y", category="Clinicals"), _rec("Y", category="Orders")]
    once = reclassify(records)
    second = Reclassifier()
    twice = second.reclassify(once)
    assert [r.category for r in twice] == [r.category for r in once]
    assert [r.category for r in once] == ["Clinicals", "NurseCalls", "Clinicals", "Orders"]
    assert second.moved_count == 0


def test_no_record_dropped_and_input_untouched():
    records = [_rec("Yes"), _rec("No")]
    out = reclassify(records)
    assert len(out) == 2
    assert records[0].category == "NurseCalls"


def test_moved_record_resolves_facility_via_origin_column():
    resolver = FacilityResolver([UnitEntry(facility="BCH", unit_names="MedSurg", nurse_group="General PM")])
    [out] = Reclassifier(resolver).reclassify([_rec("yes")])
    assert out.category == "Clinicals"
    assert out.facility == "BCH"


def test_target_column_takes_precedence():
    resolver = FacilityResolver(
        [
            UnitEntry(facility="BCH", unit_names="MedSurg", nurse_group="General PM"),
            UnitEntry(facility="Tower", unit_names="ICU", clinical_group="General PM"),
        ]
    )
    [out] = Reclassifier(resolver).reclassify([_rec("yes")])
    assert out.facility == "Tower"


def test_is_flagged():
    assert is_flagged(_rec("Yes"))
    assert not is_flagged(_rec(""))
