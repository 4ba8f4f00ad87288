import pytest

from triage import triage_pre_exercise


def test_missing_reading_is_amber():
    level, flags = triage_pre_exercise(None, "moderate")
    assert level == "AMBER"
    assert "check BG" in flags[0]


def test_hypo_is_red():
    level, flags = triage_pre_exercise(3.6, "light")
    assert level == "RED"
    assert len(flags) == 1


def test_high_ketones_is_red():
    level, _ = triage_pre_exercise(16.0, "moderate", ketones_mmol=1.8)
    assert level == "RED"


def test_in_range_is_green():
    assert triage_pre_exercise(8.5, "intense") == ("GREEN", [])


@pytest.mark.parametrize("intensity,snippet", [("moderate", "15-20g"), ("light", "keep fast-acting carbs")])
def test_below_target_is_amber(intensity, snippet):
    level, flags = triage_pre_exercise(5.5, intensity)
    assert level == "AMBER"
    assert snippet in flags[0]


def test_high_without_ketones_asks_for_check():
    level, flags = triage_pre_exercise(16.5, "intense")
    assert level == "AMBER"
    assert any("check ketones" in f for f in flags)
    assert any("Intense exercise" in f for f in flags)


def test_high_with_low_ketones():
    level, flags = triage_pre_exercise(16.5, "light", ketones_mmol=0.4)
    assert level == "AMBER"
    assert "ketones are low" in flags[0]


def test_unknown_intensity():
    with pytest.raises(ValueError):
        triage_pre_exercise(8.0, "max")
