from datetime import timedelta

import pytest

from config import EXERCISE
from exercise_bank import (
    EXERCISE_LABELS,
    HYPO_TREATMENT_TIP,
    TYPE_CONFIG,
    active_reminder,
    checklist_items,
    delayed_warning,
    get_pre_exercise_tips,
    get_type_config,
    hypo_help_steps,
    recovery_window,
)
from models import ExerciseSession, ExerciseType, Intensity


def _session(exercise_type, intensity="moderate", duration=30):
    return ExerciseSession(ExerciseType(exercise_type), Intensity(intensity), duration, "x")


def test_every_type_has_config_and_label():
    for exercise_type in ExerciseType:
        cfg = TYPE_CONFIG[exercise_type]
        assert 0 < cfg.mid_check_timing < 1
        assert cfg.recovery_factor > 0
        assert cfg.mid_check_message
        assert EXERCISE_LABELS[exercise_type]


def test_type_config_is_read_only():
    with pytest.raises(TypeError):
        TYPE_CONFIG[ExerciseType.YOGA] = TYPE_CONFIG[ExerciseType.HIIT]


def test_get_type_config_accepts_strings():
    assert get_type_config("HIIT").mid_check_timing == 0.4
    with pytest.raises(ValueError):
        get_type_config("rowing")


@pytest.mark.parametrize("exercise_type", ["yoga", "walking"])
@pytest.mark.parametrize("intensity", ["light", "moderate", "intense"])
def test_gentle_types_have_no_warnings(exercise_type, intensity):
    assert delayed_warning(exercise_type, intensity) is None
    assert active_reminder(exercise_type, intensity) is None


@pytest.mark.parametrize("exercise_type", ["cardio", "hiit"])
@pytest.mark.parametrize("intensity", ["moderate", "intense"])
def test_cardio_and_hiit_populate_warnings(exercise_type, intensity):
    assert delayed_warning(exercise_type, intensity)
    assert active_reminder(exercise_type, intensity)


def test_light_sessions_skip_warnings():
    assert delayed_warning("cardio", "light") is None
    assert active_reminder("hiit", "light") is None


def test_recovery_window_scales_with_type_and_intensity():
    assert recovery_window("hiit", "intense") == timedelta(minutes=180)
    assert recovery_window("strength", "moderate") == timedelta(minutes=60)
    assert recovery_window("yoga", "light") == timedelta(minutes=15)
    assert recovery_window("cardio", "light") < recovery_window("cardio", "intense")


def test_basal_checklist_item_only_for_pump():
    mdi = [key for key, _ in checklist_items("cardio", is_pump=False)]
    pump = [key for key, _ in checklist_items("cardio", is_pump=True)]
    assert mdi == ["bg_checked", "carbs_considered"]
    assert pump == ["bg_checked", "carbs_considered", "basal_adjusted"]


def test_tips_end_with_hypo_reminder():
    for exercise_type in ExerciseType:
        for is_pump in (True, False):
            tips = get_pre_exercise_tips(_session(exercise_type.value), is_pump)
            assert tips[-1] == HYPO_TREATMENT_TIP
            assert len(tips) == len(set(tips))


def test_pump_and_injection_tips_differ():
    for exercise_type in ("cardio", "strength", "hiit", "sports", "swimming"):
        session = _session(exercise_type)
        assert get_pre_exercise_tips(session, True) != get_pre_exercise_tips(session, False)


def test_long_cardio_gets_fuelling_tip():
    fuelling = "For sessions over 60 min, consider 15-30g carbs every 30-45 min"
    assert fuelling not in get_pre_exercise_tips(_session("cardio", duration=59), False)
    assert fuelling in get_pre_exercise_tips(_session("cardio", duration=60), False)


def test_swimming_tips_lead_with_poolside_glucose():
    tips = get_pre_exercise_tips(_session("swimming", "light"), False)
    assert tips[0] == "Keep fast-acting glucose at the poolside in case of a hypo"
    tips = get_pre_exercise_tips(_session("swimming", "moderate"), True)
    assert tips[1] == "Keep fast-acting glucose at the poolside in case of a hypo"


def test_intensity_tips():
    carbs = "Consider having 15-20g of fast-acting carbs if BG is below 7 mmol/L"
    rise = "High intensity exercise may cause BG to rise initially, then drop later"
    long_acting = "If on long-acting insulin, be aware of increased hypo risk post-exercise"
    assert carbs not in get_pre_exercise_tips(_session("walking", "light"), False)
    assert get_pre_exercise_tips(_session("walking", "moderate"), True)[0] == carbs
    assert get_pre_exercise_tips(_session("strength", "intense"), True)[:2] == [carbs, rise]
    assert get_pre_exercise_tips(_session("hiit", "intense"), False)[:3] == [carbs, rise, long_acting]
    assert long_acting not in get_pre_exercise_tips(_session("cardio", "intense"), True)


@pytest.mark.parametrize("exercise_type", [t.value for t in ExerciseType])
def test_carbs_tip_is_within_the_tips_shown(exercise_type):
    carbs = "Consider having 15-20g of fast-acting carbs if BG is below 7 mmol/L"
    for is_pump in (True, False):
        tips = get_pre_exercise_tips(_session(exercise_type, "moderate", duration=60), is_pump)
        assert carbs in tips[:EXERCISE["tips_shown"]]


def test_hypo_help_steps_use_treatment_thresholds():
    steps = hypo_help_steps()
    assert steps[0] == "Stop exercising and sit down"
    assert "15-20g of fast-acting carbs" in steps[1]
    assert "below 4.0 mmol/L" in steps[2]
