# exercise_bank.py
# Curated per-exercise-type guidance. Canned text only - nothing here is computed advice.
from dataclasses import dataclass
from datetime import timedelta
from types import MappingProxyType
from typing import List, Optional, Tuple

from config import EXERCISE, TRIAGE
from models import ExerciseSession, ExerciseType, Intensity, Phase, parse_enum

EXERCISE_LABELS = MappingProxyType({
    ExerciseType.CARDIO: "Cardio",
    ExerciseType.STRENGTH: "Strength",
    ExerciseType.HIIT: "HIIT",
    ExerciseType.YOGA: "Yoga",
    ExerciseType.WALKING: "Walking",
    ExerciseType.SPORTS: "Sports",
    ExerciseType.SWIMMING: "Swimming",
})

INTENSITY_LABELS = MappingProxyType({
    Intensity.LIGHT: "Light",
    Intensity.MODERATE: "Moderate",
    Intensity.INTENSE: "Intense",
})

PHASE_LABELS = MappingProxyType({
    Phase.PRE: "Preparing",
    Phase.ACTIVE: "In Progress",
    Phase.RECOVERY: "Recovery",
})

HYPO_TREATMENT_TIP = "Keep hypo treatment within easy reach during exercise"
INTENSE_DELAYED_HYPO = "Intense exercise can cause delayed hypos for up to 24 hours"
EVENING_SNACK = "Evening exercise - consider a bedtime snack to prevent overnight lows"


@dataclass(frozen=True)
class ExerciseTypeConfig:
    bg_label: str
    carbs_label: str
    basal_label: str
    mid_check_message: str
    mid_check_timing: float
    recovery_message: str
    recovery_factor: float
    delayed_warning: Optional[str] = None
    active_reminder: Optional[str] = None


_DEFAULT_MID_CHECK = "Halfway check - how are you feeling? Any signs of low blood sugar?"

TYPE_CONFIG = MappingProxyType({
    ExerciseType.CARDIO: ExerciseTypeConfig(
        bg_label="Checked blood glucose",
        carbs_label="Considered carbs for a steady session",
        basal_label="Set a temporary basal reduction",
        mid_check_message=_DEFAULT_MID_CHECK,
        mid_check_timing=0.5,
        recovery_message="Insulin sensitivity stays raised after cardio - check BG again before your next meal",
        recovery_factor=1.25,
        delayed_warning="Cardio can cause delayed hypos for several hours, including overnight",
        active_reminder="Steady cardio lowers BG gradually - sip carbs if you start feeling low",
    ),
    ExerciseType.STRENGTH: ExerciseTypeConfig(
        bg_label="Checked blood glucose",
        carbs_label="Considered a small pre-workout snack",
        basal_label="Decided on a basal adjustment",
        mid_check_message="Between sets - any shakiness or dizziness that isn't just effort?",
        mid_check_timing=0.5,
        recovery_message="BG may rise during lifting and fall later - check again in an hour or two",
        recovery_factor=1.0,
        delayed_warning="BG may dip a few hours after heavy lifting even if it rose during the session",
        active_reminder="Heavy lifts can push BG up - avoid correcting mid-session",
    ),
    ExerciseType.HIIT: ExerciseTypeConfig(
        bg_label="Checked blood glucose",
        carbs_label="Considered carbs for after the session",
        basal_label="Decided on a small basal reduction (or none)",
        mid_check_message="Early check - any shakiness, sweating or confusion beyond normal effort?",
        mid_check_timing=0.4,
        recovery_message="HIIT often raises BG at first - the drop usually comes later, so keep checking",
        recovery_factor=1.5,
        delayed_warning="HIIT can cause a sharp delayed drop once the adrenaline wears off",
        active_reminder="Short intense bursts can raise BG at first - don't over-correct",
    ),
    ExerciseType.YOGA: ExerciseTypeConfig(
        bg_label="Checked blood glucose",
        carbs_label="Considered whether a snack is needed",
        basal_label="Checked pump site and tubing",
        mid_check_message="Quick check - feeling light-headed coming out of poses?",
        mid_check_timing=0.6,
        recovery_message="Gentle sessions rarely cause delayed lows - a normal check before your next meal is enough",
        recovery_factor=0.5,
    ),
    ExerciseType.WALKING: ExerciseTypeConfig(
        bg_label="Checked blood glucose",
        carbs_label="Packed a snack for the walk",
        basal_label="Considered a small basal reduction for a long walk",
        mid_check_message=_DEFAULT_MID_CHECK,
        mid_check_timing=0.6,
        recovery_message="Walking lowers BG gently - check before your next meal",
        recovery_factor=0.5,
    ),
    ExerciseType.SPORTS: ExerciseTypeConfig(
        bg_label="Checked blood glucose",
        carbs_label="Packed carbs for breaks in play",
        basal_label="Planned pump disconnect / basal reduction",
        mid_check_message="Half-time check - any signs of low blood sugar?",
        mid_check_timing=0.5,
        recovery_message="Stop-start sport can move BG either way - check again within the hour",
        recovery_factor=1.25,
        delayed_warning="Long matches and tournaments raise the risk of overnight lows",
        active_reminder="Use breaks in play to check BG and top up carbs",
    ),
    ExerciseType.SWIMMING: ExerciseTypeConfig(
        bg_label="Checked blood glucose",
        carbs_label="Left fast-acting glucose at the poolside",
        basal_label="Planned how long the pump will be off",
        mid_check_message="Pool-side check - get out and test if anything feels off",
        mid_check_timing=0.4,
        recovery_message="Swimming uses a lot of muscle - keep checking BG over the next few hours",
        recovery_factor=1.25,
        delayed_warning="Swimming can cause delayed lows for several hours afterwards",
        active_reminder="Hypo symptoms are easy to miss in water - get out and check if anything feels off",
    ),
})


def get_type_config(exercise_type) -> ExerciseTypeConfig:
    return TYPE_CONFIG[parse_enum(ExerciseType, exercise_type, "exercise type")]


def recovery_window(exercise_type, intensity) -> timedelta:
    """Recovery monitoring period: base minutes for the intensity scaled by the type factor."""
    intensity = parse_enum(Intensity, intensity, "intensity")
    base = EXERCISE["recovery_base_minutes"][intensity.value]
    return timedelta(minutes=round(base * get_type_config(exercise_type).recovery_factor))


def delayed_warning(exercise_type, intensity) -> Optional[str]:
    if parse_enum(Intensity, intensity, "intensity") == Intensity.LIGHT:
        return None
    return get_type_config(exercise_type).delayed_warning


def active_reminder(exercise_type, intensity) -> Optional[str]:
    if parse_enum(Intensity, intensity, "intensity") == Intensity.LIGHT:
        return None
    return get_type_config(exercise_type).active_reminder


def checklist_items(exercise_type, is_pump: bool) -> List[Tuple[str, str]]:
    cfg = get_type_config(exercise_type)
    items = [("bg_checked", cfg.bg_label), ("carbs_considered", cfg.carbs_label)]
    if is_pump:
        items.append(("basal_adjusted", cfg.basal_label))
    return items


def hypo_help_steps() -> List[str]:
    """Quick treatment steps shown from the Hypo Help action during and after exercise."""
    carbs = f"{TRIAGE['carbs_min_g']}-{TRIAGE['carbs_max_g']}g"
    return [
        "Stop exercising and sit down",
        f"Take {carbs} of fast-acting carbs (glucose tablets, juice or regular soda)",
        f"Recheck BG after 15 minutes; repeat if still below {TRIAGE['hypo']} mmol/L",
        "Once above target, have a snack with slower carbs before carrying on",
        "If you can't swallow safely or are getting confused, someone should call emergency services",
    ]


# -------------------------
# Pre-exercise tips, one generator per type: (is_pump, duration_minutes) -> tips
# -------------------------
def _cardio_tips(is_pump: bool, duration_minutes: int) -> List[str]:
    tips = ["Steady cardio usually lowers BG - check before you start"]
    if is_pump:
        tips.append("Consider reducing basal rate by 50% starting 60-90 minutes before exercise")
    else:
        tips.append("Consider a smaller mealtime bolus if you eat within 2 hours of starting")
    if duration_minutes >= EXERCISE["long_session_minutes"]:
        tips.append("For sessions over 60 min, consider 15-30g carbs every 30-45 min")
    return tips


def _strength_tips(is_pump: bool, duration_minutes: int) -> List[str]:
    tips = ["Resistance training can raise BG temporarily - it usually settles"]
    if is_pump:
        tips.append("Keep your pump site away from areas under load (bench, barbell contact)")
    else:
        tips.append("Avoid injecting into muscles you are about to train")
    return tips


def _hiit_tips(is_pump: bool, duration_minutes: int) -> List[str]:
    tips = ["HIIT often raises BG at first, then drops it later"]
    if is_pump:
        tips.append("Short HIIT sessions may need only a small basal reduction, or none")
    else:
        tips.append("Be cautious correcting a post-HIIT high - a later drop is common")
    return tips


def _yoga_tips(is_pump: bool, duration_minutes: int) -> List[str]:
    tips = ["Yoga usually has a gentle effect on BG - a normal pre-exercise check is enough"]
    if is_pump:
        tips.append("Make sure tubing won't snag during stretches or inversions")
    return tips


def _walking_tips(is_pump: bool, duration_minutes: int) -> List[str]:
    tips = ["A short walk after a meal can help reduce post-meal spikes"]
    if duration_minutes >= EXERCISE["long_session_minutes"]:
        if is_pump:
            tips.append("For walks over an hour, a small temporary basal reduction may help")
        else:
            tips.append("Longer walks lower BG gradually - carry a snack")
    return tips


def _sports_tips(is_pump: bool, duration_minutes: int) -> List[str]:
    tips = ["Stop-start sport can move BG either way - adrenaline may push it up"]
    if is_pump:
        tips.append("Decide whether to disconnect your pump for contact play, and for how long")
    else:
        tips.append("Avoid over-correcting a competition high during the game")
    if duration_minutes >= EXERCISE["long_session_minutes"]:
        tips.append("Plan BG checks at natural breaks such as half-time")
    return tips


def _swimming_tips(is_pump: bool, duration_minutes: int) -> List[str]:
    tips = [
        "Keep fast-acting glucose at the poolside in case of a hypo",
        "Water can mask hypo symptoms - check more frequently around water",
    ]
    if is_pump:
        tips.append("Most pumps come off for swimming - plan how long you'll be without basal")
    else:
        tips.append("Warm water can speed up absorption from a recent injection")
    return tips


TIP_GENERATORS = MappingProxyType({
    ExerciseType.CARDIO: _cardio_tips,
    ExerciseType.STRENGTH: _strength_tips,
    ExerciseType.HIIT: _hiit_tips,
    ExerciseType.YOGA: _yoga_tips,
    ExerciseType.WALKING: _walking_tips,
    ExerciseType.SPORTS: _sports_tips,
    ExerciseType.SWIMMING: _swimming_tips,
})


def get_pre_exercise_tips(session: ExerciseSession, is_pump: bool) -> List[str]:
    """Ordered advisory strings for the pre phase.

    Intensity tips come first so the carbs advice survives when the UI only
    shows the top few, then the type tips, then the hypo reminder.
    """
    tips = []
    if session.intensity in (Intensity.MODERATE, Intensity.INTENSE):
        tips.append("Consider having 15-20g of fast-acting carbs if BG is below 7 mmol/L")
    if session.intensity == Intensity.INTENSE:
        tips.append("High intensity exercise may cause BG to rise initially, then drop later")
    if not is_pump and session.intensity in (Intensity.MODERATE, Intensity.INTENSE):
        tips.append("If on long-acting insulin, be aware of increased hypo risk post-exercise")

    tips.extend(TIP_GENERATORS[session.exercise_type](is_pump, session.duration_minutes))
    tips.append(HYPO_TREATMENT_TIP)
    return tips
