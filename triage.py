# triage.py
from typing import List, Optional, Tuple

from config import TRIAGE
from models import Intensity, parse_enum


def triage_pre_exercise(
    bg_mmol: Optional[float],
    intensity,
    ketones_mmol: Optional[float] = None,
) -> Tuple[str, List[str]]:
    """
    Pre-exercise BG check.

    Returns:
      level: "GREEN" | "AMBER" | "RED"
      flags: list of human-readable notes
    """
    intensity = parse_enum(Intensity, intensity, "intensity")
    flags: List[str] = []

    if bg_mmol is None or bg_mmol <= 0:
        return "AMBER", ["No blood glucose reading entered → check BG before you start."]

    # Hard stops
    if bg_mmol < TRIAGE["hypo"]:
        return "RED", [
            f"BG is below {TRIAGE['hypo']:.1f} mmol/L → treat the low first and wait until it recovers before exercising."
        ]
    if ketones_mmol is not None and ketones_mmol >= TRIAGE["ketones_stop"]:
        return "RED", [
            f"Blood ketones at or above {TRIAGE['ketones_stop']:.1f} mmol/L → do not exercise; follow your sick-day plan."
        ]

    level = "GREEN"

    if bg_mmol < TRIAGE["pre_exercise_target"]:
        level = "AMBER"
        if intensity == Intensity.LIGHT:
            flags.append("BG is on the low side for exercise → keep fast-acting carbs close and recheck during the session.")
        else:
            flags.append(
                f"BG is below {TRIAGE['pre_exercise_target']:.0f} mmol/L → consider "
                f"{TRIAGE['carbs_min_g']}-{TRIAGE['carbs_max_g']}g of fast-acting carbs before starting."
            )

    if bg_mmol > TRIAGE["high"]:
        level = "AMBER"
        if ketones_mmol is None:
            flags.append(f"BG is above {TRIAGE['high']:.0f} mmol/L → check ketones before exercising.")
        else:
            flags.append("BG is high but ketones are low → light exercise is usually OK; avoid very intense efforts.")
        if intensity == Intensity.INTENSE:
            flags.append("Intense exercise can push a high BG even higher at first.")

    return level, flags
