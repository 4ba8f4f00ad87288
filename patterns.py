# patterns.py
from typing import Iterable

import pandas as pd

from models import BgResponse, ExerciseOutcome, ExercisePattern


def _summary_line(dropped: int, rose: int, stable: int, total: int) -> str:
    if total == 0:
        return "No sessions recorded yet"
    if dropped > stable and dropped >= rose:
        return "BG usually drops with this exercise"
    if rose > stable and rose > dropped:
        return "BG usually rises with this exercise"
    if stable > 0 and stable >= dropped and stable >= rose:
        return "BG usually stays stable with this exercise"
    return "Mixed BG response so far"


def summarize_outcomes(outcomes: Iterable[ExerciseOutcome]) -> ExercisePattern:
    """Aggregate outcome history into counts + a one-line summary for display."""
    df = pd.DataFrame(
        [
            {
                "bg_response": o.bg_response.value if o.bg_response else None,
                "felt_hypo": bool(o.felt_hypo),
            }
            for o in outcomes
        ],
        columns=["bg_response", "felt_hypo"],
    )

    total = len(df)
    counts = df["bg_response"].value_counts()
    dropped = int(counts.get(BgResponse.DROPPED.value, 0))
    rose = int(counts.get(BgResponse.ROSE.value, 0))
    stable = int(counts.get(BgResponse.STABLE.value, 0))
    hypos = int(df["felt_hypo"].astype(bool).sum()) if total else 0

    return ExercisePattern(
        total_sessions=total,
        dropped_count=dropped,
        rose_count=rose,
        stable_count=stable,
        hypo_count=hypos,
        avg_pattern=_summary_line(dropped, rose, stable, total),
    )


def pattern_trend(pattern: ExercisePattern) -> str:
    """'down', 'up' or 'flat' for the banner icon."""
    if pattern.dropped_count > pattern.stable_count:
        return "down"
    if pattern.rose_count > pattern.stable_count:
        return "up"
    return "flat"


def pattern_caption(pattern: ExercisePattern) -> str:
    plural = "s" if pattern.total_sessions != 1 else ""
    text = f"Based on {pattern.total_sessions} session{plural}"
    if pattern.hypo_count > 0:
        hypo_plural = "s" if pattern.hypo_count != 1 else ""
        text += f" · {pattern.hypo_count} hypo{hypo_plural} recorded"
    return text


def outcomes_frame(outcomes: Iterable[ExerciseOutcome]) -> pd.DataFrame:
    """Outcome history as a table for the dashboard."""
    return pd.DataFrame(
        [
            {
                "recorded_at": o.recorded_at,
                "exercise": o.exercise_name,
                "type": o.exercise_type.value,
                "intensity": o.intensity.value,
                "minutes": o.duration_minutes,
                "bg_response": o.bg_response.value if o.bg_response else "",
                "severity": o.bg_severity.value if o.bg_severity else "",
                "hypo": o.felt_hypo,
                "notes": o.notes or "",
            }
            for o in outcomes
        ],
        columns=["recorded_at", "exercise", "type", "intensity", "minutes", "bg_response", "severity", "hypo", "notes"],
    )
