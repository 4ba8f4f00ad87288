from models import BgResponse, ExerciseOutcome, ExercisePattern, ExerciseType, Intensity
from patterns import outcomes_frame, pattern_caption, pattern_trend, summarize_outcomes


def _outcomes(*responses, hypos=0):
    items = []
    for i, response in enumerate(responses):
        items.append(ExerciseOutcome(
            exercise_type=ExerciseType.CARDIO,
            intensity=Intensity.MODERATE,
            duration_minutes=30,
            exercise_name="Run",
            bg_response=BgResponse(response) if response else None,
            felt_hypo=i < hypos,
        ))
    return items


def test_empty_history():
    pattern = summarize_outcomes([])
    assert pattern == ExercisePattern(0, 0, 0, 0, 0, "No sessions recorded yet")
    assert pattern_trend(pattern) == "flat"


def test_mostly_drops():
    pattern = summarize_outcomes(_outcomes("dropped", "dropped", "stable", None, hypos=2))
    assert pattern.total_sessions == 4
    assert pattern.dropped_count == 2
    assert pattern.stable_count == 1
    assert pattern.hypo_count == 2
    assert pattern.avg_pattern == "BG usually drops with this exercise"
    assert pattern_trend(pattern) == "down"


def test_mostly_rises():
    pattern = summarize_outcomes(_outcomes("rose", "rose", "stable"))
    assert pattern.avg_pattern == "BG usually rises with this exercise"
    assert pattern_trend(pattern) == "up"


def test_stable_and_mixed():
    assert summarize_outcomes(_outcomes("stable", "stable", "rose")).avg_pattern == (
        "BG usually stays stable with this exercise"
    )
    assert summarize_outcomes(_outcomes(None, None)).avg_pattern == "Mixed BG response so far"


def test_caption_pluralisation():
    assert pattern_caption(ExercisePattern(1, 1, 0, 0, 0, "")) == "Based on 1 session"
    assert pattern_caption(ExercisePattern(3, 1, 1, 1, 1, "")) == "Based on 3 sessions · 1 hypo recorded"
    assert pattern_caption(ExercisePattern(3, 1, 1, 1, 2, "")).endswith("2 hypos recorded")


def test_outcomes_frame_columns():
    df = outcomes_frame(_outcomes("rose"))
    assert list(df.columns) == [
        "recorded_at", "exercise", "type", "intensity", "minutes", "bg_response", "severity", "hypo", "notes",
    ]
    assert df.iloc[0]["bg_response"] == "rose"
    assert outcomes_frame([]).empty
