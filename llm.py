import json
import os
from typing import List, Optional

import structlog
from openai import OpenAI

from config import LLM
from exercise_bank import EXERCISE_LABELS
from models import ExerciseOutcome, ExercisePattern

logger = structlog.get_logger(__name__)


def _client():
    api_key = os.getenv("GROQ_API_KEY", "")
    if not api_key:
        return None
    base_url = os.getenv("GROQ_BASE_URL", LLM["default_base_url"])
    return OpenAI(api_key=api_key, base_url=base_url)


def _safe_fallback() -> List[str]:
    return [
        "Log how your BG responded each time - patterns become clearer after a few sessions.",
        "Keep fast-acting carbs with you during and after exercise.",
        "Check BG before bed after exercising, especially after longer or harder sessions.",
    ]


def _outcome_text(outcome: ExerciseOutcome, pattern: Optional[ExercisePattern]) -> str:
    parts = [
        f"Exercise: {EXERCISE_LABELS[outcome.exercise_type]} ({outcome.intensity.value}, {outcome.duration_minutes} min)",
        f"BG response: {outcome.bg_response.value if outcome.bg_response else 'not recorded'}",
    ]
    if outcome.bg_severity:
        parts.append(f"Severity: {outcome.bg_severity.value.replace('_', ' ')}")
    parts.append(f"Hypo: {'yes' if outcome.felt_hypo else 'no'}")
    if outcome.notes:
        parts.append(f"Notes: {outcome.notes}")
    if pattern and pattern.total_sessions:
        parts.append(f"History: {pattern.avg_pattern} ({pattern.total_sessions} sessions, {pattern.hypo_count} hypos)")
    return "\n".join(parts)


def _parse_tips(content: str) -> Optional[List[str]]:
    data = json.loads(content)
    if isinstance(data, list) and len(data) >= LLM["tips_count"] and all(isinstance(x, str) for x in data):
        return data[:LLM["tips_count"]]
    return None


def coach_on_outcome(outcome: ExerciseOutcome, pattern: Optional[ExercisePattern] = None) -> List[str]:
    """Returns exactly 3 safe tips for next time (no insulin doses, no diagnosis)."""
    client = _client()
    if client is None:
        return _safe_fallback()

    model  = os.getenv("GROQ_MODEL", LLM["default_model"])
    prompt = (
        "A person with Type 1 diabetes just finished exercising. "
        "Give exactly 3 short, practical tips for next time focused on preparation, carbs, and BG checks. "
        "No insulin doses or numbers of units. No diagnosis. "
        "Respond ONLY as a JSON array of 3 strings.\n\n"
        f"{_outcome_text(outcome, pattern)}"
    )

    try:
        resp    = client.chat.completions.create(
            model=model,
            messages=[{"role": "user", "content": prompt}],
            temperature=LLM["temperature"],
        )
        content = (resp.choices[0].message.content or "").strip()
        tips    = _parse_tips(content)
        if tips:
            return tips
        logger.warning("coach_unexpected_response", model=model)
    except Exception as exc:
        logger.warning("coach_request_failed", model=model, error=str(exc))

    return _safe_fallback()
