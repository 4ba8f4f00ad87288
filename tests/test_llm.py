import json
from types import SimpleNamespace

import llm
from models import BgResponse, ExerciseOutcome, ExercisePattern, ExerciseType, Intensity

OUTCOME = ExerciseOutcome(
    exercise_type=ExerciseType.HIIT,
    intensity=Intensity.INTENSE,
    duration_minutes=30,
    exercise_name="Circuits",
    bg_response=BgResponse.ROSE,
    felt_hypo=False,
    notes="big spike at the end",
)
PATTERN = ExercisePattern(4, 1, 3, 0, 0, "BG usually rises with this exercise")


class _FakeClient:
    def __init__(self, content=None, error=None):
        self.prompts = []

        def create(**kwargs):
            self.prompts.append(kwargs["messages"][0]["content"])
            if error:
                raise error
            message = SimpleNamespace(content=content)
            return SimpleNamespace(choices=[SimpleNamespace(message=message)])

        self.chat = SimpleNamespace(completions=SimpleNamespace(create=create))


def test_no_api_key_uses_fallback(monkeypatch):
    monkeypatch.delenv("GROQ_API_KEY", raising=False)
    assert llm.coach_on_outcome(OUTCOME) == llm._safe_fallback()


def test_returns_first_three_tips(monkeypatch):
    fake = _FakeClient(json.dumps(["a", "b", "c", "d"]))
    monkeypatch.setattr(llm, "_client", lambda: fake)

    assert llm.coach_on_outcome(OUTCOME, PATTERN) == ["a", "b", "c"]
    prompt = fake.prompts[0]
    assert "HIIT (intense, 30 min)" in prompt
    assert "BG response: rose" in prompt
    assert "BG usually rises with this exercise" in prompt


def test_bad_json_falls_back(monkeypatch):
    monkeypatch.setattr(llm, "_client", lambda: _FakeClient("Sure! Here are some tips"))
    assert llm.coach_on_outcome(OUTCOME) == llm._safe_fallback()


def test_wrong_shape_falls_back(monkeypatch):
    monkeypatch.setattr(llm, "_client", lambda: _FakeClient(json.dumps({"tips": ["a", "b", "c"]})))
    assert llm.coach_on_outcome(OUTCOME) == llm._safe_fallback()


def test_request_error_falls_back(monkeypatch):
    monkeypatch.setattr(llm, "_client", lambda: _FakeClient(error=RuntimeError("rate limited")))
    assert llm.coach_on_outcome(OUTCOME) == llm._safe_fallback()
