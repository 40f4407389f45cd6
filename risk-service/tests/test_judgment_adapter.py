"""
Tests for the external judgment adapter (provider is always faked).
Run with: pytest risk-service/tests/test_judgment_adapter.py -v
"""
import json

import pytest

from riskguard.telemetry.behavior_record import BehaviorRecord


def _input(**overrides):
    from riskguard.judgment.adapter import JudgmentInput
    data = dict(
        question_text="Choose the correct verb form.",
        question_difficulty="medium",
        user_answer="B",
        behavior=BehaviorRecord(blur_count=2, blur_durations=[1200.0, 4100.0], copy_count=1,
                                copied_texts=["By the time you arrive"], typing_speed=2.25),
        answer_time=42,
    )
    data.update(overrides)
    return JudgmentInput(**data)


VALID = {
    "riskScore": 72,
    "translationLikelihood": 40,
    "reasons": ["copied the prompt before leaving the window"],
    "suspiciousPatterns": ["copy_then_blur"],
    "answerQuality": 0.8,
    "recommendation": "review the answer",
}


class TestAnalyzeBehavior:
    def test_valid_json_is_returned(self, fake_llm):
        from riskguard.judgment.adapter import analyze_behavior
        completions = fake_llm(content=json.dumps(VALID))

        result = analyze_behavior(_input())

        assert result.risk_score == 72
        assert result.translation_likelihood == 40
        assert result.suspicious_patterns == ["copy_then_blur"]
        request = completions.calls[0]
        assert request["response_format"] == {"type": "json_object"}
        assert [m["role"] for m in request["messages"]] == ["system", "user"]

    def test_provider_error_gives_fallback(self, fake_llm):
        from riskguard.judgment.adapter import analyze_behavior
        fake_llm(exc=ConnectionError("network down"))

        result = analyze_behavior(_input())

        assert result.risk_score == 50
        assert result.translation_likelihood == 0
        assert result.reasons == ["analysis failed"]
        assert result.suspicious_patterns == []
        assert result.answer_quality == 0.5
        assert result.recommendation == "manual review recommended"

    def test_missing_api_key_gives_fallback(self, monkeypatch):
        from riskguard.judgment import adapter
        monkeypatch.setattr(adapter, "get_client", lambda: None)
        assert adapter.analyze_behavior(_input()).risk_score == 50

    @pytest.mark.parametrize("content", [
        "not json at all",
        "",
        json.dumps([VALID]),
        json.dumps({**VALID, "riskScore": 150}),
        json.dumps({**VALID, "riskScore": -1}),
        json.dumps({**VALID, "riskScore": "80"}),
        json.dumps({**VALID, "reasons": "one reason"}),
        json.dumps({**VALID, "suspiciousPatterns": [1, 2]}),
        json.dumps({k: v for k, v in VALID.items() if k != "reasons"}),
    ])
    def test_invalid_content_gives_fallback(self, fake_llm, content):
        from riskguard.judgment.adapter import analyze_behavior
        fake_llm(content=content)
        result = analyze_behavior(_input())
        assert result.risk_score == 50
        assert result.reasons == ["analysis failed"]

    def test_optional_fields_default(self, fake_llm):
        from riskguard.judgment.adapter import analyze_behavior
        fake_llm(content=json.dumps({"riskScore": 10, "reasons": [], "suspiciousPatterns": []}))
        result = analyze_behavior(_input())
        assert result.risk_score == 10
        assert result.translation_likelihood == 0.0
        assert result.answer_quality == 0.5


class TestPrompt:
    def test_prompt_limits_question_and_log_excerpts(self):
        from riskguard.judgment.adapter import build_prompt
        behavior = BehaviorRecord(
            blur_count=7,
            blur_durations=[101.0, 102.0, 103.0, 104.0, 105.0, 106.0, 107.0],
            copy_count=4,
            copied_texts=["alpha", "bravo", "charlie", "delta"],
            mouse_inactive_time=65_500,
            typing_speed=2.25,
        )
        prompt = build_prompt(_input(question_text="Q" * 800, behavior=behavior))

        assert "Q" * 500 + "..." in prompt
        assert "Q" * 501 not in prompt
        assert "101, 102, 103, 104, 105 ms" in prompt
        assert "106" not in prompt
        assert "alpha, bravo, charlie" in prompt
        assert "delta" not in prompt
        assert "Mouse idle time: 65 s" in prompt
        assert "Typing speed: 2.2 chars/s" in prompt or "Typing speed: 2.3 chars/s" in prompt


class CodedError(Exception):
    def __init__(self, code):
        super().__init__(f"provider error {code}")
        self.code = code


TOTALS = {"totalBlurCount": 3, "totalCopyCount": 1, "totalPasteCount": 0,
          "totalMouseInactiveTime": 70_000}


class TestFinalReport:
    def test_report_text_is_returned(self, fake_llm):
        from riskguard.judgment.adapter import generate_final_report
        completions = fake_llm(content="Low likelihood of cheating.")

        report = generate_final_report(5, 80, 20, TOTALS)

        assert report == "Low likelihood of cheating."
        request = completions.calls[0]
        assert request["max_completion_tokens"] == 500
        assert "Average risk score: 20%" in request["messages"][1]["content"]
        assert "Mouse idle: 70 s" in request["messages"][1]["content"]

    def test_no_attempts(self, fake_llm):
        from riskguard.judgment.adapter import generate_final_report
        completions = fake_llm(content="unused")
        assert "Not enough analysis data" in generate_final_report(0, 0, 0, TOTALS)
        assert completions.calls == []

    def test_missing_key(self, monkeypatch):
        from riskguard.judgment import adapter
        monkeypatch.setattr(adapter, "get_client", lambda: None)
        assert "not configured" in adapter.generate_final_report(3, 50, 30, TOTALS)

    @pytest.mark.parametrize("code,fragment", [
        ("invalid_api_key", "API key is invalid"),
        ("model_not_found", "was not found"),
        ("rate_limit_exceeded", "An error occurred"),
    ])
    def test_provider_errors_become_diagnostics(self, fake_llm, code, fragment):
        from riskguard.judgment.adapter import generate_final_report
        fake_llm(exc=CodedError(code))
        assert fragment in generate_final_report(3, 50, 30, TOTALS)

    def test_empty_content(self, fake_llm):
        from riskguard.judgment.adapter import generate_final_report
        fake_llm(content=None)
        assert generate_final_report(3, 50, 30, TOTALS) == "Failed to generate the session report."
