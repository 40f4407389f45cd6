"""
External judgment adapter — asks a language model whether one answer looks
machine-translated or otherwise dishonest, given the behaviour log.

Expected model output (a single JSON object):
{
    "riskScore":             0-100,
    "translationLikelihood": 0-100,
    "reasons":               ["..."],
    "suspiciousPatterns":    ["copy_then_blur"],
    "answerQuality":         0.0-1.0,
    "recommendation":        "..."
}

Nothing here raises past the module boundary: transport errors, bad
credentials, unknown models, non-JSON content and schema violations all
collapse to fallback_judgment() (riskScore 50) so fusion always has a value.
The session-report call returns a readable diagnostic string instead.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from riskguard.config import get_settings
from riskguard.judgment.client import get_client
from riskguard.telemetry.behavior_record import BehaviorRecord

logger = logging.getLogger(__name__)
settings = get_settings()

QUESTION_PROMPT_CHARS = 500
REPORT_MAX_TOKENS     = 500

SYSTEM_INSTRUCTION = "You are an AI assistant specialised in detecting cheating on English tests."
REPORT_SYSTEM_INSTRUCTION = "You are an English-test cheating detection AI. Keep the analysis concise."


# ── Schema ────────────────────────────────────────────────────────────────────

class JudgmentResult(BaseModel):
    """Validated model verdict for one answer."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    risk_score:             float     = Field(alias="riskScore", ge=0, le=100)
    translation_likelihood: float     = Field(default=0.0, alias="translationLikelihood")
    reasons:                list[str]
    suspicious_patterns:    list[str] = Field(alias="suspiciousPatterns")
    answer_quality:         float     = Field(default=0.5, alias="answerQuality")
    recommendation:         str       = ""

    @field_validator("risk_score", mode="before")
    @classmethod
    def _require_number(cls, value: Any) -> Any:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError("riskScore must be a number")
        return value

    @field_validator("translation_likelihood", mode="before")
    @classmethod
    def _translation_number(cls, value: Any) -> Any:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return 0.0
        return value

    @field_validator("answer_quality", mode="before")
    @classmethod
    def _quality_number(cls, value: Any) -> Any:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return 0.5
        return value

    @field_validator("recommendation", mode="before")
    @classmethod
    def _recommendation_text(cls, value: Any) -> Any:
        return "" if value is None else str(value)

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


def fallback_judgment() -> JudgmentResult:
    return JudgmentResult(
        riskScore             = 50,
        translationLikelihood = 0,
        reasons               = ["analysis failed"],
        suspiciousPatterns    = [],
        answerQuality         = 0.5,
        recommendation        = "manual review recommended",
    )


@dataclass
class JudgmentInput:
    question_text:       str
    question_difficulty: str
    user_answer:         str
    behavior:            BehaviorRecord
    answer_time:         float


# ── Per-answer judgment ──────────────────────────────────────────────────────

def build_prompt(data: JudgmentInput) -> str:
    logs = data.behavior
    blur_durations = ", ".join(f"{d:.0f}" for d in logs.blur_durations[:5])
    copied = ", ".join(logs.copied_texts[:3])

    return f"""
You are an AI that detects cheating on English tests.
Assess the likelihood of cheating from the test taker's answer and behaviour.

## Data under review

### Question
{data.question_text[:QUESTION_PROMPT_CHARS]}...

### Question difficulty
{data.question_difficulty}

### Test taker's answer
{data.user_answer}

### Behaviour log
- Window switches: {logs.blur_count}
- Time away per switch: {blur_durations} ms
- Times the question was copied: {logs.copy_count}
- Copied text: {copied}
- Pastes: {logs.paste_count}
- Answer time: {data.answer_time} s
- Mouse idle time: {int(logs.mouse_inactive_seconds)} s
- Typing speed: {logs.typing_speed:.1f} chars/s

## Criteria

### 1. Machine translation
Signs that the answer was machine translated:
- Phrasing typical of DeepL or Google Translate
- Unnatural word order
- Grammatically correct but non-native expressions
- Fluency far above the difficulty of the question

### 2. Suspicious behaviour
- Window switch right after a copy (possible translation site)
- Long mouse idle time together with a high-quality answer (possible proxy)
- Abnormally fast typing (possible paste)
- Frequent pasting

### 3. Consistency
- Mismatch between question difficulty and answer quality

## Output format

Reply with this JSON object only:

{{
  "riskScore": number 0-100,
  "translationLikelihood": number 0-100,
  "reasons": ["reason 1", "reason 2"],
  "suspiciousPatterns": ["pattern name"],
  "answerQuality": number 0-1,
  "recommendation": "recommended action"
}}
""".strip()


def parse_judgment(content: str | None) -> JudgmentResult:
    """Parse and validate raw model content. Raises ValueError on any problem."""
    if not content:
        raise ValueError("empty response from judgment provider")
    data = json.loads(content)
    if not isinstance(data, dict):
        raise ValueError("judgment is not a JSON object")
    return JudgmentResult.model_validate(data)


def analyze_behavior(data: JudgmentInput) -> JudgmentResult:
    """Return the model's judgment for one answer, or the fallback on any failure."""
    try:
        client = get_client()
        if client is None:
            raise RuntimeError("OPENAI_API_KEY is not configured")

        response = client.chat.completions.create(
            model    = settings.openai_model,
            messages = [
                {"role": "system", "content": SYSTEM_INSTRUCTION},
                {"role": "user",   "content": build_prompt(data)},
            ],
            response_format = {"type": "json_object"},
        )
        return parse_judgment(response.choices[0].message.content)
    except Exception as exc:
        logger.warning("Judgment failed, using fallback (riskScore=50): %s", exc)
        return fallback_judgment()


# ── Session report ───────────────────────────────────────────────────────────

def build_report_prompt(avg_risk: int, accuracy: int, total_behavior: dict[str, Any]) -> str:
    inactive_secs = int((total_behavior.get("totalMouseInactiveTime") or 0) / 1000)
    return (
        "Write an overall cheating-analysis report for an English test.\n"
        "\n"
        "Data:\n"
        f"- Accuracy: {accuracy or 0}%\n"
        f"- Average risk score: {avg_risk}%\n"
        f"- Window switches: {total_behavior.get('totalBlurCount') or 0}\n"
        f"- Copy operations: {total_behavior.get('totalCopyCount') or 0}\n"
        f"- Paste operations: {total_behavior.get('totalPasteCount') or 0}\n"
        f"- Mouse idle: {inactive_secs} s\n"
        "\n"
        "In about 100 words, state the likelihood of cheating (low/medium/high), "
        "the concrete reasons, and a recommendation for the teacher."
    )


def generate_final_report(
    attempt_count:  int,
    accuracy:       int,
    avg_risk:       int,
    total_behavior: dict[str, Any],
) -> str:
    """Free-text session report. Always returns a string."""
    if attempt_count <= 0:
        logger.error("Final report requested without attempt data")
        return "Not enough analysis data to generate a report."

    client = get_client()
    if client is None:
        logger.error("Final report requested but OPENAI_API_KEY is not set")
        return ("OpenAI API key is not configured. "
                "Set OPENAI_API_KEY in the service environment.")

    try:
        logger.info("Requesting final report from %s", settings.openai_model)
        response = client.chat.completions.create(
            model    = settings.openai_model,
            messages = [
                {"role": "system", "content": REPORT_SYSTEM_INSTRUCTION},
                {"role": "user",   "content": build_report_prompt(avg_risk, accuracy, total_behavior)},
            ],
            max_completion_tokens = REPORT_MAX_TOKENS,
        )
        report = response.choices[0].message.content
        if not report:
            return "Failed to generate the session report."
        return report
    except Exception as exc:
        logger.error("Final report generation failed: %s", exc, exc_info=True)
        code = getattr(exc, "code", None)
        if code == "invalid_api_key":
            return ("OpenAI API key is invalid. "
                    "Set a valid OPENAI_API_KEY in the service environment.")
        if code == "model_not_found":
            return (f"Model '{settings.openai_model}' was not found. "
                    "Set OPENAI_MODEL to an available model such as gpt-4o-mini.")
        return f"An error occurred while generating the session report: {exc}"
