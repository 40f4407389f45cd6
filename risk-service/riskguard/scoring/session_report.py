"""
Session aggregator — folds every attempt of one session into a report.

Grading:
  vocabulary / grammar   trimmed, case-insensitive exact match   → 1
  other with answer key  ≥ 50 % of key words (len > 3) present   → 0.5
  no answer key                                                  → 0

The report is written into llm_analysis of every attempt in the session:
{
    "finalReport":  "...",
    "accuracy":     80,
    "avgRiskScore": 35,
    "totalBehavior": {...}
}
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable

from riskguard.db import attempt_store
from riskguard.db.models import Question, TestAttempt
from riskguard.judgment.adapter import generate_final_report
from riskguard.scoring.fusion import FLAG_THRESHOLD, round_half_up
from riskguard.telemetry.behavior_record import BehaviorRecord

logger = logging.getLogger(__name__)

CHOICE_TYPES        = ("vocabulary", "grammar")
MIN_KEYWORD_LENGTH  = 3      # keywords must be longer than this
KEYWORD_MATCH_RATIO = 0.5
PARTIAL_CREDIT      = 0.5
MEDIUM_RISK_FLOOR   = 40


@dataclass
class SessionReport:
    accuracy:       int
    avg_risk_score: int
    total_behavior: dict[str, Any] = field(default_factory=dict)
    final_report:   str = ""

    def to_payload(self) -> dict[str, Any]:
        return {
            "finalReport":   self.final_report,
            "accuracy":      self.accuracy,
            "avgRiskScore":  self.avg_risk_score,
            "totalBehavior": self.total_behavior,
        }

    def to_response(self) -> dict[str, Any]:
        return {
            "accuracy":      self.accuracy,
            "avgRiskScore":  self.avg_risk_score,
            "totalBehavior": self.total_behavior,
            "llmReport":     self.final_report,
        }


# ── Grading ──────────────────────────────────────────────────────────────────

def grade_answer(question: Question, answer: str) -> float:
    """Correctness credit of one answer: 1, 0.5 or 0."""
    key = question.correct_answer
    if not key:
        return 0.0

    if question.question_type in CHOICE_TYPES:
        return 1.0 if answer.strip().upper() == key.strip().upper() else 0.0

    answer_lower = answer.lower()
    keywords = [w for w in key.lower().split() if len(w) > MIN_KEYWORD_LENGTH]
    matched  = sum(1 for kw in keywords if kw in answer_lower)
    if matched >= len(keywords) * KEYWORD_MATCH_RATIO:
        return PARTIAL_CREDIT
    return 0.0


def compute_accuracy(attempts: Iterable[TestAttempt]) -> int:
    attempts = list(attempts)
    if not attempts:
        return 0
    correct = sum(grade_answer(a.question, a.answer) for a in attempts)
    return round_half_up(correct / len(attempts) * 100)


def average_risk(attempts: Iterable[TestAttempt]) -> int:
    scores = [a.risk_score or 0 for a in attempts]
    if not scores:
        return 0
    return round_half_up(sum(scores) / len(scores))


def aggregate_behavior(attempts: Iterable[TestAttempt]) -> dict[str, Any]:
    attempts = list(attempts)
    logs = [BehaviorRecord.from_dict(a.behavior_logs) for a in attempts]
    return {
        "totalBlurCount":         sum(r.blur_count for r in logs),
        "totalCopyCount":         sum(r.copy_count for r in logs),
        "totalPasteCount":        sum(r.paste_count for r in logs),
        "totalMouseInactiveTime": sum(r.mouse_inactive_time for r in logs),
        "averageTypingSpeed":     sum(r.typing_speed for r in logs) / len(logs) if logs else 0.0,
        "totalAnswerTime":        sum(a.answer_time or 0 for a in attempts),
    }


# ── Report ───────────────────────────────────────────────────────────────────

def risk_label(avg_risk: int) -> str:
    if avg_risk >= FLAG_THRESHOLD:
        return "High risk: detailed review recommended"
    if avg_risk > MEDIUM_RISK_FLOOR:
        return "Medium risk: needs attention"
    return "Low risk: within normal range"


def template_report(accuracy: int, avg_risk: int, total_behavior: dict[str, Any]) -> str:
    return (
        f"[Behavior-only analysis] Accuracy {accuracy}%, average risk {avg_risk}%. "
        f"Detected {total_behavior['totalBlurCount']} window switches and "
        f"{total_behavior['totalCopyCount']} copy operations. {risk_label(avg_risk)}"
    )


def build_session_report(attempts: list[TestAttempt], use_judgment: bool = True) -> SessionReport:
    """Pure aggregation over already-loaded attempts (no writes)."""
    accuracy       = compute_accuracy(attempts)
    avg_risk       = average_risk(attempts)
    total_behavior = aggregate_behavior(attempts)

    if use_judgment:
        logger.info("Session report: judgment mode")
        text = generate_final_report(len(attempts), accuracy, avg_risk, total_behavior)
    else:
        logger.info("Session report: behaviour-only mode")
        text = template_report(accuracy, avg_risk, total_behavior)

    return SessionReport(
        accuracy       = accuracy,
        avg_risk_score = avg_risk,
        total_behavior = total_behavior,
        final_report   = text,
    )


def analyze_final_behavior(session_id: str, use_judgment: bool = True) -> SessionReport:
    """
    Build the report for a session and bulk-patch it into every attempt.
    Attempts still being scored count with a risk of 0.
    """
    attempts = attempt_store.find_session_attempts(session_id)
    if not attempts:
        raise attempt_store.SessionNotFound(session_id)

    report = build_session_report(attempts, use_judgment)
    attempt_store.update_session_attempts(session_id, llm_analysis=report.to_payload())

    logger.info("Final analysis completed for session %s: %d%% accuracy, %d%% risk",
                session_id, report.accuracy, report.avg_risk_score)
    return report
