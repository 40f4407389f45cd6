"""
Score fusion — blends the judgment verdict with the behavioural score.

    final = judgment.riskScore             × 0.5
          + behavioral_score(fused table)   × 0.3
          + judgment.translationLikelihood × 0.2

clamped to [0, 100] and rounded half-up. Without a judgment the behaviour-only
table is used on its own. A final score ≥ 65 flags the attempt for review.
"""
from __future__ import annotations

import math

from riskguard.db.models import STATUS_COMPLETED, STATUS_FLAGGED
from riskguard.judgment.adapter import JudgmentResult
from riskguard.scoring.behavior_scorer import behavioral_score, behavior_only_score
from riskguard.telemetry.behavior_record import BehaviorRecord

JUDGMENT_WEIGHT    = 0.5
BEHAVIOR_WEIGHT    = 0.3
TRANSLATION_WEIGHT = 0.2

FLAG_THRESHOLD = 65


def round_half_up(value: float) -> int:
    """52.5 → 53 (Python's round() would give 52)."""
    return int(math.floor(value + 0.5))


def clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def fuse_scores(
    record:      BehaviorRecord,
    judgment:    JudgmentResult,
    answer_time: float,
) -> int:
    score = 0.0
    score += judgment.risk_score * JUDGMENT_WEIGHT
    score += behavioral_score(record, answer_time) * BEHAVIOR_WEIGHT
    score += judgment.translation_likelihood * TRANSLATION_WEIGHT
    return round_half_up(clamp(score))


def final_score(
    record:      BehaviorRecord,
    answer_time: float,
    judgment:    JudgmentResult | None = None,
) -> int:
    if judgment is None:
        return behavior_only_score(record, answer_time)
    return fuse_scores(record, judgment, answer_time)


def classify_status(score: int) -> str:
    return STATUS_FLAGGED if score >= FLAG_THRESHOLD else STATUS_COMPLETED
