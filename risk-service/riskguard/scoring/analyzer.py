"""
Per-attempt fraud analysis — the job behind every submitted answer.

Runs off the request path (ScoringConsumer thread or FastAPI background
task). Loads the attempt, optionally asks the judgment adapter, fuses the
scores and writes risk_score / llm_analysis / status / completed_at back.
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from riskguard.db import attempt_store
from riskguard.judgment.adapter import JudgmentInput, analyze_behavior
from riskguard.scoring.fusion import classify_status, final_score
from riskguard.telemetry.behavior_record import BehaviorRecord

logger = logging.getLogger(__name__)


def analyze_fraud_risk(attempt_id: uuid.UUID | str, use_judgment: bool = True) -> int:
    """
    Score one attempt and persist the result. Returns the final score.
    Raises AttemptNotFound for an unknown id; storage errors propagate.
    """
    attempt  = attempt_store.get_attempt(attempt_id)
    behavior = BehaviorRecord.from_dict(attempt.behavior_logs)

    judgment = None
    if use_judgment:
        logger.info("Judgment mode: attempt %s", attempt_id)
        judgment = analyze_behavior(JudgmentInput(
            question_text       = attempt.question.question_text,
            question_difficulty = attempt.question.difficulty,
            user_answer         = attempt.answer,
            behavior            = behavior,
            answer_time         = attempt.answer_time,
        ))
    else:
        logger.info("Behaviour-only mode: attempt %s", attempt_id)

    score  = final_score(behavior, attempt.answer_time, judgment)
    status = classify_status(score)

    attempt_store.update_attempt(
        attempt.id,
        risk_score   = score,
        llm_analysis = judgment.to_payload() if judgment else None,
        status       = status,
        completed_at = datetime.now(timezone.utc),
    )

    logger.info("Analysis completed [%s] for attempt %s: %d%% (%s)",
                "judgment" if use_judgment else "behaviour", attempt_id, score, status)
    return score


def run_scoring_job(attempt_id: uuid.UUID | str, use_judgment: bool = True) -> None:
    """Fire-and-forget wrapper: failures are logged, the score stays null, no retry."""
    try:
        analyze_fraud_risk(attempt_id, use_judgment)
    except Exception as exc:
        logger.error("Background analysis failed for attempt %s: %s",
                     attempt_id, exc, exc_info=True)
