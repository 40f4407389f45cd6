"""
Per-session summaries for the polling dashboard.

riskScore and status come from the session's most recent attempt (the live
signal a proctor reacts to); accuracy uses the session aggregator's grading
over the latest attempt of each question, so the dashboard and the final
report agree on what counts as correct.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from riskguard.db.attempt_store import as_utc
from riskguard.db.models import TestAttempt
from riskguard.scoring.session_report import compute_accuracy
from riskguard.telemetry.behavior_record import BehaviorRecord

WARN_BLUR_COUNT      = 3
WARN_INACTIVE_MS     = 60_000


def behavior_warnings(record: BehaviorRecord) -> list[str]:
    warnings = []
    if record.blur_count > WARN_BLUR_COUNT:
        warnings.append(f"Left the window {record.blur_count} times")
    if record.copy_count > 0:
        warnings.append(f"Copied the question {record.copy_count} times")
    if record.paste_count > 0:
        warnings.append(f"Pasted {record.paste_count} times")
    if record.mouse_inactive_time > WARN_INACTIVE_MS:
        warnings.append(f"Mouse idle for {int(record.mouse_inactive_seconds)} seconds")
    return warnings


def latest_per_question(attempts: list[TestAttempt]) -> list[TestAttempt]:
    latest: dict[int, TestAttempt] = {}
    for attempt in attempts:
        current = latest.get(attempt.question_id)
        if current is None or as_utc(attempt.created_at) > as_utc(current.created_at):
            latest[attempt.question_id] = attempt
    return list(latest.values())


def _final_report(attempt: TestAttempt) -> str | None:
    payload = attempt.llm_analysis
    if isinstance(payload, dict):
        return payload.get("finalReport") or None
    return None


def summarize_session(
    attempts:        list[TestAttempt],
    total_questions: int,
    now:             datetime | None = None,
) -> dict[str, Any]:
    """`attempts` must belong to one session, newest first."""
    now = now or datetime.now(timezone.utc)
    latest  = attempts[0]
    answered = latest_per_question(attempts)
    created = as_utc(latest.created_at)

    return {
        "sessionId":       latest.session_id,
        "studentName":     latest.student_name,
        "currentQuestion": len(answered),
        "totalQuestions":  total_questions,
        "riskScore":       latest.risk_score or 0,
        "status":          latest.status,
        "warnings":        behavior_warnings(BehaviorRecord.from_dict(latest.behavior_logs)),
        "accuracy":        compute_accuracy(answered),
        "finalReport":     _final_report(latest),
        "elapsedTime":     int((now - created).total_seconds()),
        "lastActivity":    created.isoformat(),
    }


def summarize_sessions(
    attempts:        list[TestAttempt],
    total_questions: int,
    now:             datetime | None = None,
) -> list[dict[str, Any]]:
    """Group newest-first attempts by session, most recently active session first."""
    sessions: dict[str, list[TestAttempt]] = {}
    for attempt in attempts:
        sessions.setdefault(attempt.session_id, []).append(attempt)
    return [summarize_session(group, total_questions, now) for group in sessions.values()]
