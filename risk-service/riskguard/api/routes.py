"""
FastAPI route definitions for the risk-scoring service.

  GET  /health               — liveness/readiness check
  GET  /api/questions        — test content
  POST /api/submit           — store one answer, queue its scoring
  POST /api/analyze/final    — session report (accuracy, risk, narrative)
  GET  /api/students/status  — per-session summaries for the dashboard

Responses use the envelope {"success": bool, "data"?: ..., "error"?: str}.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from fastapi import APIRouter, BackgroundTasks
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from riskguard.config import get_settings
from riskguard.db import attempt_store
from riskguard.db.database import check_db_connection
from riskguard.publisher.scoring_publisher import publish_scoring_request
from riskguard.scoring.analyzer import run_scoring_job
from riskguard.scoring.dashboard import summarize_sessions
from riskguard.scoring.session_report import analyze_final_behavior
from riskguard.telemetry.behavior_record import BehaviorRecord
from riskguard.telemetry.collector import TelemetryCollector

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter()


def _fail(status_code: int, error: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": error})


# ── Health ─────────────────────────────────────────────────────────────────────

@router.get("/health")
def health() -> dict[str, Any]:
    db_ok = check_db_connection()

    return {
        "status": "ok" if db_ok else "degraded",
        "judgment": {
            "configured": settings.judgment_enabled,
            "model":      settings.openai_model,
        },
        "scoringDispatch": settings.scoring_dispatch,
        "dependencies": {
            "database": "ok" if db_ok else "error",
        },
    }


# ── Questions ──────────────────────────────────────────────────────────────────

@router.get("/api/questions")
def get_questions():
    try:
        questions = attempt_store.list_questions()
    except Exception as exc:
        logger.error("Error fetching questions: %s", exc, exc_info=True)
        return _fail(500, "Failed to fetch questions")
    return {"success": True, "data": [q.to_dict() for q in questions]}


# ── Submission ─────────────────────────────────────────────────────────────────

class BehaviorLogsIn(BaseModel):
    """Client-side BehaviorRecord snapshot (camelCase wire keys)."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    start_time:              float | None = Field(default=None, alias="startTime")
    end_time:                float | None = Field(default=None, alias="endTime")
    blur_count:              int   = Field(default=0, ge=0, alias="blurCount")
    blur_durations:          list[float] = Field(default_factory=list, alias="blurDurations")
    visibility_change_count: int   = Field(default=0, ge=0, alias="visibilityChangeCount")
    mouse_move_count:        int   = Field(default=0, ge=0, alias="mouseMoveCount")
    mouse_inactive_time:     float = Field(default=0.0, ge=0, alias="mouseInactiveTime")
    mouse_leave_count:       int   = Field(default=0, ge=0, alias="mouseLeaveCount")
    copy_count:              int   = Field(default=0, ge=0, alias="copyCount")
    copied_texts:            list[str] = Field(default_factory=list, alias="copiedTexts")
    paste_count:             int   = Field(default=0, ge=0, alias="pasteCount")
    cut_count:               int   = Field(default=0, ge=0, alias="cutCount")
    key_press_count:         int   = Field(default=0, ge=0, alias="keyPressCount")
    typing_speed:            float = Field(default=0.0, ge=0, alias="typingSpeed")
    right_click_count:       int   = Field(default=0, ge=0, alias="rightClickCount")
    scroll_count:            int   = Field(default=0, ge=0, alias="scrollCount")
    scroll_distance:         float = Field(default=0.0, alias="scrollDistance")


class BehaviorEventIn(BaseModel):
    """One raw client event, folded through the collector."""
    model_config = ConfigDict(extra="ignore")

    type:      str
    timestamp: float | None = None     # epoch millis
    hidden:    bool | None = None      # visibilitychange only
    text:      str | None = None       # copy only


class SubmitRequest(BaseModel):
    sessionId:      str = Field(min_length=1)
    studentName:    str | None = None
    questionId:     int = Field(gt=0)
    answer:         str = Field(min_length=1)
    answerTime:     int = Field(default=0, ge=0)       # seconds
    behaviorLogs:   BehaviorLogsIn | None = None
    behaviorEvents: list[BehaviorEventIn] | None = None
    useLLM:         bool = True


def _behavior_snapshot(req: SubmitRequest) -> dict[str, Any]:
    if req.behaviorLogs is not None:
        logs = req.behaviorLogs.model_dump(by_alias=True, exclude_none=True)
        return BehaviorRecord.from_dict(logs).to_dict()
    if req.behaviorEvents:
        events = [e.model_dump(exclude_none=True) for e in req.behaviorEvents]
        return TelemetryCollector.replay(events).snapshot().to_dict()
    return BehaviorRecord.from_dict({}).to_dict()


@router.post("/api/submit")
def submit_answer(req: SubmitRequest, background_tasks: BackgroundTasks):
    """
    Persist one answer and hand it to the scoring path.
    Does not wait for scoring: the score appears on the attempt later.
    """
    try:
        if attempt_store.get_question(req.questionId) is None:
            return _fail(404, "Question not found")
        attempt = attempt_store.create_attempt(
            session_id    = req.sessionId,
            student_name  = req.studentName,
            question_id   = req.questionId,
            answer        = req.answer,
            answer_time   = req.answerTime,
            behavior_logs = _behavior_snapshot(req),
        )
    except Exception as exc:
        logger.error("Error submitting answer: %s", exc, exc_info=True)
        return _fail(500, "Failed to submit answer")

    attempt_id = str(attempt.id)
    if settings.scoring_dispatch == "background":
        background_tasks.add_task(run_scoring_job, attempt_id, req.useLLM)
    else:
        publish_scoring_request(attempt_id, req.useLLM)

    return {
        "success": True,
        "data": {
            "attemptId": attempt_id,
            "message":   "Answer submitted successfully",
        },
    }


# ── Session report ─────────────────────────────────────────────────────────────

class FinalAnalysisRequest(BaseModel):
    sessionId: str | None = None
    useLLM:    bool = True


@router.post("/api/analyze/final")
def analyze_final(req: FinalAnalysisRequest):
    if not req.sessionId:
        return _fail(400, "Missing sessionId")

    try:
        report = analyze_final_behavior(req.sessionId, req.useLLM)
    except attempt_store.SessionNotFound:
        return _fail(404, "No attempts found")
    except Exception as exc:
        logger.error("Error in final analysis: %s", exc, exc_info=True)
        return _fail(500, "Final analysis failed")

    return {"success": True, "data": report.to_response()}


# ── Dashboard ──────────────────────────────────────────────────────────────────

@router.get("/api/students/status")
def students_status(status: str | None = None, since: int | None = None):
    now = datetime.now(timezone.utc)
    if since is not None:
        cutoff = datetime.fromtimestamp(since / 1000.0, tz=timezone.utc)
    else:
        cutoff = now - timedelta(minutes=settings.status_window_minutes)

    try:
        attempts = attempt_store.find_recent_attempts(cutoff, status or None)
        students = summarize_sessions(attempts, attempt_store.count_questions(), now)
    except Exception as exc:
        logger.error("Error fetching student status: %s", exc, exc_info=True)
        return _fail(500, "Failed to fetch status")

    return {
        "success":   True,
        "data":      students,
        "timestamp": int(now.timestamp() * 1000),
    }
