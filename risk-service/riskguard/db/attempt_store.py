"""
Create / find / update helpers for questions and test attempts.

Every helper opens its own transactional session via get_db(), so callers on
the API threads and on the scoring consumer thread never share a Session.
Rows are returned detached (expire_on_commit=False) with their question
eagerly loaded.
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Iterable

from sqlalchemy import func, select, update

from riskguard.db.database import get_db
from riskguard.db.models import Question, TestAttempt, STATUS_IN_PROGRESS

logger = logging.getLogger(__name__)


class AttemptNotFound(LookupError):
    """Raised when an attempt id has no row."""


class SessionNotFound(LookupError):
    """Raised when a session id has no attempts."""


def as_utc(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; everything we store is UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ── Questions ─────────────────────────────────────────────────────────────────

def list_questions() -> list[Question]:
    with get_db() as db:
        return list(db.scalars(select(Question).order_by(Question.id)))


def get_question(question_id: int) -> Question | None:
    with get_db() as db:
        return db.get(Question, question_id)


def count_questions() -> int:
    with get_db() as db:
        return db.scalar(select(func.count()).select_from(Question)) or 0


def add_questions(rows: Iterable[dict[str, Any]], replace: bool = False) -> int:
    """Insert question rows; with replace=True existing questions and attempts are wiped."""
    with get_db() as db:
        if replace:
            db.query(TestAttempt).delete()
            db.query(Question).delete()
        count = 0
        for row in rows:
            db.add(Question(**row))
            count += 1
    return count


# ── Attempts ──────────────────────────────────────────────────────────────────

def create_attempt(
    session_id:    str,
    question_id:   int,
    answer:        str,
    answer_time:   int,
    behavior_logs: dict[str, Any],
    student_name:  str | None = None,
) -> TestAttempt:
    with get_db() as db:
        attempt = TestAttempt(
            session_id    = session_id,
            student_name  = student_name,
            question_id   = question_id,
            answer        = answer,
            answer_time   = answer_time,
            behavior_logs = behavior_logs,
            status        = STATUS_IN_PROGRESS,
        )
        db.add(attempt)
        db.flush()
        db.refresh(attempt)
        logger.debug("Stored attempt %s (session=%s question=%s)",
                     attempt.id, session_id, question_id)
        return attempt


def get_attempt(attempt_id: uuid.UUID | str) -> TestAttempt:
    if isinstance(attempt_id, str):
        attempt_id = uuid.UUID(attempt_id)
    with get_db() as db:
        attempt = db.get(TestAttempt, attempt_id)
        if attempt is None:
            raise AttemptNotFound(str(attempt_id))
        return attempt


def update_attempt(attempt_id: uuid.UUID | str, **fields: Any) -> None:
    if isinstance(attempt_id, str):
        attempt_id = uuid.UUID(attempt_id)
    with get_db() as db:
        result = db.execute(
            update(TestAttempt).where(TestAttempt.id == attempt_id).values(**fields)
        )
        if result.rowcount == 0:
            raise AttemptNotFound(str(attempt_id))


def find_session_attempts(session_id: str) -> list[TestAttempt]:
    """All attempts of one session, oldest first."""
    with get_db() as db:
        stmt = (
            select(TestAttempt)
            .where(TestAttempt.session_id == session_id)
            .order_by(TestAttempt.created_at.asc())
        )
        return list(db.scalars(stmt).unique())


def update_session_attempts(session_id: str, **fields: Any) -> int:
    """Bulk patch every attempt of a session. Returns the number of rows touched."""
    with get_db() as db:
        result = db.execute(
            update(TestAttempt).where(TestAttempt.session_id == session_id).values(**fields)
        )
        return result.rowcount


def find_recent_attempts(since: datetime, status: str | None = None) -> list[TestAttempt]:
    """Attempts created at or after `since`, newest first."""
    with get_db() as db:
        stmt = select(TestAttempt).where(TestAttempt.created_at >= since)
        if status:
            stmt = stmt.where(TestAttempt.status == status)
        stmt = stmt.order_by(TestAttempt.created_at.desc())
        return list(db.scalars(stmt).unique())
