"""
SQLAlchemy ORM models.

  - questions      → static test content, loaded once by the seeder
  - test_attempts  → one row per (session, question) submission; the scoring
                     path fills risk_score / llm_analysis / status afterwards
"""
import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import relationship

from riskguard.db.database import Base

QUESTION_TYPES = ("reading", "vocabulary", "grammar", "writing")
DIFFICULTIES   = ("easy", "medium", "hard")

STATUS_IN_PROGRESS = "in_progress"
STATUS_COMPLETED   = "completed"
STATUS_FLAGGED     = "flagged"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Question(Base):
    """Mapped to questions — immutable after seed load."""
    __tablename__ = "questions"

    id             = Column(Integer, primary_key=True, autoincrement=True)
    title          = Column(String(200), nullable=False)
    question_text  = Column(Text, nullable=False)
    question_type  = Column(String(20), nullable=False)   # one of QUESTION_TYPES
    difficulty     = Column(String(10), nullable=False)   # one of DIFFICULTIES
    correct_answer = Column(Text, nullable=True)
    options        = Column(JSON, nullable=True)          # ordered list of choice strings
    max_score      = Column(Integer, nullable=False, default=10)
    created_at     = Column(DateTime(timezone=True), default=_utcnow)
    updated_at     = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    def to_dict(self) -> dict:
        return {
            "id":            self.id,
            "title":         self.title,
            "questionText":  self.question_text,
            "questionType":  self.question_type,
            "difficulty":    self.difficulty,
            "correctAnswer": self.correct_answer,
            "options":       self.options,
            "maxScore":      self.max_score,
        }


class TestAttempt(Base):
    """
    Mapped to test_attempts — written by the submit route, then patched by
    the scoring path (risk_score, llm_analysis, status, completed_at) and by
    the session aggregator (llm_analysis ← session report).
    """
    __tablename__ = "test_attempts"
    __test__ = False   # not a pytest class

    id            = Column(Uuid, primary_key=True, default=uuid.uuid4)
    session_id    = Column(String(100), nullable=False, index=True)
    student_name  = Column(String(100), nullable=True)
    question_id   = Column(Integer, ForeignKey("questions.id"), nullable=False)
    answer        = Column(Text, nullable=False)
    answer_time   = Column(Integer, nullable=False, default=0)     # seconds
    behavior_logs = Column(JSON, nullable=False, default=dict)     # BehaviorRecord wire dict
    risk_score    = Column(Integer, nullable=True)
    llm_analysis  = Column(JSON, nullable=True)
    status        = Column(String(20), nullable=False, default=STATUS_IN_PROGRESS)
    created_at    = Column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)
    completed_at  = Column(DateTime(timezone=True), nullable=True)

    question = relationship(Question, lazy="joined")
