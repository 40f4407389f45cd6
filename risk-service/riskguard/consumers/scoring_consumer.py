"""
ScoringConsumer — consumes messages from the `scoring.requests` queue.

Message format (JSON):
{
    "attemptId":   "uuid-string",
    "useJudgment": true               // false → behaviour-only policy
}

Each message scores exactly one attempt. A failure (unknown attempt, DB
outage) is logged and the message nacked without requeue, leaving the
attempt's risk_score null.
"""
from __future__ import annotations

import json
import logging

import pika

from riskguard.config import get_settings
from riskguard.consumers.base_consumer import BaseConsumer
from riskguard.publisher.scoring_publisher import declare_topology
from riskguard.scoring.analyzer import analyze_fraud_risk

logger = logging.getLogger(__name__)
settings = get_settings()


class ScoringConsumer(BaseConsumer):
    """Runs the fraud analysis for queued attempts."""

    @property
    def queue_name(self) -> str:
        return settings.scoring_queue

    def declare(self, channel) -> None:
        declare_topology(channel)

    def process_message(self, body: bytes, properties: pika.BasicProperties) -> None:
        msg = json.loads(body)
        attempt_id   = msg.get("attemptId")
        use_judgment = msg.get("useJudgment", True) is not False

        if not attempt_id:
            logger.warning("Scoring request without attemptId dropped: %s", msg)
            return

        analyze_fraud_risk(attempt_id, use_judgment)
