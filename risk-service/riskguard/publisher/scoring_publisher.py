"""
Publishes scoring requests to the RabbitMQ `scoring.requests` queue.

The submit route calls publish_scoring_request() after the attempt row is
committed and returns immediately; ScoringConsumer picks the request up.

Message Contract (must match ScoringConsumer):
{
    "attemptId":   "uuid-string",
    "useJudgment": true
}
"""
import json
import logging
import threading

import pika

from riskguard.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

# Thread-local storage so each API worker thread has its own publisher connection
_local = threading.local()


def _get_channel() -> pika.adapters.blocking_connection.BlockingChannel:
    """
    Returns a per-thread pika channel, reconnecting if the connection is closed.
    Using thread-local connections avoids the thread-safety issues with pika's
    BlockingConnection.
    """
    conn: pika.BlockingConnection | None = getattr(_local, "connection", None)
    if conn is None or conn.is_closed:
        params = pika.URLParameters(settings.rabbitmq_url)
        params.heartbeat = 60
        params.blocked_connection_timeout = 30
        _local.connection = pika.BlockingConnection(params)
        _local.channel = _local.connection.channel()
        declare_topology(_local.channel)
        logger.info("Publisher: connected to RabbitMQ (thread %s)", threading.get_ident())

    return _local.channel


def declare_topology(channel) -> None:
    """Exchange, queue and binding for scoring requests (idempotent)."""
    channel.exchange_declare(
        exchange=settings.exchange_name,
        exchange_type="topic",
        durable=True,
    )
    channel.queue_declare(queue=settings.scoring_queue, durable=True)
    channel.queue_bind(
        queue=settings.scoring_queue,
        exchange=settings.exchange_name,
        routing_key=settings.scoring_routing_key,
    )


def publish_scoring_request(attempt_id: str, use_judgment: bool) -> None:
    """
    Queue one attempt for scoring.
    Retries once on connection failure, then logs and drops (no redelivery).
    """
    body = {
        "attemptId":   str(attempt_id),
        "useJudgment": bool(use_judgment),
    }
    _publish_with_retry(body)


def _publish_with_retry(body: dict, attempts: int = 2) -> None:
    payload = json.dumps(body).encode()
    for attempt in range(1, attempts + 1):
        try:
            channel = _get_channel()
            channel.basic_publish(
                exchange=settings.exchange_name,
                routing_key=settings.scoring_routing_key,
                body=payload,
                properties=pika.BasicProperties(
                    content_type="application/json",
                    delivery_mode=pika.DeliveryMode.Persistent,
                ),
            )
            logger.debug("Queued scoring request → attemptId=%s judgment=%s",
                         body.get("attemptId"), body.get("useJudgment"))
            return
        except Exception as exc:
            logger.warning("Publish attempt %d/%d failed: %s", attempt, attempts, exc)
            # Reset the thread-local connection so it is recreated on next call
            _local.connection = None
            if attempt == attempts:
                logger.error(
                    "Failed to queue scoring after %d attempts — attempt stays unscored: %s",
                    attempts,
                    body,
                )
