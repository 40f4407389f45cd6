"""
BaseConsumer — abstract RabbitMQ consumer with:
  • automatic reconnection / channel recovery
  • thread-safe, each consumer instance owns one connection + channel
  • configurable prefetch count
"""
from __future__ import annotations

import abc
import logging
import threading

import pika
import pika.exceptions

from riskguard.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

_RECONNECT_DELAY   = 5    # seconds between reconnect attempts
_DEFAULT_PREFETCH  = 1    # one message at a time per consumer thread


class BaseConsumer(threading.Thread, abc.ABC):
    """
    Abstract background thread that consumes messages from a RabbitMQ queue.

    Subclasses must implement:
        queue_name: str property
        process_message(body: bytes, properties: pika.BasicProperties) -> None
    and may override declare(channel) to set up their own topology.
    """

    daemon = True          # thread exits when main process exits

    def __init__(self, prefetch: int = _DEFAULT_PREFETCH) -> None:
        super().__init__(name=self.__class__.__name__, daemon=True)
        self._prefetch   = prefetch
        self._stop_event = threading.Event()
        self._connection: pika.BlockingConnection | None = None
        self._channel:    pika.adapters.blocking_connection.BlockingChannel | None = None

    # ── Abstract interface ──────────────────────────────────────────────────

    @property
    @abc.abstractmethod
    def queue_name(self) -> str:
        """Return the queue name to consume from."""

    @abc.abstractmethod
    def process_message(
        self,
        body:       bytes,
        properties: pika.BasicProperties,
    ) -> None:
        """Process one deserialized message body."""

    def declare(self, channel) -> None:
        """Assert the queue exists; subclasses that own their queue declare it here."""
        channel.queue_declare(queue=self.queue_name, passive=True)

    # ── Thread entry point ──────────────────────────────────────────────────

    def run(self) -> None:
        logger.info("%s starting, queue=%s", self.name, self.queue_name)
        while not self._stop_event.is_set():
            try:
                self._connect()
                self._consume_loop()
            except pika.exceptions.AMQPConnectionError as exc:
                logger.warning("%s connection lost: %s — reconnecting in %ds",
                               self.name, exc, _RECONNECT_DELAY)
                self._close_connection()
                self._stop_event.wait(_RECONNECT_DELAY)
            except Exception as exc:
                if self._stop_event.is_set():
                    break
                logger.error("%s unexpected error: %s — reconnecting in %ds",
                             self.name, exc, _RECONNECT_DELAY, exc_info=True)
                self._close_connection()
                self._stop_event.wait(_RECONNECT_DELAY)

    def stop(self) -> None:
        self._stop_event.set()
        conn = self._connection
        if conn is not None and conn.is_open:
            # BlockingConnection is not thread-safe; ask its own thread to stop
            try:
                conn.add_callback_threadsafe(self._stop_consuming)
            except Exception as exc:
                logger.debug("%s stop callback failed: %s", self.name, exc)

    # ── Internal helpers ────────────────────────────────────────────────────

    def _stop_consuming(self) -> None:
        if self._channel is not None:
            self._channel.stop_consuming()

    def _connect(self) -> None:
        params = pika.URLParameters(settings.rabbitmq_url)
        params.heartbeat        = 60
        params.blocked_connection_timeout = 30
        self._connection = pika.BlockingConnection(params)
        self._channel    = self._connection.channel()

        self.declare(self._channel)
        self._channel.basic_qos(prefetch_count=self._prefetch)
        logger.info("%s connected to %s", self.name, self.queue_name)

    def _consume_loop(self) -> None:
        assert self._channel is not None
        self._channel.basic_consume(
            queue=self.queue_name,
            on_message_callback=self._on_message,
        )
        self._channel.start_consuming()
        self._close_connection()

    def _on_message(
        self,
        channel,
        method:     pika.spec.Basic.Deliver,
        properties: pika.BasicProperties,
        body:       bytes,
    ) -> None:
        try:
            self.process_message(body, properties)
            channel.basic_ack(delivery_tag=method.delivery_tag)
        except Exception as exc:
            logger.error("%s process_message failed: %s", self.name, exc, exc_info=True)
            # nack without requeue to avoid poison-message loops
            channel.basic_nack(delivery_tag=method.delivery_tag, requeue=False)

    def _close_connection(self) -> None:
        try:
            if self._connection and not self._connection.is_closed:
                self._connection.close()
        except Exception as exc:
            logger.debug("%s close failed: %s", self.name, exc)
        self._connection = None
        self._channel    = None
