"""
Tests for the scoring queue: consumer message handling and the publisher.
No broker is needed; channels are faked.
Run with: pytest risk-service/tests/test_scoring_consumer.py -v
"""
import json
from types import SimpleNamespace

import pytest


class FakeChannel:
    def __init__(self, fail=False):
        self.fail = fail
        self.published = []
        self.acks = []
        self.nacks = []

    def basic_publish(self, exchange, routing_key, body, properties):
        if self.fail:
            raise ConnectionError("broker unreachable")
        self.published.append((exchange, routing_key, json.loads(body)))

    def basic_ack(self, delivery_tag):
        self.acks.append(delivery_tag)

    def basic_nack(self, delivery_tag, requeue):
        self.nacks.append((delivery_tag, requeue))


@pytest.fixture
def scored(monkeypatch):
    from riskguard.consumers import scoring_consumer
    calls = []
    monkeypatch.setattr(scoring_consumer, "analyze_fraud_risk",
                        lambda attempt_id, use_judgment: calls.append((attempt_id, use_judgment)))
    return calls


class TestScoringConsumer:
    def test_queue_name_from_settings(self):
        from riskguard.consumers.scoring_consumer import ScoringConsumer
        assert ScoringConsumer().queue_name == "scoring.requests"

    def test_message_scores_attempt(self, scored):
        from riskguard.consumers.scoring_consumer import ScoringConsumer
        body = json.dumps({"attemptId": "a-1", "useJudgment": False}).encode()
        ScoringConsumer().process_message(body, None)
        assert scored == [("a-1", False)]

    def test_judgment_defaults_on(self, scored):
        from riskguard.consumers.scoring_consumer import ScoringConsumer
        ScoringConsumer().process_message(b'{"attemptId": "a-2"}', None)
        assert scored == [("a-2", True)]

    def test_missing_attempt_id_is_dropped(self, scored):
        from riskguard.consumers.scoring_consumer import ScoringConsumer
        ScoringConsumer().process_message(b'{"useJudgment": true}', None)
        assert scored == []

    def test_failure_is_nacked_without_requeue(self, monkeypatch):
        from riskguard.consumers import scoring_consumer
        from riskguard.db.attempt_store import AttemptNotFound

        def boom(attempt_id, use_judgment):
            raise AttemptNotFound(attempt_id)

        monkeypatch.setattr(scoring_consumer, "analyze_fraud_risk", boom)
        channel = FakeChannel()
        consumer = scoring_consumer.ScoringConsumer()
        consumer._on_message(channel, SimpleNamespace(delivery_tag=7), None,
                             b'{"attemptId": "missing"}')
        assert channel.nacks == [(7, False)]
        assert channel.acks == []

    def test_success_is_acked(self, scored):
        from riskguard.consumers.scoring_consumer import ScoringConsumer
        channel = FakeChannel()
        ScoringConsumer()._on_message(channel, SimpleNamespace(delivery_tag=3), None,
                                      b'{"attemptId": "a-3"}')
        assert channel.acks == [3]


class TestScoringPublisher:
    def test_publishes_request(self, monkeypatch):
        from riskguard.publisher import scoring_publisher
        channel = FakeChannel()
        monkeypatch.setattr(scoring_publisher, "_get_channel", lambda: channel)

        scoring_publisher.publish_scoring_request("a-9", use_judgment=True)

        assert channel.published == [
            ("proctoring.exchange", "scoring.requests", {"attemptId": "a-9", "useJudgment": True}),
        ]

    def test_broker_failure_is_swallowed_after_retry(self, monkeypatch, caplog):
        from riskguard.publisher import scoring_publisher
        channel = FakeChannel(fail=True)
        calls = []

        def get_channel():
            calls.append(1)
            return channel

        monkeypatch.setattr(scoring_publisher, "_get_channel", get_channel)

        scoring_publisher.publish_scoring_request("a-10", use_judgment=False)

        assert len(calls) == 2
        assert "attempt stays unscored" in caplog.text
