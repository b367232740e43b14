"""Metrics collection for monitoring consensus progress"""
from prometheus_client import Counter, Gauge, CONTENT_TYPE_LATEST, generate_latest


class MetricsCollector:
    """Collect and expose consensus metrics"""

    content_type = CONTENT_TYPE_LATEST

    def __init__(self):
        # Prometheus metrics
        self.messages_sent = Counter(
            'benor_messages_sent_total',
            'Protocol messages accepted by a peer',
            ['node_id', 'phase']
        )

        self.messages_received = Counter(
            'benor_messages_received_total',
            'Protocol messages recorded by a node',
            ['node_id', 'phase']
        )

        self.delivery_failures = Counter(
            'benor_delivery_failures_total',
            'Protocol messages that could not be delivered to a peer',
            ['node_id']
        )

        self.rounds_completed = Counter(
            'benor_rounds_completed_total',
            'Rounds completed without a decision',
            ['node_id']
        )

        self.decisions = Counter(
            'benor_decisions_total',
            'Final decisions reached',
            ['node_id', 'value']
        )

        self.current_round = Gauge(
            'benor_current_round',
            'Current round of a node',
            ['node_id']
        )

    def record_message_sent(self, node_id: int, phase: str):
        self.messages_sent.labels(node_id=str(node_id), phase=phase).inc()

    def record_message_received(self, node_id: int, phase: str):
        self.messages_received.labels(node_id=str(node_id), phase=phase).inc()

    def record_delivery_failure(self, node_id: int):
        self.delivery_failures.labels(node_id=str(node_id)).inc()

    def record_round(self, node_id: int, new_round: int):
        """Record a completed round and the round that follows it"""
        self.rounds_completed.labels(node_id=str(node_id)).inc()
        self.current_round.labels(node_id=str(node_id)).set(new_round)

    def record_decision(self, node_id: int, value):
        self.decisions.labels(node_id=str(node_id), value=str(value)).inc()

    def export(self) -> bytes:
        """Prometheus text exposition of all metrics"""
        return generate_latest()


# Global metrics collector instance
metrics = MetricsCollector()
