"""
Metrics for eventrelay.

Counters live on a per-collector registry so several applications (and
test instances) can coexist in one process.
"""

from typing import Dict

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest
from prometheus_client import CONTENT_TYPE_LATEST


class MetricsCollector:
    """
    Prometheus metrics for the relay pipeline.

    Example:
        >>> metrics = MetricsCollector()
        >>> metrics.record_request("forwardable")
        >>> b"eventrelay_requests_total" in metrics.render()
        True
    """

    content_type = CONTENT_TYPE_LATEST

    def __init__(self, enabled: bool = True):
        """
        Initialize metrics collector.

        Args:
            enabled: Enable metrics collection
        """
        self.enabled = enabled
        self.registry = CollectorRegistry()

        self.requests = Counter(
            'eventrelay_requests_total',
            'Inbound requests by classification',
            ['kind'],
            registry=self.registry
        )

        self.forward_attempts = Counter(
            'eventrelay_forward_attempts_total',
            'POSTs issued to forwarding targets',
            ['candidate', 'result'],
            registry=self.registry
        )

        self.forward_outcomes = Counter(
            'eventrelay_forward_outcomes_total',
            'Final forwarding outcomes',
            ['candidate', 'ok'],
            registry=self.registry
        )

        self.forward_duration = Histogram(
            'eventrelay_forward_duration_seconds',
            'Time spent forwarding one inbound request, retries included',
            registry=self.registry
        )

        self.faults = Counter(
            'eventrelay_faults_total',
            'Unexpected internal faults caught at the request boundary',
            registry=self.registry
        )

    def record_request(self, kind: str):
        """Record an inbound request classification."""
        if self.enabled:
            self.requests.labels(kind=kind).inc()

    def record_attempt(self, candidate: str, status: int):
        """Record one POST to a target."""
        if not self.enabled:
            return
        if status == 0:
            result = "network_error"
        else:
            result = f"{status // 100}xx"
        self.forward_attempts.labels(candidate=candidate, result=result).inc()

    def record_outcome(self, candidate: str, ok: bool, duration: float):
        """Record a final forwarding outcome."""
        if not self.enabled:
            return
        self.forward_outcomes.labels(candidate=candidate, ok=str(ok).lower()).inc()
        self.forward_duration.observe(duration)

    def record_fault(self):
        """Record an internal fault."""
        if self.enabled:
            self.faults.inc()

    def snapshot(self) -> Dict[str, float]:
        """Current sample values keyed by sample name and labels."""
        values = {}
        for metric in self.registry.collect():
            for sample in metric.samples:
                labels = ",".join(f"{k}={v}" for k, v in sorted(sample.labels.items()))
                key = f"{sample.name}{{{labels}}}" if labels else sample.name
                values[key] = sample.value
        return values

    def render(self) -> bytes:
        """Render metrics in Prometheus exposition format."""
        return generate_latest(self.registry)
