"""
Relay pipeline - classify, select, forward, compose.

Stateless per invocation: the only shared objects are the immutable
configuration, the HTTP client's connection pool and the metrics.
"""

from dataclasses import dataclass, field
from typing import Any, List, Optional

import httpx

from eventrelay.core.config import RelayConfig
from eventrelay.core.observability import MetricsCollector
from eventrelay.logging import StructuredLogger, LogLevel, get_logger
from eventrelay.webhooks.candidates import select_candidates
from eventrelay.webhooks.classifier import Classification, RequestClassifier
from eventrelay.webhooks.composer import (
    RelayResponse,
    compose_fault,
    compose_handshake,
    compose_outcome,
    compose_rejected,
    compose_unconfigured,
)
from eventrelay.webhooks.forwarder import Forwarder
from eventrelay.webhooks.models import ForwardOutcome
from eventrelay.webhooks.states import (
    PipelineState,
    TERMINAL_STATES,
    Transition,
    after_classification,
    after_selection,
)


@dataclass
class RelayResult:
    """Everything one invocation produced."""

    response: Optional[RelayResponse] = None
    trace: List[Transition] = field(default_factory=list)
    classification: Optional[Classification] = None
    outcome: Optional[ForwardOutcome] = None

    @property
    def final_state(self) -> PipelineState:
        return self.trace[-1].state


class RelayPipeline:
    """
    Runs one inbound request through the relay.

    Example:
        >>> pipeline = RelayPipeline(config, forwarder)
        >>> result = await pipeline.run(await request.body())
        >>> result.response.status_code
        200
    """

    def __init__(
        self,
        config: RelayConfig,
        forwarder: Forwarder,
        classifier: Optional[RequestClassifier] = None,
        logger: Optional[StructuredLogger] = None,
        metrics: Optional[MetricsCollector] = None
    ):
        self.config = config
        self.forwarder = forwarder
        self.classifier = classifier or RequestClassifier()
        self.logger = logger or get_logger("eventrelay.pipeline")
        self.metrics = metrics

    @classmethod
    def from_config(
        cls,
        config: RelayConfig,
        client: httpx.AsyncClient,
        metrics: Optional[MetricsCollector] = None,
        **forwarder_options: Any
    ) -> "RelayPipeline":
        """Wire a pipeline and its components from configuration."""
        level = LogLevel(config.log_level.lower())
        forwarder = Forwarder(
            client,
            config.retry_policy(),
            fallback_enabled=config.fallback_enabled,
            logger=get_logger("eventrelay.forwarder", level),
            metrics=metrics,
            **forwarder_options
        )
        return cls(
            config,
            forwarder,
            classifier=RequestClassifier(get_logger("eventrelay.classifier", level)),
            logger=get_logger("eventrelay.pipeline", level),
            metrics=metrics
        )

    async def handle(self, body: Any) -> RelayResponse:
        """Process a request body and return the response to send."""
        result = await self.run(body)
        return result.response

    async def run(self, body: Any) -> RelayResult:
        """
        Process a request body, keeping the trace and intermediate results.

        Never raises: unexpected faults become a degraded-success response.
        """
        result = RelayResult()
        result.trace.append(Transition(PipelineState.CLASSIFYING))

        try:
            await self._run(body, result)
        except Exception as e:
            self.logger.error(
                "Unexpected error handling event delivery",
                error=type(e).__name__,
                details=str(e)
            )
            if self.metrics:
                self.metrics.record_fault()
            result.response = compose_fault(e)
            result.trace.append(Transition(PipelineState.EXHAUSTED))

        return result

    async def _run(self, body: Any, result: RelayResult) -> None:
        classification = self.classifier.classify(body)
        result.classification = classification
        if self.metrics:
            self.metrics.record_request(classification.kind.value)

        state = after_classification(classification.kind)
        result.trace.append(Transition(state))

        if state is PipelineState.HANDSHAKE:
            result.response = compose_handshake(classification.validation_code)
            return

        if state is PipelineState.REJECTED:
            result.response = compose_rejected(classification.reason or "Invalid payload")
            return

        candidates = select_candidates(self.config)
        state = after_selection(len(candidates))

        if state is PipelineState.REJECTED:
            result.trace.append(Transition(state))
            self.logger.error(
                "No forwarding target configured; set LOGICAPP_CALLBACK_URL",
                records=classification.envelope.record_count
            )
            result.response = compose_unconfigured()
            return

        self.logger.info(
            "Selected forwarding targets",
            candidates=[c.label for c in candidates],
            fallback_enabled=self.config.fallback_enabled
        )

        outcome = await self.forwarder.forward(
            candidates,
            classification.envelope.raw,
            trace=result.trace
        )
        result.outcome = outcome
        result.response = compose_outcome(outcome, self.config.include_forwarded_body)

        if result.trace[-1].state not in TERMINAL_STATES:
            raise RuntimeError(f"pipeline ended in non-terminal state {result.trace[-1]}")
