"""
eventrelay webhooks - event intake and resilient forwarding.

Provides:
- Request classification (handshake / forwardable / malformed)
- Canary-first candidate selection
- Retrying forwarder with fallback
- Always-accepting response composition
"""

from eventrelay.webhooks.models import (
    EventEnvelope,
    EventRecord,
    ForwardAttemptResult,
    ForwardCandidate,
    ForwardOutcome,
    SUBSCRIPTION_VALIDATION_EVENT,
)
from eventrelay.webhooks.classifier import Classification, RequestClassifier, RequestKind
from eventrelay.webhooks.candidates import select_candidates
from eventrelay.webhooks.forwarder import Forwarder
from eventrelay.webhooks.composer import RelayResponse
from eventrelay.webhooks.states import PipelineState, Transition
from eventrelay.webhooks.pipeline import RelayPipeline, RelayResult
from eventrelay.webhooks.server import RelayServer, create_app


__all__ = [
    "EventEnvelope",
    "EventRecord",
    "ForwardAttemptResult",
    "ForwardCandidate",
    "ForwardOutcome",
    "SUBSCRIPTION_VALIDATION_EVENT",
    "Classification",
    "RequestClassifier",
    "RequestKind",
    "select_candidates",
    "Forwarder",
    "RelayResponse",
    "PipelineState",
    "Transition",
    "RelayPipeline",
    "RelayResult",
    "RelayServer",
    "create_app",
]
