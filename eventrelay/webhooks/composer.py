"""
Response composition.

The event source redelivers on failure statuses, and the relay owns its
own retry policy. Every response is therefore HTTP 200; the true result
is carried in the JSON body.
"""

from dataclasses import dataclass, field
from typing import Any, Dict

from eventrelay.core.secrets import redact_text
from eventrelay.webhooks.models import ForwardOutcome, HandshakeResponse

ACCEPTED_STATUS = 200

NO_TARGET_ERROR = "No forwarding target configured"
INTERNAL_ERROR = "Internal error"


@dataclass(frozen=True)
class RelayResponse:
    """HTTP response returned to the event source."""

    body: Dict[str, Any] = field(default_factory=dict)
    status_code: int = ACCEPTED_STATUS


def compose_handshake(validation_code: str) -> RelayResponse:
    """Echo the validation code back to the event source."""
    body = HandshakeResponse(validation_response=validation_code)
    return RelayResponse(body=body.model_dump(by_alias=True))


def compose_rejected(reason: str) -> RelayResponse:
    """Acknowledge an empty or unparseable delivery without forwarding it."""
    return RelayResponse(body={"ok": False, "error": reason})


def compose_unconfigured() -> RelayResponse:
    """Acknowledge a delivery the relay has no target for."""
    return RelayResponse(body={"ok": False, "error": NO_TARGET_ERROR})


def compose_outcome(outcome: ForwardOutcome, include_forwarded_body: bool = False) -> RelayResponse:
    """Report a forwarding outcome, successful or not."""
    return RelayResponse(body=outcome.to_body(include_forwarded_body))


def compose_fault(error: BaseException) -> RelayResponse:
    """Acknowledge a delivery that hit an unexpected internal fault."""
    return RelayResponse(body={"ok": False, "error": INTERNAL_ERROR, "details": redact_text(str(error))})
