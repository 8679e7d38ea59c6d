"""
Request classification - handshake, forwardable event, or malformed input.

Classification never raises: a malformed body is a classification value,
not an error, so the caller can still acknowledge the delivery.
"""

import json
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from eventrelay.logging import StructuredLogger, get_logger
from eventrelay.webhooks.models import EventEnvelope

_NO_BODY = object()


class RequestKind(str, Enum):
    """Classification of an inbound request."""
    HANDSHAKE = "handshake"
    FORWARDABLE = "forwardable"
    MALFORMED = "malformed"


@dataclass(frozen=True)
class Classification:
    """Result of classifying one inbound request."""

    kind: RequestKind
    envelope: Optional[EventEnvelope] = None
    validation_code: str = ""
    reason: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        """Whether the request is answered without forwarding."""
        return self.kind is not RequestKind.FORWARDABLE


def _malformed(reason: str) -> Classification:
    return Classification(kind=RequestKind.MALFORMED, reason=reason)


def _reject_constant(name: str) -> Any:
    raise ValueError(f"Non-finite number: {name}")


def _finite_float(text: str) -> float:
    value = float(text)
    if not math.isfinite(value):
        raise ValueError(f"Number out of range: {text}")
    return value


def parse_body(body: Any) -> Any:
    """
    Decode a raw request body.

    Bytes and text are parsed as strict JSON: ``NaN``, ``Infinity`` and
    numbers that overflow a float are rejected. Anything else is assumed
    to be parsed already.

    Returns:
        The JSON value, or ``_NO_BODY`` for an absent/blank body

    Raises:
        ValueError: If the body is not valid JSON or not UTF-8
    """
    if body is None:
        return _NO_BODY
    if isinstance(body, (bytes, bytearray)):
        body = body.decode("utf-8")
    if isinstance(body, str):
        if not body.strip():
            return _NO_BODY
        return json.loads(
            body,
            parse_constant=_reject_constant,
            parse_float=_finite_float
        )
    return body


class RequestClassifier:
    """
    Decides what to do with an inbound payload.

    Example:
        >>> classifier = RequestClassifier()
        >>> result = classifier.classify(b'[{"eventType": "Blob.Created"}]')
        >>> result.kind
        <RequestKind.FORWARDABLE: 'forwardable'>
    """

    def __init__(self, logger: Optional[StructuredLogger] = None):
        self.logger = logger or get_logger("eventrelay.classifier")

    def classify(self, body: Any) -> Classification:
        """
        Classify a request body.

        Args:
            body: Raw bytes, text, or an already-parsed JSON value

        Returns:
            Classification
        """
        try:
            payload = parse_body(body)
        except (ValueError, UnicodeDecodeError) as e:
            self.logger.warning("Request body is not valid JSON", error=str(e))
            return _malformed(f"Invalid JSON: {e}")

        if payload is _NO_BODY or payload is None:
            self.logger.warning("Request received with empty body")
            return _malformed("Empty body")

        self.logger.info("Event payload received", payload=payload)

        if not isinstance(payload, (dict, list)):
            return _malformed("Payload must be a JSON object or array")

        envelope = EventEnvelope(raw=payload)
        first = envelope.first
        if first is None:
            self.logger.warning("Request received with empty event batch")
            return _malformed("Empty body")

        if first.is_handshake:
            self.logger.info(
                "Handling subscription validation handshake",
                code=first.validation_code
            )
            return Classification(
                kind=RequestKind.HANDSHAKE,
                envelope=envelope,
                validation_code=first.validation_code
            )

        return Classification(kind=RequestKind.FORWARDABLE, envelope=envelope)
