"""
Data model for the relay pipeline.

Inbound payloads are opaque JSON; only ``eventType`` and
``data.validationCode`` are ever read.
"""

from dataclasses import dataclass
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from eventrelay.core.secrets import CallbackUrl

SUBSCRIPTION_VALIDATION_EVENT = "Microsoft.EventGrid.SubscriptionValidationEvent"

CANARY_LABEL = "canary"
STABLE_LABEL = "stable"

# Downstream bodies longer than this are cut before logging or echoing
MAX_BODY_CHARS = 2000
TRUNCATION_MARKER = "...(truncated)"


def truncate_body(body: str, limit: int = MAX_BODY_CHARS) -> str:
    """Shorten a downstream response body for logs and responses."""
    if len(body) > limit:
        return body[:limit] + TRUNCATION_MARKER
    return body


class EventRecord(BaseModel):
    """
    One event record, reduced to the fields the relay reads.

    Missing or mistyped fields become ``None`` / ``""`` instead of raising.
    """

    event_type: Optional[str] = None
    validation_code: str = ""

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_raw(cls, raw: Any) -> "EventRecord":
        """Build a record from an arbitrary JSON value."""
        if not isinstance(raw, dict):
            return cls()

        event_type = raw.get("eventType")
        if not isinstance(event_type, str):
            event_type = None

        data = raw.get("data")
        code = data.get("validationCode") if isinstance(data, dict) else None

        return cls(event_type=event_type, validation_code=_code_text(code))

    @property
    def is_handshake(self) -> bool:
        return self.event_type == SUBSCRIPTION_VALIDATION_EVENT


def _code_text(code: Any) -> str:
    """Echo string and non-zero numeric codes; anything else is empty."""
    if isinstance(code, str):
        return code
    if isinstance(code, (int, float)) and not isinstance(code, bool) and code:
        return str(code)
    return ""


@dataclass(frozen=True)
class EventEnvelope:
    """One inbound unit of work: a single record or a batch, kept as received."""

    raw: Any

    @property
    def is_batch(self) -> bool:
        return isinstance(self.raw, list)

    @property
    def first(self) -> Optional[EventRecord]:
        """The first (or only) record; ``None`` for an empty batch."""
        if self.is_batch:
            if not self.raw:
                return None
            return EventRecord.from_raw(self.raw[0])
        return EventRecord.from_raw(self.raw)

    @property
    def record_count(self) -> int:
        return len(self.raw) if self.is_batch else 1


@dataclass(frozen=True)
class ForwardCandidate:
    """One configured downstream target."""

    label: str
    url: CallbackUrl


@dataclass(frozen=True)
class ForwardAttemptResult:
    """Outcome of the POSTs issued to one candidate."""

    status: int
    body: str = ""
    attempts: int = 1

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class ForwardOutcome(BaseModel):
    """Final result of forwarding one inbound request."""

    ok: bool
    forwarded_status: int
    attempts: int
    used_candidate_label: str
    error: Optional[str] = None
    details: Optional[str] = None
    forwarded_body: Optional[str] = None

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True
    )

    def to_body(self, include_forwarded_body: bool = False) -> dict:
        """Response body with camelCase keys; unset optional fields omitted."""
        exclude = None if include_forwarded_body else {"forwarded_body"}
        return self.model_dump(by_alias=True, exclude_none=True, exclude=exclude)


class HandshakeResponse(BaseModel):
    """Reply to a subscription validation handshake."""

    validation_response: str = Field("", alias="validationResponse")

    model_config = ConfigDict(populate_by_name=True)
