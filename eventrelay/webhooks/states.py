"""
Pipeline state machine.

Each inbound request moves through::

    classifying -> handshake                      (terminal)
    classifying -> rejected                       (terminal)
    classifying -> selecting -> rejected          (terminal, nothing configured)
    classifying -> selecting -> attempting(i) ... -> succeeded | exhausted

The transition functions are pure so the fallback rules can be tested
without any network.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from eventrelay.webhooks.classifier import RequestKind


class PipelineState(str, Enum):
    """States of one relay invocation."""
    CLASSIFYING = "classifying"
    HANDSHAKE = "handshake"
    REJECTED = "rejected"
    SELECTING = "selecting"
    ATTEMPTING = "attempting"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"


TERMINAL_STATES = frozenset({
    PipelineState.HANDSHAKE,
    PipelineState.REJECTED,
    PipelineState.SUCCEEDED,
    PipelineState.EXHAUSTED,
})


@dataclass(frozen=True)
class Transition:
    """One entry of an invocation's trace."""

    state: PipelineState
    candidate: Optional[str] = None

    def __str__(self) -> str:
        if self.candidate:
            return f"{self.state.value}:{self.candidate}"
        return self.state.value


def after_classification(kind: RequestKind) -> PipelineState:
    """State entered once the request has been classified."""
    if kind is RequestKind.HANDSHAKE:
        return PipelineState.HANDSHAKE
    if kind is RequestKind.MALFORMED:
        return PipelineState.REJECTED
    return PipelineState.SELECTING


def after_selection(candidate_count: int) -> PipelineState:
    """State entered once candidates have been selected."""
    if candidate_count == 0:
        return PipelineState.REJECTED
    return PipelineState.ATTEMPTING


def after_attempt(
    succeeded: bool,
    index: int,
    candidate_count: int,
    fallback_enabled: bool
) -> PipelineState:
    """
    State entered after the candidate at ``index`` has been tried.

    Returns ``ATTEMPTING`` when the next candidate should be tried.
    """
    if succeeded:
        return PipelineState.SUCCEEDED
    if not fallback_enabled or index >= candidate_count - 1:
        return PipelineState.EXHAUSTED
    return PipelineState.ATTEMPTING
