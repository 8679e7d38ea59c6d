"""Tests for the exception hierarchy."""

import httpx

from eventrelay.core.exceptions import (
    ConfigurationError,
    ErrorCode,
    ForwardingError,
    ForwardingNetworkError,
    NoCandidatesError,
    RelayError,
)
from eventrelay.webhooks.models import ForwardAttemptResult


def test_no_candidates_is_a_configuration_error():
    error = NoCandidatesError()

    assert isinstance(error, ConfigurationError)
    assert error.error_code is ErrorCode.CONFIG_MISSING
    assert str(error) == "[E1002] No forwarding target configured"


def test_network_error_carries_partial_result():
    cause = httpx.ConnectError("refused")
    last = ForwardAttemptResult(status=503, body="down", attempts=2)

    error = ForwardingNetworkError(3, last_result=last, cause=cause)

    assert isinstance(error, ForwardingError)
    assert isinstance(error, RelayError)
    assert error.attempts == 3
    assert error.last_result is last
    assert error.to_dict() == {
        "error": "ForwardingNetworkError",
        "message": error.message,
        "code": "E8002",
        "context": {"attempts": 3},
        "cause": "refused",
    }
