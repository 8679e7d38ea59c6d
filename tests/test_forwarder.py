"""Tests for the resilient forwarder."""

import json

import httpx
import pytest

from eventrelay.core.exceptions import ForwardingNetworkError, NoCandidatesError
from eventrelay.core.secrets import CallbackUrl
from eventrelay.webhooks.candidates import select_candidates
from eventrelay.webhooks.models import MAX_BODY_CHARS, TRUNCATION_MARKER
from eventrelay.webhooks.states import PipelineState

from tests.conftest import (
    BLOB_EVENT,
    CANARY_HOST,
    CANARY_URL,
    STABLE_HOST,
    STABLE_URL,
    ScriptedDownstream,
)

PAYLOAD = [BLOB_EVENT]


def connect_error():
    return httpx.ConnectError("connection refused")


@pytest.fixture
def both(make_config):
    return select_candidates(make_config(canary_url=CANARY_URL))


@pytest.fixture
def stable_only(make_config):
    return select_candidates(make_config())


# post_with_retry

@pytest.mark.asyncio
async def test_success_on_first_attempt(make_forwarder, sleeper):
    downstream = ScriptedDownstream({STABLE_HOST: [202]})
    forwarder = make_forwarder(downstream)

    result = await forwarder.post_with_retry(CallbackUrl(STABLE_URL), PAYLOAD)

    assert result.status == 202
    assert result.attempts == 1
    assert sleeper.delays == []


@pytest.mark.asyncio
async def test_retries_until_success(make_forwarder, sleeper):
    downstream = ScriptedDownstream({STABLE_HOST: [503, 503, 200]})
    forwarder = make_forwarder(downstream, max_attempts=3, base_delay_ms=500, max_delay_ms=8000)

    result = await forwarder.post_with_retry(CallbackUrl(STABLE_URL), PAYLOAD)

    assert result.ok
    assert result.attempts == 3
    assert downstream.calls(STABLE_HOST) == 3
    assert len(sleeper.delays) == 2
    assert all(delay <= 8.0 for delay in sleeper.delays)
    assert 0.5 <= sleeper.delays[0] < 0.75
    assert 1.0 <= sleeper.delays[1] < 1.25


@pytest.mark.asyncio
async def test_delays_respect_small_max_delay(make_forwarder, sleeper):
    downstream = ScriptedDownstream({STABLE_HOST: [500]})
    forwarder = make_forwarder(downstream, max_attempts=5, base_delay_ms=300, max_delay_ms=400)

    result = await forwarder.post_with_retry(CallbackUrl(STABLE_URL), PAYLOAD)

    assert result.status == 500
    assert len(sleeper.delays) == 4
    assert all(delay <= 0.4 for delay in sleeper.delays)


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [400, 401, 403, 404, 422])
async def test_non_retryable_status_returns_immediately(make_forwarder, sleeper, status):
    downstream = ScriptedDownstream({STABLE_HOST: [status]})
    forwarder = make_forwarder(downstream)

    result = await forwarder.post_with_retry(CallbackUrl(STABLE_URL), PAYLOAD)

    assert result.status == status
    assert result.attempts == 1
    assert sleeper.delays == []


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [408, 429, 500, 503])
async def test_retryable_status_exhaustion_returns_last_response(make_forwarder, sleeper, status):
    downstream = ScriptedDownstream({STABLE_HOST: [(status, "busy")]})
    forwarder = make_forwarder(downstream, max_attempts=4)

    result = await forwarder.post_with_retry(CallbackUrl(STABLE_URL), PAYLOAD)

    assert result.status == status
    assert result.body == "busy"
    assert result.attempts == 4
    assert len(sleeper.delays) == 3


@pytest.mark.asyncio
async def test_network_error_then_success(make_forwarder, sleeper):
    downstream = ScriptedDownstream({STABLE_HOST: [connect_error(), 200]})
    forwarder = make_forwarder(downstream)

    result = await forwarder.post_with_retry(CallbackUrl(STABLE_URL), PAYLOAD)

    assert result.ok
    assert result.attempts == 2
    assert len(sleeper.delays) == 1


@pytest.mark.asyncio
async def test_network_exhaustion_raises(make_forwarder, sleeper):
    downstream = ScriptedDownstream({STABLE_HOST: [connect_error()]})
    forwarder = make_forwarder(downstream, max_attempts=3)

    with pytest.raises(ForwardingNetworkError) as exc_info:
        await forwarder.post_with_retry(CallbackUrl(STABLE_URL), PAYLOAD)

    assert exc_info.value.attempts == 3
    assert exc_info.value.last_result is None
    assert isinstance(exc_info.value.cause, httpx.ConnectError)
    assert len(sleeper.delays) == 2


@pytest.mark.asyncio
async def test_network_exhaustion_carries_last_response(make_forwarder):
    downstream = ScriptedDownstream({STABLE_HOST: [(503, "down"), connect_error()]})
    forwarder = make_forwarder(downstream, max_attempts=2)

    with pytest.raises(ForwardingNetworkError) as exc_info:
        await forwarder.post_with_retry(CallbackUrl(STABLE_URL), PAYLOAD)

    assert exc_info.value.last_result.status == 503
    assert exc_info.value.last_result.body == "down"


@pytest.mark.asyncio
async def test_sends_identical_json_on_every_attempt(make_forwarder):
    downstream = ScriptedDownstream({STABLE_HOST: [500, 500, 200]})
    forwarder = make_forwarder(downstream)

    await forwarder.post_with_retry(CallbackUrl(STABLE_URL), PAYLOAD)

    bodies = {request.content for request in downstream.requests}
    assert len(bodies) == 1
    for request in downstream.requests:
        assert request.method == "POST"
        assert request.headers["content-type"] == "application/json"
        assert str(request.url) == STABLE_URL
        assert json.loads(request.content) == PAYLOAD


@pytest.mark.asyncio
async def test_non_finite_payload_is_never_sent(make_forwarder, stable_only):
    downstream = ScriptedDownstream({STABLE_HOST: [200]})
    forwarder = make_forwarder(downstream)

    with pytest.raises(ValueError):
        await forwarder.forward(stable_only, [{"eventType": "x", "v": float("nan")}])

    assert downstream.requests == []


# forward

@pytest.mark.asyncio
async def test_first_candidate_success_skips_second(make_forwarder, both):
    downstream = ScriptedDownstream({CANARY_HOST: [200], STABLE_HOST: [200]})
    forwarder = make_forwarder(downstream)

    outcome = await forwarder.forward(both, PAYLOAD)

    assert outcome.ok
    assert outcome.attempts == 1
    assert outcome.used_candidate_label == "canary"
    assert downstream.calls(STABLE_HOST) == 0


@pytest.mark.asyncio
async def test_non_retryable_canary_falls_back_to_stable(make_forwarder, both, sleeper):
    downstream = ScriptedDownstream({CANARY_HOST: [404], STABLE_HOST: [200]})
    forwarder = make_forwarder(downstream)
    trace = []

    outcome = await forwarder.forward(both, PAYLOAD, trace=trace)

    assert outcome.ok
    assert outcome.used_candidate_label == "stable"
    assert outcome.attempts == 1
    assert downstream.calls(CANARY_HOST) == 1
    assert downstream.calls(STABLE_HOST) == 1
    assert sleeper.delays == []
    assert [str(t) for t in trace] == ["attempting:canary", "attempting:stable", "succeeded:stable"]


@pytest.mark.asyncio
async def test_retry_exhausted_canary_falls_back(make_forwarder, both):
    downstream = ScriptedDownstream({CANARY_HOST: [503], STABLE_HOST: [202]})
    forwarder = make_forwarder(downstream, max_attempts=2)

    outcome = await forwarder.forward(both, PAYLOAD)

    assert outcome.ok
    assert outcome.forwarded_status == 202
    assert outcome.used_candidate_label == "stable"
    assert downstream.calls(CANARY_HOST) == 2


@pytest.mark.asyncio
@pytest.mark.parametrize("canary_step", [404, 500, connect_error()])
async def test_fallback_disabled_never_contacts_stable(make_forwarder, both, canary_step):
    downstream = ScriptedDownstream({CANARY_HOST: [canary_step], STABLE_HOST: [200]})
    forwarder = make_forwarder(downstream, fallback_enabled=False, max_attempts=2)

    outcome = await forwarder.forward(both, PAYLOAD)

    assert not outcome.ok
    assert outcome.used_candidate_label == "canary"
    assert downstream.calls(STABLE_HOST) == 0


@pytest.mark.asyncio
async def test_canary_network_failure_then_stable_success(make_forwarder, both):
    downstream = ScriptedDownstream({CANARY_HOST: [connect_error()], STABLE_HOST: [200]})
    forwarder = make_forwarder(downstream, max_attempts=2)

    outcome = await forwarder.forward(both, PAYLOAD)

    assert outcome.ok
    assert outcome.used_candidate_label == "stable"
    assert outcome.error is None
    assert outcome.details is None


@pytest.mark.asyncio
async def test_canary_network_failure_reported_when_stable_fails(make_forwarder, both):
    downstream = ScriptedDownstream({CANARY_HOST: [connect_error()], STABLE_HOST: [400]})
    forwarder = make_forwarder(downstream, max_attempts=2)

    outcome = await forwarder.forward(both, PAYLOAD)

    assert not outcome.ok
    assert outcome.forwarded_status == 400
    assert outcome.used_candidate_label == "stable"
    assert outcome.error == "Forwarding failed on all targets"
    assert outcome.details.startswith("canary: ")
    assert "ConnectError" in outcome.details


@pytest.mark.asyncio
async def test_all_candidates_network_failure(make_forwarder, both):
    downstream = ScriptedDownstream({CANARY_HOST: [connect_error()], STABLE_HOST: [connect_error()]})
    forwarder = make_forwarder(downstream, max_attempts=3)
    trace = []

    outcome = await forwarder.forward(both, PAYLOAD, trace=trace)

    assert not outcome.ok
    assert outcome.forwarded_status == 0
    assert outcome.attempts == 3
    assert outcome.used_candidate_label == "stable"
    assert outcome.error == "Forwarding failed after retries"
    assert trace[-1].state is PipelineState.EXHAUSTED


@pytest.mark.asyncio
async def test_last_candidate_failure_reports_its_status(make_forwarder, both):
    downstream = ScriptedDownstream({CANARY_HOST: [500], STABLE_HOST: [(409, "conflict")]})
    forwarder = make_forwarder(downstream, max_attempts=2)

    outcome = await forwarder.forward(both, PAYLOAD)

    assert not outcome.ok
    assert outcome.forwarded_status == 409
    assert outcome.forwarded_body == "conflict"
    assert outcome.used_candidate_label == "stable"
    assert outcome.error is None


@pytest.mark.asyncio
async def test_forwarded_payload_is_unchanged(make_forwarder, both):
    payload = {"eventType": "Custom.Event", "data": {"unicode": "é中", "n": [1, 2.5, None, True]}}
    downstream = ScriptedDownstream({CANARY_HOST: [500], STABLE_HOST: [200]})
    forwarder = make_forwarder(downstream, max_attempts=1)

    await forwarder.forward(both, payload)

    for request in downstream.requests:
        assert json.loads(request.content) == payload


@pytest.mark.asyncio
async def test_long_response_body_is_truncated(make_forwarder, stable_only):
    downstream = ScriptedDownstream({STABLE_HOST: [(200, "x" * 5000)]})
    forwarder = make_forwarder(downstream)

    outcome = await forwarder.forward(stable_only, PAYLOAD)

    assert outcome.forwarded_body == "x" * MAX_BODY_CHARS + TRUNCATION_MARKER


@pytest.mark.asyncio
async def test_forward_without_candidates_raises(make_forwarder):
    forwarder = make_forwarder(ScriptedDownstream({}))

    with pytest.raises(NoCandidatesError):
        await forwarder.forward([], PAYLOAD)


@pytest.mark.asyncio
async def test_attempts_are_counted_in_metrics(make_forwarder, both, metrics):
    downstream = ScriptedDownstream({CANARY_HOST: [503, connect_error(), 200]})
    forwarder = make_forwarder(downstream)

    await forwarder.forward(both, PAYLOAD)

    snapshot = metrics.snapshot()
    assert snapshot["eventrelay_forward_attempts_total{candidate=canary,result=5xx}"] == 1
    assert snapshot["eventrelay_forward_attempts_total{candidate=canary,result=network_error}"] == 1
    assert snapshot["eventrelay_forward_attempts_total{candidate=canary,result=2xx}"] == 1
    assert snapshot["eventrelay_forward_outcomes_total{candidate=canary,ok=true}"] == 1
