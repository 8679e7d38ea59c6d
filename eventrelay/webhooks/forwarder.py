"""
Resilient forwarding - bounded retries per target, canary-to-stable fallback.

Targets and attempts are tried strictly one at a time. Sending to two
targets concurrently would deliver the same event twice.
"""

import asyncio
import json
import random
import time
from typing import Any, Awaitable, Callable, List, Optional

import httpx

from eventrelay.core.exceptions import ForwardingNetworkError, NoCandidatesError
from eventrelay.core.observability import MetricsCollector
from eventrelay.core.secrets import CallbackUrl, redact_text
from eventrelay.errors.retry import RetryPolicy, compute_backoff_ms, is_retryable_status
from eventrelay.logging import StructuredLogger, get_logger
from eventrelay.webhooks.models import (
    ForwardAttemptResult,
    ForwardCandidate,
    ForwardOutcome,
    truncate_body,
)
from eventrelay.webhooks.states import PipelineState, Transition, after_attempt

JSON_HEADERS = {"Content-Type": "application/json"}


def serialize_payload(payload: Any) -> bytes:
    """Serialize a payload exactly once; every attempt sends these bytes."""
    return json.dumps(payload, allow_nan=False).encode("utf-8")


class Forwarder:
    """
    Forwards payloads to downstream targets.

    Example:
        >>> async with httpx.AsyncClient() as client:
        ...     forwarder = Forwarder(client, RetryPolicy(max_attempts=3))
        ...     outcome = await forwarder.forward(candidates, payload)
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        policy: RetryPolicy,
        fallback_enabled: bool = True,
        logger: Optional[StructuredLogger] = None,
        metrics: Optional[MetricsCollector] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rng: Optional[random.Random] = None
    ):
        """
        Initialize forwarder.

        Args:
            client: Shared HTTP client (connection pool)
            policy: Retry policy applied to each target
            fallback_enabled: Fall through to the next target on failure
            logger: Structured logger
            metrics: Metrics collector
            sleep: Coroutine used for backoff sleeps, in seconds
            rng: Random source for backoff jitter
        """
        self.client = client
        self.policy = policy
        self.fallback_enabled = fallback_enabled
        self.logger = logger or get_logger("eventrelay.forwarder")
        self.metrics = metrics
        self._sleep = sleep
        self._rng = rng or random.Random()

    async def _backoff(self, attempt: int, label: str, reason: str) -> None:
        delay_ms = compute_backoff_ms(attempt, self.policy, self._rng)
        self.logger.info(
            f"Forward attempt {attempt} {reason}. Retrying in {delay_ms}ms...",
            candidate=label,
            attempt=attempt,
            delay_ms=delay_ms
        )
        await self._sleep(delay_ms / 1000)

    def _record_attempt(self, label: str, attempt: int, status: int, **kwargs: Any) -> None:
        self.logger.log_attempt(label, attempt, status, **kwargs)
        if self.metrics:
            self.metrics.record_attempt(label, status)

    async def post_with_retry(
        self,
        url: CallbackUrl,
        payload: Any,
        label: str = "target"
    ) -> ForwardAttemptResult:
        """
        POST a payload to one target with bounded retries.

        A final non-2xx response is returned, not raised.

        Args:
            url: Target URL
            payload: JSON payload, or bytes already serialized
            label: Target label for logs

        Returns:
            Result of the last attempt issued

        Raises:
            ForwardingNetworkError: If the final attempt got no response
        """
        content = payload if isinstance(payload, bytes) else serialize_payload(payload)
        max_attempts = self.policy.max_attempts
        last: Optional[ForwardAttemptResult] = None
        last_error: Optional[Exception] = None

        for attempt in range(1, max_attempts + 1):
            try:
                response = await self.client.post(
                    url.reveal(),
                    content=content,
                    headers=JSON_HEADERS
                )
            except httpx.RequestError as e:
                last_error = e
                self._record_attempt(label, attempt, 0, error=repr(e))
                if attempt == max_attempts:
                    break
                await self._backoff(attempt, label, "failed (network)")
                continue

            last = ForwardAttemptResult(
                status=response.status_code,
                body=response.text,
                attempts=attempt
            )
            self._record_attempt(label, attempt, last.status)

            if last.ok:
                return last

            if not is_retryable_status(last.status) or attempt == max_attempts:
                return last

            await self._backoff(attempt, label, f"got {last.status}")

        raise ForwardingNetworkError(max_attempts, last_result=last, cause=last_error)

    async def forward(
        self,
        candidates: List[ForwardCandidate],
        payload: Any,
        trace: Optional[List[Transition]] = None
    ) -> ForwardOutcome:
        """
        Forward a payload through the candidate list.

        Args:
            candidates: Ordered targets, tried first to last
            payload: Payload exactly as received
            trace: Optional list that receives the state transitions

        Returns:
            Outcome of the last candidate tried

        Raises:
            NoCandidatesError: If ``candidates`` is empty
        """
        if not candidates:
            raise NoCandidatesError()

        if trace is None:
            trace = []

        content = serialize_payload(payload)
        started = time.monotonic()
        captured_error: Optional[str] = None

        for index, candidate in enumerate(candidates):
            trace.append(Transition(PipelineState.ATTEMPTING, candidate.label))
            self.logger.info(
                f"Forwarding to {candidate.label} target: {candidate.url}",
                candidate=candidate.label
            )

            network_failed = False
            try:
                result = await self.post_with_retry(candidate.url, content, candidate.label)
            except ForwardingNetworkError as e:
                network_failed = True
                details = redact_text(repr(e.cause) if e.cause else str(e))
                self.logger.error(
                    "Error forwarding after retries",
                    candidate=candidate.label,
                    attempts=e.attempts,
                    last_status=e.last_result.status if e.last_result else 0,
                    details=details
                )
                outcome = ForwardOutcome(
                    ok=False,
                    forwarded_status=0,
                    attempts=e.attempts,
                    used_candidate_label=candidate.label,
                    error="Forwarding failed after retries",
                    details=details
                )
            else:
                self.logger.info(
                    f"Forwarded to {candidate.label} target. Status: {result.status}. "
                    f"Attempts: {result.attempts}",
                    candidate=candidate.label,
                    status=result.status,
                    attempts=result.attempts
                )
                forwarded_body = None
                if result.body:
                    forwarded_body = truncate_body(result.body)
                    self.logger.info(
                        f"Target response body: {forwarded_body}",
                        candidate=candidate.label
                    )
                outcome = ForwardOutcome(
                    ok=result.ok,
                    forwarded_status=result.status,
                    attempts=result.attempts,
                    used_candidate_label=candidate.label,
                    forwarded_body=forwarded_body
                )

            state = after_attempt(outcome.ok, index, len(candidates), self.fallback_enabled)

            if state is PipelineState.ATTEMPTING:
                if network_failed:
                    captured_error = f"{candidate.label}: {outcome.details}"
                self.logger.warning(
                    f"Falling back from {candidate.label} to {candidates[index + 1].label}",
                    candidate=candidate.label,
                    status=outcome.forwarded_status
                )
                continue

            trace.append(Transition(state, candidate.label))

            if not outcome.ok and captured_error and outcome.details is None:
                outcome = outcome.model_copy(update={
                    "error": "Forwarding failed on all targets",
                    "details": captured_error
                })

            self.logger.info(
                "Forward outcome",
                ok=outcome.ok,
                forwarded_status=outcome.forwarded_status,
                attempts=outcome.attempts,
                candidate=outcome.used_candidate_label
            )
            if self.metrics:
                self.metrics.record_outcome(
                    outcome.used_candidate_label,
                    outcome.ok,
                    time.monotonic() - started
                )
            return outcome

        # after_attempt always ends on the last candidate
        raise AssertionError("candidate loop ended without a terminal state")
